from bloodbank import create_app, db, bcrypt
from bloodbank.models.hospital import Admin


def hash_plaintext_passwords():
    """
    Replace any admin password that is not yet a bcrypt hash with its hash
    """
    app = create_app()
    with app.app_context():
        admins = Admin.query.all()
        print(f"Found {len(admins)} admins")

        updated = 0
        for admin in admins:
            # Skip if already hashed
            if admin.password.startswith('$2'):
                print(f"Admin {admin.username} (ID: {admin.id}) already has a hashed password")
                continue

            print(f"Hashing password for admin {admin.username} (ID: {admin.id})")
            admin.password = bcrypt.generate_password_hash(admin.password).decode('utf-8')
            updated += 1

        db.session.commit()
        print(f"Password hashing complete, {updated} updated")


if __name__ == '__main__':
    hash_plaintext_passwords()
