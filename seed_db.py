from bloodbank import create_app, db, bcrypt
from bloodbank.models.hospital import Admin, Hospital
from bloodbank.models.inventory import PlasmaBag, PlateletsBag, RedBloodBag
from datetime import date, timedelta

SAMPLE_HOSPITALS = [
    ('City General Hospital', 'Downtown', '555-0100', 'bloodbank@citygeneral.example'),
    ('Riverside Medical Center', 'Riverside', '555-0200', 'bloodbank@riverside.example'),
]


def seed():
    app = create_app()
    with app.app_context():
        # Check if any hospitals exist
        hospitals = Hospital.query.all()
        print(f"Found {len(hospitals)} hospitals in the database")

        if hospitals:
            print("Existing admins:")
            for admin in Admin.query.all():
                print(f"- {admin.username} (hospital {admin.hospital_id})")
            return

        print("Creating sample hospitals...")
        expires = date.today() + timedelta(days=30)

        for index, (name, location, phone, email) in enumerate(SAMPLE_HOSPITALS, start=1):
            hospital = Hospital(name=name, location=location, contact_phone=phone, contact_email=email)
            db.session.add(hospital)
            db.session.flush()  # Get the hospital ID

            hashed_password = bcrypt.generate_password_hash('admin123').decode('utf-8')
            db.session.add(Admin(username=f'admin{index}', password=hashed_password, hospital_id=hospital.id))

            # A little stock of each component type
            for blood_type in ('A', 'B', 'AB', 'O'):
                db.session.add(RedBloodBag(donor_name='Sample Donor', blood_type=blood_type, rh='+',
                                           amount=450, expiration_date=expires, hospital_id=hospital.id))
                db.session.add(PlateletsBag(donor_name='Sample Donor', blood_type=blood_type, rh='-',
                                            amount=250, expiration_date=expires, hospital_id=hospital.id))
                db.session.add(PlasmaBag(donor_name='Sample Donor', blood_type=blood_type, rh='',
                                         amount=300, expiration_date=expires, hospital_id=hospital.id))

        db.session.commit()
        print("Sample data created successfully!")
        print("Usernames: admin1, admin2")
        print("Password: admin123")


if __name__ == '__main__':
    seed()
