from flask import Blueprint, jsonify, current_app
from flask_login import login_user, current_user, logout_user, login_required
from bloodbank import db, bcrypt
from bloodbank.models.hospital import Admin
from bloodbank.forms.auth_forms import LoginForm, RegistrationForm
from bloodbank.utils import get_hospital
from bloodbank.utils.errors import AppError, ErrorType, form_error, log_error
from sqlalchemy.exc import SQLAlchemyError

auth = Blueprint('auth', __name__)


@auth.route('/register', methods=['POST'])
def register():
    form = RegistrationForm()
    if not form.validate_on_submit():
        raise form_error(form)

    hashed_password = bcrypt.generate_password_hash(form.password.data).decode('utf-8')
    admin = Admin(username=form.username.data, password=hashed_password, hospital_id=form.hospital_id.data)

    try:
        db.session.add(admin)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        raise log_error(e, 'Register admin')

    current_app.logger.info(f"Registered admin {admin.username} for hospital {admin.hospital_id}")
    return jsonify({'success': True, 'admin_id': admin.id}), 201


@auth.route('/login', methods=['POST'])
def login():
    form = LoginForm()
    if not form.validate_on_submit():
        raise form_error(form)

    admin = Admin.query.filter_by(username=form.username.data).first()
    if not admin or not bcrypt.check_password_hash(admin.password, form.password.data):
        current_app.logger.warning(f"Failed login attempt for {form.username.data}")
        return jsonify({'success': False, 'error': 'Invalid username or password'}), 401

    login_user(admin, remember=form.remember.data)
    current_app.logger.info(f"Admin {admin.username} logged in")
    return jsonify({
        'success': True,
        'username': admin.username,
        'hospital_id': admin.hospital_id
    })


@auth.route('/logout', methods=['POST'])
def logout():
    logout_user()
    return jsonify({'success': True})


@auth.route('/session')
def session_status():
    if not current_user.is_authenticated:
        return jsonify({'authenticated': False})

    return jsonify({
        'authenticated': True,
        'username': current_user.username,
        'hospital_id': current_user.hospital_id
    })


@auth.route('/current-hospital')
@login_required
def current_hospital():
    hospital = get_hospital(current_user.hospital_id)
    if hospital is None:
        raise AppError('Hospital not found', ErrorType.NOT_FOUND)

    return jsonify({'success': True, 'hospital': hospital})
