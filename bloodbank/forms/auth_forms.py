from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, BooleanField, IntegerField
from wtforms.validators import DataRequired, Length, ValidationError, NumberRange
from bloodbank import db
from bloodbank.models.hospital import Admin, Hospital


class LoginForm(FlaskForm):
    username = StringField('Username', validators=[DataRequired(), Length(min=3, max=50)])
    password = PasswordField('Password', validators=[DataRequired()])
    remember = BooleanField('Remember Me')


class RegistrationForm(FlaskForm):
    username = StringField('Username', validators=[DataRequired(), Length(min=3, max=50)])
    password = PasswordField('Password', validators=[DataRequired(), Length(min=6)])
    hospital_id = IntegerField('Hospital', validators=[DataRequired(), NumberRange(min=1)])

    def validate_username(self, username):
        admin = Admin.query.filter_by(username=username.data).first()
        if admin:
            raise ValidationError('That username is already taken. Please choose a different one.')

    def validate_hospital_id(self, hospital_id):
        if db.session.get(Hospital, hospital_id.data) is None:
            raise ValidationError('Hospital not found')
