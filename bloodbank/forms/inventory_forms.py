from flask_wtf import FlaskForm
from wtforms import StringField, IntegerField, SelectField, TextAreaField, DateField
from wtforms.validators import DataRequired, Length, NumberRange, ValidationError
from bloodbank.models.inventory import BLOOD_TYPES, COMPONENT_TYPES, RH_FACTORS
from datetime import date

BLOOD_TYPE_CHOICES = [(bt, bt) for bt in BLOOD_TYPES]


def _canonical_type(value):
    for name in COMPONENT_TYPES:
        if name.lower() == str(value or '').lower():
            return name
    return None


class EntryForm(FlaskForm):
    donor_name = StringField('Donor Name', validators=[DataRequired(), Length(min=2, max=100)])
    blood_type = SelectField('Blood Type', choices=BLOOD_TYPE_CHOICES, validators=[DataRequired()])
    rh = StringField('Rh Factor')
    amount = IntegerField('Amount (ml)', validators=[DataRequired(), NumberRange(min=100, max=500)])
    expiration_date = DateField('Expiration Date', format='%Y-%m-%d', validators=[DataRequired()])

    # Set by the view before validation
    component_type = None

    def validate_rh(self, rh):
        if self.component_type == 'Plasma':
            return
        if not rh.data:
            raise ValidationError('Rh factor is required for this entry type')
        if rh.data not in RH_FACTORS:
            raise ValidationError('Rh factor must be + or -')


class AddEntryForm(EntryForm):
    def validate_expiration_date(self, expiration_date):
        if expiration_date.data and expiration_date.data <= date.today():
            raise ValidationError('Expiration date must be in the future')


class UpdateEntryForm(EntryForm):
    bag_id = IntegerField('Bag ID', validators=[DataRequired(), NumberRange(min=1)])
    entry_type = StringField('Entry Type', validators=[DataRequired()])

    def validate_entry_type(self, entry_type):
        self.component_type = _canonical_type(entry_type.data)
        if self.component_type is None:
            raise ValidationError('Invalid entry type')

    def validate(self, extra_validators=None):
        # rh validation depends on the entry type
        self.component_type = _canonical_type(self.entry_type.data)
        return super().validate(extra_validators=extra_validators)


class EntryActionForm(FlaskForm):
    bag_id = IntegerField('Bag ID', validators=[DataRequired(), NumberRange(min=1)])
    entry_type = StringField('Entry Type', validators=[DataRequired()])

    def validate_entry_type(self, entry_type):
        if _canonical_type(entry_type.data) is None:
            raise ValidationError('Invalid entry type')


class SurplusTransferForm(FlaskForm):
    to_hospital_id = IntegerField('Receiving Hospital', validators=[DataRequired(), NumberRange(min=1)])
    component_type = StringField('Component Type', validators=[DataRequired()])
    blood_type = SelectField('Blood Type', choices=BLOOD_TYPE_CHOICES, validators=[DataRequired()])
    rh = StringField('Rh Factor')
    amount = IntegerField('Amount (ml)', validators=[DataRequired(), NumberRange(min=1)])
    units = IntegerField('Units', validators=[DataRequired(), NumberRange(min=1)])
    notes = TextAreaField('Notes', validators=[Length(max=200)])

    def validate_component_type(self, component_type):
        if _canonical_type(component_type.data) is None:
            raise ValidationError('Invalid component type')

    def validate_rh(self, rh):
        if _canonical_type(self.component_type.data) == 'Plasma':
            return
        if rh.data not in RH_FACTORS:
            raise ValidationError('Rh factor must be + or -')
