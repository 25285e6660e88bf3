from bloodbank import db
from bloodbank.utils.errors import AppError, ErrorType
from sqlalchemy.orm import declared_attr
from datetime import datetime

BLOOD_TYPES = ['A', 'B', 'AB', 'O']
RH_FACTORS = ['+', '-']
COMPONENT_TYPES = ('RedBlood', 'Plasma', 'Platelets')


class BloodBagMixin:
    """Columns shared by the three component-type inventory tables."""

    bag_id = db.Column(db.Integer, primary_key=True)
    donor_name = db.Column(db.String(100), nullable=False)
    blood_type = db.Column(db.String(2), nullable=False)
    rh = db.Column(db.String(1), nullable=False, default='')
    amount = db.Column(db.Integer, nullable=False)
    expiration_date = db.Column(db.Date, nullable=False)
    active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    @declared_attr
    def hospital_id(cls):
        return db.Column(db.Integer, db.ForeignKey('hospital.id'), nullable=False, index=True)

    @declared_attr
    def hospital(cls):
        return db.relationship('Hospital')

    def to_dict(self):
        return {
            'type': self.component_type,
            'bag_id': self.bag_id,
            'donor_name': self.donor_name,
            'blood_type': self.blood_type,
            'rh': self.rh or '',
            'amount': self.amount,
            'expiration_date': self.expiration_date.isoformat(),
            'hospital_id': self.hospital_id,
            'active': self.active,
        }

    def __repr__(self):
        return f"{type(self).__name__}({self.bag_id}, '{self.blood_type}{self.rh}', {self.amount}ml)"


class RedBloodBag(BloodBagMixin, db.Model):
    __tablename__ = 'redblood_inventory'
    component_type = 'RedBlood'


class PlasmaBag(BloodBagMixin, db.Model):
    __tablename__ = 'plasma_inventory'
    component_type = 'Plasma'


class PlateletsBag(BloodBagMixin, db.Model):
    __tablename__ = 'platelets_inventory'
    component_type = 'Platelets'


COMPONENT_MODELS = {
    'RedBlood': RedBloodBag,
    'Plasma': PlasmaBag,
    'Platelets': PlateletsBag,
}


def normalize_component_type(component_type):
    """
    Map 'redblood', 'RedBlood', 'PLASMA', ... to the canonical component name
    """
    if component_type:
        for name in COMPONENT_TYPES:
            if name.lower() == str(component_type).lower():
                return name
    raise AppError('Invalid entry type', ErrorType.VALIDATION,
                   details=f'Expected one of {", ".join(COMPONENT_TYPES)}')


def get_component_model(component_type):
    return COMPONENT_MODELS[normalize_component_type(component_type)]


class SurplusTransfer(db.Model):
    __tablename__ = 'surplus_transfers'

    id = db.Column(db.Integer, primary_key=True)
    from_hospital_id = db.Column(db.Integer, db.ForeignKey('hospital.id'), nullable=False)
    to_hospital_id = db.Column(db.Integer, db.ForeignKey('hospital.id'), nullable=False)
    component_type = db.Column(db.String(20), nullable=False)
    blood_type = db.Column(db.String(2), nullable=False)
    rh = db.Column(db.String(1), nullable=False, default='')
    amount = db.Column(db.Integer, nullable=False)
    units = db.Column(db.Integer, nullable=False)
    transfer_date = db.Column(db.DateTime, default=datetime.utcnow)
    notes = db.Column(db.Text, nullable=True)

    # Relationships
    from_hospital = db.relationship('Hospital', foreign_keys=[from_hospital_id])
    to_hospital = db.relationship('Hospital', foreign_keys=[to_hospital_id])

    def to_dict(self, hospital_id=None):
        data = {
            'id': self.id,
            'from_hospital_id': self.from_hospital_id,
            'from_hospital_name': self.from_hospital.name if self.from_hospital else None,
            'to_hospital_id': self.to_hospital_id,
            'to_hospital_name': self.to_hospital.name if self.to_hospital else None,
            'component_type': self.component_type,
            'blood_type': self.blood_type,
            'rh': self.rh or '',
            'amount': self.amount,
            'units': self.units,
            'transfer_date': self.transfer_date.isoformat() if self.transfer_date else None,
            'notes': self.notes,
        }
        if hospital_id is not None:
            data['direction'] = 'outgoing' if self.from_hospital_id == hospital_id else 'incoming'
        return data

    def __repr__(self):
        return f"SurplusTransfer({self.from_hospital_id} -> {self.to_hospital_id}, '{self.component_type}')"
