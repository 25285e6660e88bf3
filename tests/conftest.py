from bloodbank import create_app, db, bcrypt
from bloodbank.models.hospital import Admin, Hospital
from bloodbank.models.inventory import PlasmaBag, PlateletsBag, RedBloodBag
from flask import has_app_context
from contextlib import nullcontext
from datetime import date, timedelta
import pytest

PASSWORD = 'secret123'


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


def _context(app):
    """Reuse the active application context if a test already pushed one"""
    return nullcontext() if has_app_context() else app.app_context()


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'WTF_CSRF_ENABLED': False,
        'MAIL_DEFAULT_SENDER': 'noreply@bloodbank.test',
        'BCRYPT_LOG_ROUNDS': 4,
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """Application context for calling the service layer directly"""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def hospitals(app):
    """Three hospitals: home (with admin 'alice'), donor and needy (with admin 'bob')"""
    with _context(app):
        rows = [
            Hospital(name='Home Hospital', location='North', contact_phone='555-0001',
                     contact_email='home@hospital.test'),
            Hospital(name='Donor Hospital', location='South', contact_phone='555-0002',
                     contact_email='donor@hospital.test'),
            Hospital(name='Needy Hospital', location='East', contact_phone='555-0003'),
        ]
        db.session.add_all(rows)
        db.session.flush()

        db.session.add(Admin(username='alice', hospital_id=rows[0].id,
                             password=bcrypt.generate_password_hash(PASSWORD).decode('utf-8')))
        db.session.add(Admin(username='bob', hospital_id=rows[1].id,
                             password=bcrypt.generate_password_hash(PASSWORD).decode('utf-8')))
        db.session.commit()

        return {'home': rows[0].id, 'donor': rows[1].id, 'needy': rows[2].id}


@pytest.fixture
def add_bag(app):
    """Insert one bag and return its id"""
    models = {'RedBlood': RedBloodBag, 'Plasma': PlasmaBag, 'Platelets': PlateletsBag}

    def _add_bag(component_type, hospital_id, blood_type, rh, amount, days=30, active=True,
                 donor_name='Test Donor'):
        model = models[component_type]
        with _context(app):
            bag = model(donor_name=donor_name, blood_type=blood_type, rh=rh, amount=amount,
                        expiration_date=date.today() + timedelta(days=days),
                        hospital_id=hospital_id, active=active)
            db.session.add(bag)
            db.session.commit()
            return bag.bag_id

    return _add_bag


@pytest.fixture
def login(client):
    def _login(username='alice', password=PASSWORD):
        return client.post('/auth/login', json={'username': username, 'password': password})

    return _login
