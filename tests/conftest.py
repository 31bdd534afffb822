"""
Test Configuration and Fixtures
"""
import os
import pytest
from medportal import create_app, db
from medportal.models import User, UserRole, DoctorProfile

PASSWORD = 'testpassword123'


@pytest.fixture(scope='session')
def app():
    """Create application for testing"""
    os.environ['SECRET_KEY'] = 'test-secret-key'

    app = create_app('testing')
    app.config['TESTING'] = True
    app.config['WTF_CSRF_ENABLED'] = False

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.drop_all()


@pytest.fixture(autouse=True)
def clean_tables(app):
    """Empty every table after each test"""
    yield
    with app.app_context():
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()


@pytest.fixture(scope='function')
def client(app):
    """Create test client"""
    return app.test_client()


def _create_user(app, email, role, given_name, family_name):
    with app.app_context():
        user = User(
            email=email,
            given_name=given_name,
            family_name=family_name,
            role=role,
        )
        user.set_password(PASSWORD)
        db.session.add(user)
        db.session.commit()
        return {'id': user.id, 'email': email, 'password': PASSWORD}


@pytest.fixture(scope='function')
def test_user(app):
    """Create test patient"""
    return _create_user(app, 'patient@example.com', UserRole.PATIENT, 'Pat', 'Ient')


@pytest.fixture(scope='function')
def test_doctor(app):
    """Create test doctor with a directory profile"""
    doctor = _create_user(app, 'house@example.com', UserRole.DOCTOR, 'Gregory', 'House')
    with app.app_context():
        profile = DoctorProfile(
            email=doctor['email'],
            name='Dr. Gregory House',
            specialization='Diagnostics',
            experience=20,
            degree='MD',
            clinic_location='Princeton, NJ',
            fees=300.0,
            hospital_affiliation='Princeton-Plainsboro',
        )
        db.session.add(profile)
        db.session.commit()
    return doctor


def login(client, user):
    return client.post('/login', data={
        'email': user['email'],
        'password': user['password'],
    })


@pytest.fixture(scope='function')
def authenticated_client(client, test_user):
    """Create authenticated test client"""
    login(client, test_user)
    return client


@pytest.fixture(scope='function')
def doctor_client(app, test_doctor):
    """Separate client logged in as the doctor"""
    client = app.test_client()
    login(client, test_doctor)
    return client


@pytest.fixture
def fake_model(monkeypatch):
    """Replace the model call with a canned response; records each call."""
    from medportal.services import ai_service

    class FakeModel:
        def __init__(self):
            self.response = ''
            self.error = None
            self.calls = []

        def __call__(self, prompt, image_bytes=None, mime_type=None, temperature=0.2):
            self.calls.append({'prompt': prompt, 'image_bytes': image_bytes, 'mime_type': mime_type})
            if self.error is not None:
                raise self.error
            return self.response

    fake = FakeModel()
    monkeypatch.setattr(ai_service, 'generate_text', fake)
    return fake


@pytest.fixture(scope='function')
def other_doctor_client(app):
    """Client logged in as a second doctor without a directory profile"""
    other = _create_user(app, 'wilson@example.com', UserRole.DOCTOR, 'James', 'Wilson')
    client = app.test_client()
    login(client, other)
    return client
