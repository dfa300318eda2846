"""
Pytest fixtures for halalcert backend tests.

Provides the test database, staff users, recording collaborators (mail,
payment) and an authenticated test client.
"""

import pytest

from halalcert import create_app
from halalcert.extensions import db
from halalcert.models import User
from halalcert.services import application_service, notification_service, payment_service
from halalcert.services.actor import Actor
from halalcert.services.auth_service import hash_password
from halalcert.services.payment_service import PaymentVerification


ADMIN_ID = 1
INSPECTOR_ID = 7
OTHER_INSPECTOR_ID = 9
PASSWORD = "Password123!"

ADMIN = Actor(user_id=ADMIN_ID, role="admin")
INSPECTOR = Actor(user_id=INSPECTOR_ID, role="inspector")
OTHER_INSPECTOR = Actor(user_id=OTHER_INSPECTOR_ID, role="inspector")


class RecordingGateway:
    """Notification gateway that keeps messages in memory; set fail=True to simulate an outage."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, to_address, subject, body):
        if self.fail:
            raise ConnectionError("mail server unreachable")
        self.sent.append({"to": to_address, "subject": subject, "body": body})

    def subjects(self, to_address=None):
        return [m["subject"] for m in self.sent if to_address is None or m["to"] == to_address]


class ScriptedVerifier:
    """Payment verifier answering from a dict; unknown references are unpaid."""

    def __init__(self):
        self.results = {}
        self.error = None

    def verify(self, reference):
        if self.error is not None:
            raise self.error
        return self.results.get(reference, PaymentVerification(succeeded=False, status="requires_payment_method"))


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'BCRYPT_ROUNDS': 4,
        'CERTIFICATE_BASE_URL': 'https://halal.example.org',
        'NOTIFICATION_BACKEND': 'log',
        'PAYMENT_VERIFIER': 'demo',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    # Clear all data but keep schema
    db.session.rollback()
    meta = db.metadata
    for table in reversed(meta.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()
    db.session.expunge_all()

    yield db.session

    # Cleanup after test
    db.session.rollback()
    db.session.expunge_all()


@pytest.fixture(scope='function')
def mailbox(app, db_session):
    gateway = RecordingGateway()
    app.extensions[notification_service.EXTENSION_KEY] = gateway
    yield gateway
    app.extensions.pop(notification_service.EXTENSION_KEY, None)


@pytest.fixture(scope='function')
def payments(app, db_session):
    verifier = ScriptedVerifier()
    app.extensions[payment_service.EXTENSION_KEY] = verifier
    yield verifier
    app.extensions.pop(payment_service.EXTENSION_KEY, None)


@pytest.fixture(scope='function')
def staff(db_session, mailbox):
    """Admin (id 1) and two inspectors (ids 7 and 9)."""
    users = [
        User(id=ADMIN_ID, username="admin", email="admin@halalcert.local", role="admin"),
        User(id=INSPECTOR_ID, username="yusuf", email="yusuf@halalcert.local", role="inspector"),
        User(id=OTHER_INSPECTOR_ID, username="maryam", email="maryam@halalcert.local", role="inspector"),
    ]
    password_hash = hash_password(PASSWORD)
    for user in users:
        user.password_hash = password_hash
        user.is_active = True
        db_session.add(user)
    db_session.commit()
    return {user.id: user for user in users}


def store_payload(**overrides) -> dict:
    data = {
        "name": "Al-Noor Kitchen",
        "address": "12 Lygon Street",
        "city": "Melbourne",
        "state": "Victoria",
        "postcode": "3053",
        "business_type": "restaurant",
        "abn": "12345678901",
        "established": "2015",
        "owner_name": "Amina Rahman",
        "owner_email": "amina@alnoor.example",
        "owner_phone": "+61 3 9000 1234",
    }
    data.update(overrides)
    return data


def application_payload(**overrides) -> dict:
    data = {
        "products": ["Lamb kebab", "Chicken biryani"],
        "suppliers": [{"name": "Halal Meats Co", "material": "Lamb", "certified": True}],
        "employee_count": "6-10",
        "operating_hours": "Mon-Sun 11:00-22:00",
    }
    data.update(overrides)
    return data


@pytest.fixture(scope='function')
def submitted(staff):
    """A pending application from a fresh store."""
    return application_service.submit(store_payload(), application_payload())


def get_auth_token(client, username: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, staff):
    return auth_headers(get_auth_token(client, "admin"))


@pytest.fixture(scope='function')
def inspector_headers(client, staff):
    return auth_headers(get_auth_token(client, "yusuf"))


@pytest.fixture(scope='function')
def other_inspector_headers(client, staff):
    return auth_headers(get_auth_token(client, "maryam"))
