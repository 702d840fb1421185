"""
Pytest fixtures for ClinicDesk backend tests.

Provides the test app, a per-test clean database, two clinics (tenant A and
tenant B) with staff in every role, and helpers for addressing a clinic
subdomain and carrying a session cookie.
"""

import pytest

from clinicdesk import create_app
from clinicdesk.constants import ALL_FEATURES_ENABLED, DEFAULT_TIME_SLOTS, Role
from clinicdesk.extensions import db
from clinicdesk.models import Clinic, Patient, User
from clinicdesk.services.auth_service import hash_password, identity_for


ROOT_DOMAIN = "clinicdesk.test"
ROOT_URL = f"http://{ROOT_DOMAIN}"
PASSWORD = "secret123"
SESSION_COOKIE = "clinic-session"

TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
    "SQLALCHEMY_TRACK_MODIFICATIONS": False,
    "JWT_SECRET": "test-signing-secret",
    "ROOT_DOMAIN": ROOT_DOMAIN,
    "AUTH_COOKIE_NAME": SESSION_COOKIE,
    "AUTH_COOKIE_SECURE": False,
}


def clinic_url(clinic) -> str:
    """Base URL for requests addressed to a clinic subdomain."""
    slug = clinic.slug if isinstance(clinic, Clinic) else clinic
    return f"http://{slug}.{ROOT_DOMAIN}"


def session_headers(app, user: User) -> dict:
    """Cookie header carrying a freshly issued session for `user`."""
    clinic = db.session.get(Clinic, user.clinic_id) if user.clinic_id else None
    token = app.extensions["credential_service"].issue(identity_for(user, clinic))
    return {"Cookie": f"{SESSION_COOKIE}={token}"}


def session_token_from(response) -> str | None:
    """Extract the session token from a response's Set-Cookie headers."""
    for header in response.headers.getlist("Set-Cookie"):
        name, _, rest = header.partition("=")
        if name == SESSION_COOKIE:
            return rest.split(";", 1)[0]
    return None


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash():
    """One bcrypt hash shared by every fixture user."""
    return hash_password(PASSWORD)


@pytest.fixture(scope='function')
def client(app):
    """Test client without a cookie jar; sessions travel in explicit headers."""
    return app.test_client(use_cookies=False)


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


def make_clinic(slug: str, name: str, abbreviation: str, **overrides) -> Clinic:
    fields = {
        "name": name,
        "slug": slug,
        "abbreviation": abbreviation,
        "doctors": ["Dr. Rao"],
        "time_slots": list(DEFAULT_TIME_SLOTS),
        "enabled_features": dict(ALL_FEATURES_ENABLED),
    }
    fields.update(overrides)
    clinic = Clinic(**fields)
    db.session.add(clinic)
    db.session.commit()
    return clinic


def make_user(clinic, role: Role, email: str, password_hash: str, **overrides) -> User:
    user = User(
        clinic_id=clinic.id if clinic else None,
        name=overrides.pop("name", email.split("@")[0].title()),
        email=email,
        password_hash=password_hash,
        role=role.value,
        **overrides,
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture(scope='function')
def clinic_a(db_session):
    """Clinic A (first tenant), every feature on."""
    return make_clinic("acme", "Acme Fertility Clinic", "ACM")


@pytest.fixture(scope='function')
def clinic_b(db_session):
    """Clinic B (second tenant), every feature on."""
    return make_clinic("beta", "Beta Women's Health", "BWH")


@pytest.fixture(scope='function')
def admin_a(clinic_a, password_hash):
    return make_user(clinic_a, Role.ADMIN, "admin@acme.test", password_hash, name="Asha Admin")


@pytest.fixture(scope='function')
def receptionist_a(clinic_a, password_hash):
    return make_user(clinic_a, Role.RECEPTIONIST, "desk@acme.test", password_hash, name="Rita Desk")


@pytest.fixture(scope='function')
def nurse_a(clinic_a, password_hash):
    return make_user(clinic_a, Role.NURSE, "nurse@acme.test", password_hash, name="Nina Nurse")


@pytest.fixture(scope='function')
def admin_b(clinic_b, password_hash):
    return make_user(clinic_b, Role.ADMIN, "admin@beta.test", password_hash, name="Bela Admin")


@pytest.fixture(scope='function')
def operator(db_session, password_hash):
    """Platform operator (SUPER_ADMIN, no clinic)."""
    return make_user(None, Role.SUPER_ADMIN, "ops@clinicdesk.test", password_hash, name="Ops")


@pytest.fixture(scope='function')
def patient_a(clinic_a, receptionist_a):
    patient = Patient(clinic_id=clinic_a.id, name="Priya Sharma", phone="9876543210", registered_by_id=receptionist_a.id)
    db.session.add(patient)
    db.session.commit()
    return patient


@pytest.fixture(scope='function')
def patient_b(clinic_b, admin_b):
    patient = Patient(clinic_id=clinic_b.id, name="Meera Iyer", phone="9123456780", registered_by_id=admin_b.id)
    db.session.add(patient)
    db.session.commit()
    return patient
