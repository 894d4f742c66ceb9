import os
import tempfile

# Must be set before anything imports carelink (settings are cached).
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["FILE_STORAGE_ROOT"] = tempfile.mkdtemp(prefix="carelink-test-")
os.environ["EMAIL_SANDBOX_MODE"] = "false"
os.environ["SCHEDULE_TIMEZONE"] = "UTC"
os.environ["DISPLAY_TIMEZONE"] = "UTC"
os.environ["LOG_LEVEL"] = "WARNING"

import pytest
from fastapi.testclient import TestClient

from carelink.main import app
from carelink.core.database import SessionLocal, engine
from carelink.core.security import create_access_token, get_password_hash
from carelink.models.base import Base
from carelink.models.consultation import Consultation, ConsultationStatus
from carelink.models.profile import Profile
from carelink.models.user import AppRole, User, UserRole
from carelink.services.hospital_service import ensure_hospital

DEFAULT_PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    """
    Captures outgoing email instead of talking to SMTP/Resend.
    """
    sent = []

    def fake_send_email(to_email, subject, body, *, reason=None, html=False):
        sent.append({"to": to_email, "subject": subject, "body": body, "reason": reason, "html": html})

    monkeypatch.setattr("carelink.services.notification_service.send_email", fake_send_email)
    return sent


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(*roles: AppRole, email: str | None = None, full_name: str = "Test User",
                   password: str = DEFAULT_PASSWORD, with_profile: bool = True) -> User:
        counter["n"] += 1
        email = email or f"user{counter['n']}@carelink.io"
        user = User(email=email, hashed_password=get_password_hash(password), is_active=True)
        if with_profile:
            user.profile = Profile(full_name=full_name, email=email, phone="+254700000000", country="Kenya")
        for role in roles:
            user.roles.append(UserRole(role=role))
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> dict[str, str]:
        token = create_access_token(subject=str(user.id), roles=[])
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
def patient(make_user):
    return make_user(AppRole.PATIENT, email="amina@carelink.io", full_name="Amina Otieno")


@pytest.fixture
def consultation_admin(make_user):
    return make_user(AppRole.CONSULTATION_ADMIN, email="coordinator@carelink.io", full_name="Care Coordinator")


@pytest.fixture
def super_admin(make_user):
    return make_user(AppRole.SUPER_ADMIN, email="root@carelink.io", full_name="Platform Owner")


@pytest.fixture
def hospital(db):
    h = ensure_hospital(db, name="Aga Khan University Hospital", city="Nairobi", country="Kenya")
    db.commit()
    db.refresh(h)
    return h


@pytest.fixture
def make_consultation(db, hospital):
    def _make_consultation(patient: User, **overrides) -> Consultation:
        values = {
            "patient_id": patient.id,
            "hospital_id": hospital.id,
            "specialist_name": "Dr. Wanjiru Kamau",
            "specialty": "Cardiology",
            "condition_description": "Recurring chest pain during light exercise for two months.",
            "status": ConsultationStatus.PENDING,
        }
        values.update(overrides)
        consultation = Consultation(**values)
        db.add(consultation)
        db.commit()
        db.refresh(consultation)
        return consultation

    return _make_consultation
