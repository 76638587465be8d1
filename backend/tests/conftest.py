import os

os.environ.setdefault("SECRET_KEY", "test-only-secret-key-0123456789abcdef")
os.environ.setdefault("ADMIN_LOGIN_ID", "admin001")
os.environ.setdefault("ADMIN_PASSWORD", "Admin@Test-Pass-123")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from app.core.settings import settings
from app.db.session import build_session_factory
from app.main import create_app
from app.models import Base, DoctorProfile, PatientProfile, Role, User


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db(engine):
    session = build_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def api_client(engine):
    app = create_app(engine=engine)
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def admin_credentials():
    return settings.admin_login_id, settings.admin_password


@pytest.fixture()
def auth_headers(api_client, admin_credentials):
    login_id, password = admin_credentials
    response = api_client.post("/auth/login", json={"login_id": login_id, "password": password})
    assert response.status_code == 200, response.text
    token = response.json().get("access_token")
    assert token, "Missing access_token in login response"
    return {"Authorization": f"Bearer {token}"}


def add_doctor(db, user_id, profile_id, login_id=None, is_active=True, name="Dr. Test"):
    db.add(DoctorProfile(id=profile_id, name=name))
    user = User(
        id=user_id,
        login_id=login_id or f"doc-{user_id}",
        role=Role.doctor,
        profile_ref=profile_id,
        is_active=is_active,
        hashed_password="not-a-real-hash",
    )
    db.add(user)
    db.commit()
    return user


def add_patient(db, login_id, assigned_doctor_ref, profile_id=None, user_id=None, name="Test Patient"):
    profile = PatientProfile(
        assigned_doctor_ref=assigned_doctor_ref,
        demographics={"name": name, "age": 60, "gender": "Other"},
        medical_config={"therapy_drug": "Warfarin"},
    )
    if profile_id:
        profile.id = profile_id
    db.add(profile)
    db.flush()
    user = User(
        login_id=login_id,
        role=Role.patient,
        profile_ref=profile.id,
        hashed_password="not-a-real-hash",
    )
    if user_id:
        user.id = user_id
    db.add(user)
    db.commit()
    return user, profile


@pytest.fixture()
def make_doctor(db):
    def _make(user_id, profile_id, **kwargs):
        return add_doctor(db, user_id, profile_id, **kwargs)

    return _make


@pytest.fixture()
def make_patient(db):
    def _make(login_id, assigned_doctor_ref, **kwargs):
        return add_patient(db, login_id, assigned_doctor_ref, **kwargs)

    return _make
