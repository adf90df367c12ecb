"""
Test configuration and shared fixtures for the dental practice test suite.

Uses an in-memory SQLite database; every test gets freshly created tables.
"""

import os

# Must be set before core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ["SCHEDULER_ENABLED"] = "false"

from typing import Callable, Dict, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import Base, get_db
import models  # noqa: F401  # register all tables on Base.metadata
from models import Doctor, Patient, User
from services.jwt_service import jwt_service, TokenPayload


TEST_DATABASE_URL = "sqlite://"


@pytest.fixture(scope="session")
def db_engine():
    """
    Create a database engine for the test session.

    StaticPool keeps the single in-memory connection alive across sessions.
    """
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Provide a session on freshly created tables."""
    Base.metadata.create_all(bind=db_engine)
    TestingSession = sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)
    session = TestingSession()

    yield session

    session.close()
    Base.metadata.drop_all(bind=db_engine)


@pytest.fixture
def client(db_session):
    """Create test client with database override."""
    from main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.pop(get_db, None)


def create_user(db_session: Session, email: str, role: str, name: str | None = None, password: str | None = None) -> User:
    """Create an active user, optionally with a password."""
    user = User(
        email=email,
        role=role,
        name=name,
        is_active=True,
        password_hash=jwt_service.hash_password(password) if password else None,
    )
    db_session.add(user)
    db_session.commit()
    return user


def auth_headers_for(user: User) -> Dict[str, str]:
    """Bearer header with a real access token for the user."""
    token = jwt_service.create_access_token(TokenPayload(
        sub=str(user.id),
        user_id=user.id,
        email=user.email,
        role=user.role,
        name=user.name,
    ))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_user(db_session) -> User:
    return create_user(db_session, "admin@studio.it", "admin", "Anna Admin", password="segreta123")


@pytest.fixture
def manager_user(db_session) -> User:
    return create_user(db_session, "manager@studio.it", "manager", "Marco Manager")


@pytest.fixture
def secretary_user(db_session) -> User:
    return create_user(db_session, "segreteria@studio.it", "secretary", "Sara Segreteria")


@pytest.fixture
def patient_user(db_session) -> User:
    return create_user(db_session, "paziente@example.com", "patient", "Paolo Paziente")


@pytest.fixture
def auth_headers() -> Callable[[User], Dict[str, str]]:
    return auth_headers_for


@pytest.fixture
def sample_patient(db_session) -> Patient:
    patient = Patient(
        first_name="Mario",
        last_name="Rossi",
        email="mario.rossi@example.com",
        phone="+393331234567",
    )
    db_session.add(patient)
    db_session.commit()
    return patient


@pytest.fixture
def sample_doctor(db_session) -> Doctor:
    doctor = Doctor(full_name="Giulia Bianchi", specialty="Odontoiatra", color="#0ea5e9")
    db_session.add(doctor)
    db_session.commit()
    return doctor
