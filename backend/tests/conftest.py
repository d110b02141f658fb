"""
Test configuration and shared fixtures for the SmileSys test suite.

Uses an in-memory SQLite database created from the models for every test,
so each test starts from an empty schema. Email delivery is patched out by
default; tests that care about it inspect ``mock_send_email``.
"""

import os

# Must be set before core.config is imported anywhere
os.environ["DATABASE_URL"] = os.getenv("TEST_DATABASE_URL", "sqlite://")

import pytest
from typing import Callable, Generator, Optional
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.database import Base, get_db
import models  # noqa: F401  (registers all tables)
from models import Clinic, Identity, Membership, Profile
from services.identity_service import IdentityService
from services.jwt_service import jwt_service, TokenPayload


@pytest.fixture(scope="function")
def db_engine():
    """
    Fresh in-memory database per test.

    StaticPool keeps a single connection so every session (including the
    ones FastAPI opens in worker threads) sees the same database.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(bind=engine)

    yield engine

    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Provide a database session bound to the per-test engine."""
    TestingSession = sessionmaker(
        bind=db_engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = TestingSession()

    yield session

    session.close()


@pytest.fixture(autouse=True)
def mock_send_email():
    """Patch the SMTP sender so no test touches the network."""
    with patch("services.email_service.send_email") as mock_send:
        yield mock_send


@pytest.fixture
def captured_codes():
    """Record signup codes as they are emailed, keyed by recipient."""
    codes: dict[str, list[str]] = {}

    def capture(to: str, code: str) -> None:
        codes.setdefault(to, []).append(code)

    with patch("services.email_service.send_signup_code", side_effect=capture):
        yield codes


@pytest.fixture
def client(db_session) -> Generator[TestClient, None, None]:
    """
    Test client with the request database session pointed at ``db_session``.

    The client is not used as a context manager, so the lifespan (and the
    cleanup scheduler) does not start.
    """
    from main import app

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_identity(db_session) -> Callable[..., Identity]:
    """Factory creating an identity with a known password."""
    def _make(email: str = "user@example.com", password: str = "password123", full_name: Optional[str] = None) -> Identity:
        return IdentityService.create_user(db_session, email, password, full_name=full_name)
    return _make


@pytest.fixture
def make_clinic(db_session) -> Callable[..., Clinic]:
    """Factory creating a clinic row."""
    def _make(name: str = "Clínica Sonrisa", first_setup_required: bool = True) -> Clinic:
        clinic = Clinic(name=name, first_setup_required=first_setup_required, subscription_status="trial")
        db_session.add(clinic)
        db_session.commit()
        return clinic
    return _make


@pytest.fixture
def make_clinic_admin(db_session, make_identity, make_clinic) -> Callable[..., tuple[Identity, Clinic]]:
    """Factory creating an identity that administers a clinic (profile + membership)."""
    def _make(email: str = "admin@clinic.com", clinic_name: str = "Clínica Admin") -> tuple[Identity, Clinic]:
        identity = make_identity(email=email)
        clinic = make_clinic(name=clinic_name, first_setup_required=False)
        db_session.add(Profile(id=identity.id, clinic_id=clinic.id, email=identity.email, roles=["admin"]))
        db_session.add(Membership(clinic_id=clinic.id, user_id=identity.id, role="admin"))
        db_session.commit()
        return identity, clinic
    return _make


@pytest.fixture
def auth_headers() -> Callable[[Identity], dict[str, str]]:
    """Build a bearer Authorization header for an identity."""
    def _headers(identity: Identity) -> dict[str, str]:
        token = jwt_service.create_access_token(TokenPayload(sub=identity.id, email=identity.email))
        return {"Authorization": f"Bearer {token}"}
    return _headers
