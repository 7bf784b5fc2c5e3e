"""
Pytest configuration and shared fixtures for MedEase API tests.

This module provides:
- Test database setup (SQLite in-memory)
- FastAPI TestClient configuration
- Users for each role (patient, doctors, admin) and their tokens
- A future appointment slot
"""

import pytest
import os
import sys
from datetime import datetime, timedelta, date
from decimal import Decimal
from typing import Generator

# =============================================================================
# TEST SETTINGS BEFORE ANY IMPORTS
# =============================================================================
# The application engine must never touch a developer's database file
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ.setdefault("LOG_LEVEL", "WARNING")

# Add backend directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from database import Base, User, Patient, Doctor, RoleName
from fixtures.mock_data import make_user, make_doctor, token_for


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def test_engine():
    """Create a test database engine using SQLite in-memory."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def test_db(test_engine) -> Generator[Session, None, None]:
    """Create a test database session with automatic rollback."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def override_get_db(test_db):
    """Override the get_db dependency to use test database."""
    def _override_get_db():
        try:
            yield test_db
        finally:
            pass
    return _override_get_db


# =============================================================================
# APPLICATION FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def app_instance():
    """Create a FastAPI app instance ONCE per test session."""
    from main import app as fastapi_app
    return fastapi_app


@pytest.fixture(scope="function")
def app(app_instance, override_get_db):
    """Configure the app with test database for each test."""
    from database import get_db

    app_instance.dependency_overrides[get_db] = override_get_db
    yield app_instance
    app_instance.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def reset_auth_rate_limit():
    """Every test starts with a fresh attempt budget on the auth endpoints."""
    from middleware import auth_rate_limiter

    auth_rate_limiter.reset()
    yield
    auth_rate_limiter.reset()


@pytest.fixture(scope="function")
def client(app) -> Generator[TestClient, None, None]:
    """Create a TestClient for making requests to the app."""
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


# =============================================================================
# USER FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def test_user_data():
    """Sign-up payload for a new patient (camelCase, as sent on the wire)."""
    return {
        "firstName": "Jane",
        "lastName": "Roe",
        "email": "jane.roe@example.com",
        "phone": "5551234567",
        "password": "secret123",
        "dateOfBirth": "1992-07-01",
        "gender": "FEMALE",
    }


@pytest.fixture(scope="function")
def patient_user(test_db) -> User:
    """John Doe, a patient with an empty record."""
    user = make_user(
        test_db,
        email="patient@medease.com",
        password="password123",
        role=RoleName.PATIENT,
        first_name="John",
        last_name="Doe",
        phone="1234567890",
        date_of_birth=date(1990, 5, 15),
        gender="MALE",
    )
    user.patient = Patient()
    test_db.commit()
    test_db.refresh(user)
    return user


@pytest.fixture(scope="function")
def patient(patient_user) -> Patient:
    return patient_user.patient


@pytest.fixture(scope="function")
def other_patient_user(test_db) -> User:
    user = make_user(
        test_db,
        email="mary.major@example.com",
        password="password123",
        role=RoleName.PATIENT,
        first_name="Mary",
        last_name="Major",
    )
    user.patient = Patient()
    test_db.commit()
    test_db.refresh(user)
    return user


@pytest.fixture(scope="function")
def doctor(test_db) -> Doctor:
    """Dr. Sarah Johnson, an available cardiologist."""
    return make_doctor(
        test_db,
        email="dr.johnson@medease.com",
        first_name="Sarah",
        last_name="Johnson",
        specialty="Cardiology",
        qualifications="MD, FACC",
        consultation_fee=Decimal("200.00"),
        rating=4.8,
        total_reviews=150,
    )


@pytest.fixture(scope="function")
def unavailable_doctor(test_db) -> Doctor:
    """Dr. Michael Smith, not accepting bookings."""
    return make_doctor(
        test_db,
        email="dr.smith@medease.com",
        first_name="Michael",
        last_name="Smith",
        specialty="General Practice",
        is_available=False,
        consultation_fee=Decimal("150.00"),
    )


@pytest.fixture(scope="function")
def admin_user(test_db) -> User:
    user = make_user(
        test_db,
        email="admin@medease.com",
        password="admin123",
        role=RoleName.ADMIN,
        first_name="Ada",
        last_name="Admin",
    )
    test_db.commit()
    test_db.refresh(user)
    return user


@pytest.fixture(scope="function")
def inactive_user(test_db) -> User:
    """Create an inactive patient for testing inactive user handling."""
    user = make_user(
        test_db,
        email="inactive@example.com",
        password="password123",
        role=RoleName.PATIENT,
        first_name="Ina",
        last_name="Active",
        is_active=False,
    )
    user.patient = Patient()
    test_db.commit()
    test_db.refresh(user)
    return user


# =============================================================================
# AUTHENTICATION FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def patient_token(patient_user) -> str:
    return token_for(patient_user)


@pytest.fixture(scope="function")
def doctor_token(doctor) -> str:
    return token_for(doctor.user)


@pytest.fixture(scope="function")
def admin_token(admin_user) -> str:
    return token_for(admin_user)


@pytest.fixture(scope="function")
def expired_token(patient_user) -> str:
    """Generate an expired JWT token for testing expiration."""
    return token_for(patient_user, minutes=-10)


@pytest.fixture(scope="function")
def auth_headers(patient_token) -> dict:
    """Authorization headers for the patient."""
    return {"Authorization": f"Bearer {patient_token}"}


@pytest.fixture(scope="function")
def doctor_auth_headers(doctor_token) -> dict:
    return {"Authorization": f"Bearer {doctor_token}"}


@pytest.fixture(scope="function")
def admin_auth_headers(admin_token) -> dict:
    return {"Authorization": f"Bearer {admin_token}"}


# =============================================================================
# SCHEDULING FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def future_slot() -> datetime:
    """10:00 one week from today."""
    return (datetime.now() + timedelta(days=7)).replace(hour=10, minute=0, second=0, microsecond=0)
