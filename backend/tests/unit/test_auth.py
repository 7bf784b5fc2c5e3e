"""
Unit tests for authentication functions.

Tests the core authentication logic including:
- Password hashing and verification
- JWT token creation and validation
- User retrieval and credential checks
- Registration and sign-in through the accounts module
"""

import inspect
import pytest
from datetime import datetime, timedelta
from fastapi import HTTPException
from jose import jwt, JWTError
import sys
import os

# Add backend to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from auth import (
    get_password_hash,
    verify_password,
    create_access_token,
    create_refresh_token,
    decode_access_token,
    decode_refresh_token,
    get_current_user,
    get_current_active_user,
    require_roles,
    get_user,
    authenticate_user,
    SECRET_KEY,
    REFRESH_SECRET_KEY,
    ALGORITHM,
    TokenData
)
from config import ACCESS_TOKEN_EXPIRE_MINUTES, REFRESH_TOKEN_EXPIRE_DAYS
import accounts
from accounts import (
    register, authenticate, get_or_create_role, refresh_access_token, validate_token,
    change_password, logout
)
from database import Patient, Role, RoleName, User
from errors import ConflictError, UnauthorizedError, ValidationFailedError
from models import SignupRequest


class TestPasswordHashing:
    """Tests for password hashing functions."""

    def test_password_hashing_creates_hash(self):
        """Test that password hashing creates a non-empty hash."""
        password = "password123"
        hashed = get_password_hash(password)

        assert hashed is not None
        assert len(hashed) > 0
        assert hashed != password

    def test_password_hashing_creates_unique_hashes(self):
        """Test that the same password creates different hashes (due to salting)."""
        hash1 = get_password_hash("password123")
        hash2 = get_password_hash("password123")

        assert hash1 != hash2

    def test_password_hashing_handles_unicode(self):
        """Test password hashing with unicode characters."""
        password = "Passw0rdéñüß"
        hashed = get_password_hash(password)

        assert verify_password(password, hashed)


class TestPasswordVerification:
    """Tests for password verification functions."""

    def test_verify_correct_password(self):
        hashed = get_password_hash("doctor123")
        assert verify_password("doctor123", hashed) is True

    def test_verify_incorrect_password(self):
        hashed = get_password_hash("doctor123")
        assert verify_password("doctor124", hashed) is False

    def test_verify_empty_password(self):
        hashed = get_password_hash("doctor123")
        assert verify_password("", hashed) is False

    def test_verify_case_sensitive(self):
        """Test that password verification is case-sensitive."""
        hashed = get_password_hash("Doctor123")
        assert verify_password("doctor123", hashed) is False


class TestJWTTokenCreation:
    """Tests for JWT token creation."""

    def test_create_token_with_default_expiration(self):
        """Default expiry comes from ACCESS_TOKEN_EXPIRE_MINUTES."""
        token = create_access_token({"sub": "patient@medease.com"})

        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        assert payload["sub"] == "patient@medease.com"
        assert "exp" in payload

    def test_create_token_with_custom_expiration(self):
        """Test token creation with custom expiration delta."""
        expires_delta = timedelta(hours=2)
        token = create_access_token({"sub": "patient@medease.com"}, expires_delta=expires_delta)

        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        exp_time = datetime.utcfromtimestamp(payload["exp"])
        expected_exp = datetime.utcnow() + expires_delta
        assert abs((exp_time - expected_exp).total_seconds()) < 10

    def test_token_is_valid_jwt_format(self):
        """Test that created token has valid JWT format (3 parts separated by dots)."""
        token = create_access_token({"sub": "patient@medease.com"})
        assert len(token.split(".")) == 3


class TestJWTTokenValidation:
    """Tests for JWT token validation."""

    def test_expired_token_raises_error(self):
        token = create_access_token({"sub": "patient@medease.com"}, expires_delta=timedelta(minutes=-10))

        with pytest.raises(JWTError):
            jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])

    def test_invalid_signature_raises_error(self):
        token = create_access_token({"sub": "patient@medease.com"})

        with pytest.raises(JWTError):
            jwt.decode(token, "wrong-secret-key", algorithms=[ALGORITHM])

    def test_tampered_token_raises_error(self):
        token = create_access_token({"sub": "patient@medease.com"})
        tampered = token[:-1] + ("X" if token[-1] != "X" else "Y")

        with pytest.raises(JWTError):
            jwt.decode(tampered, SECRET_KEY, algorithms=[ALGORITHM])


class TestTokenData:
    """Tests for TokenData class."""

    def test_token_data_initialization(self):
        assert TokenData(email="a@b.com").email == "a@b.com"

    def test_token_data_default_none(self):
        assert TokenData().email is None


class TestGetUser:
    """Tests for get_user function."""

    def test_get_existing_user(self, test_db, patient_user):
        user = get_user(test_db, "patient@medease.com")

        assert user is not None
        assert user.id == patient_user.id

    def test_get_nonexistent_user(self, test_db):
        assert get_user(test_db, "nobody@medease.com") is None


class TestAuthenticateUser:
    """Tests for authenticate_user function."""

    def test_authenticate_valid_credentials(self, test_db, patient_user):
        user = authenticate_user(test_db, "patient@medease.com", "password123")

        assert user is not False
        assert user.email == "patient@medease.com"

    def test_authenticate_wrong_password(self, test_db, patient_user):
        assert authenticate_user(test_db, "patient@medease.com", "wrong-password") is False

    def test_authenticate_nonexistent_user(self, test_db):
        assert authenticate_user(test_db, "nobody@medease.com", "password123") is False


class TestAccounts:
    """Tests for registration and sign-in."""

    def _signup(self, **overrides):
        data = {
            "first_name": "Jane",
            "last_name": "Roe",
            "email": "jane.roe@example.com",
            "phone": "5551234567",
            "password": "secret123",
        }
        data.update(overrides)
        return SignupRequest(**data)

    def test_register_creates_patient_with_role(self, test_db):
        """Registration creates the PATIENT role on demand and a linked Patient."""
        response = register(test_db, self._signup())

        assert response["type"] == "Bearer"
        assert response["roles"] == ["PATIENT"]
        assert response["first_name"] == "Jane"

        user = get_user(test_db, "jane.roe@example.com")
        assert user.has_role(RoleName.PATIENT)
        assert test_db.query(Patient).filter(Patient.user_id == user.id).count() == 1

        payload = jwt.decode(response["token"], SECRET_KEY, algorithms=[ALGORITHM])
        assert payload["sub"] == "jane.roe@example.com"

    def test_register_duplicate_email(self, test_db, patient_user):
        with pytest.raises(ConflictError) as exc_info:
            register(test_db, self._signup(email="patient@medease.com"))

        assert exc_info.value.message == "Email is already in use!"

    def test_get_or_create_role_reuses_row(self, test_db):
        first = get_or_create_role(test_db, RoleName.DOCTOR)
        second = get_or_create_role(test_db, RoleName.DOCTOR)

        assert first.id == second.id
        assert test_db.query(Role).filter(Role.name == "DOCTOR").count() == 1

    def test_authenticate_returns_token_response(self, test_db, patient_user):
        response = authenticate(test_db, "patient@medease.com", "password123")

        assert response["id"] == patient_user.id
        assert response["roles"] == ["PATIENT"]

    def test_authenticate_wrong_password(self, test_db, patient_user):
        with pytest.raises(UnauthorizedError):
            authenticate(test_db, "patient@medease.com", "nope-nope")

    def test_authenticate_inactive_user(self, test_db, inactive_user):
        with pytest.raises(UnauthorizedError):
            authenticate(test_db, "inactive@example.com", "password123")

    def test_register_email_taken_at_commit(self, test_db, patient_user, monkeypatch):
        """A concurrent signup that slips past the lookup still gets a conflict."""
        monkeypatch.setattr(accounts, "get_user", lambda db, email: None)

        with pytest.raises(ConflictError) as exc_info:
            register(test_db, self._signup(email="patient@medease.com"))

        assert exc_info.value.message == "Email is already in use!"
        # the session was rolled back and is usable again
        assert test_db.query(User).filter(User.email == "patient@medease.com").count() == 1


class TestRefreshTokens:
    """Refresh tokens use their own key and type claim."""

    def test_refresh_token_payload(self):
        token = create_refresh_token("patient@medease.com")

        payload = jwt.decode(token, REFRESH_SECRET_KEY, algorithms=[ALGORITHM])
        assert payload["sub"] == "patient@medease.com"
        assert payload["type"] == "refresh"
        exp_time = datetime.utcfromtimestamp(payload["exp"])
        assert abs((exp_time - (datetime.utcnow() + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS))).total_seconds()) < 10

    def test_tokens_are_not_interchangeable(self):
        access = create_access_token({"sub": "patient@medease.com"})
        refresh = create_refresh_token("patient@medease.com")

        assert decode_access_token(access) == "patient@medease.com"
        assert decode_refresh_token(refresh) == "patient@medease.com"
        assert decode_access_token(refresh) is None
        assert decode_refresh_token(access) is None

    def test_refresh_claim_under_access_key_rejected(self):
        forged = jwt.encode({"sub": "patient@medease.com", "type": "refresh"}, SECRET_KEY, algorithm=ALGORITHM)
        assert decode_access_token(forged) is None

    def test_expired_refresh_token(self):
        expired = jwt.encode(
            {"sub": "patient@medease.com", "type": "refresh", "exp": datetime.utcnow() - timedelta(minutes=1)},
            REFRESH_SECRET_KEY,
            algorithm=ALGORITHM,
        )
        assert decode_refresh_token(expired) is None


class TestDependencies:
    """Current-user dependencies run synchronously in the threadpool."""

    def test_dependencies_are_plain_functions(self):
        assert not inspect.iscoroutinefunction(get_current_user)
        assert not inspect.iscoroutinefunction(get_current_active_user)
        assert not inspect.iscoroutinefunction(require_roles(RoleName.ADMIN))

    def test_get_current_user_resolves_token(self, test_db, patient_user):
        token = create_access_token({"sub": "patient@medease.com"})

        assert get_current_user(token=token, db=test_db).id == patient_user.id

    def test_get_current_user_rejects_refresh_token(self, test_db, patient_user):
        forged = jwt.encode({"sub": "patient@medease.com", "type": "refresh"}, SECRET_KEY, algorithm=ALGORITHM)

        with pytest.raises(HTTPException) as exc_info:
            get_current_user(token=forged, db=test_db)

        assert exc_info.value.status_code == 401

    def test_inactive_user_rejected(self, inactive_user):
        with pytest.raises(HTTPException) as exc_info:
            get_current_active_user(current_user=inactive_user)

        assert exc_info.value.status_code == 400

    def test_role_check(self, patient_user):
        check_admin = require_roles(RoleName.ADMIN)
        check_patient = require_roles(RoleName.PATIENT)

        assert check_patient(current_user=patient_user) is patient_user
        with pytest.raises(HTTPException) as exc_info:
            check_admin(current_user=patient_user)
        assert exc_info.value.status_code == 403


class TestTokenMaintenance:
    """Tests for refresh, validation, password change and logout."""

    def test_refresh_issues_access_token(self, test_db, patient_user):
        response = refresh_access_token(test_db, create_refresh_token("patient@medease.com"))

        assert response["type"] == "Bearer"
        assert response["expires_in"] == ACCESS_TOKEN_EXPIRE_MINUTES * 60
        assert decode_access_token(response["token"]) == "patient@medease.com"

    def test_refresh_with_access_token_rejected(self, test_db, patient_user):
        with pytest.raises(UnauthorizedError, match="Invalid refresh token"):
            refresh_access_token(test_db, create_access_token({"sub": "patient@medease.com"}))

    def test_refresh_for_inactive_user_rejected(self, test_db, inactive_user):
        with pytest.raises(UnauthorizedError):
            refresh_access_token(test_db, create_refresh_token("inactive@example.com"))

    def test_refresh_for_deleted_user_rejected(self, test_db):
        with pytest.raises(UnauthorizedError):
            refresh_access_token(test_db, create_refresh_token("gone@example.com"))

    def test_validate_token(self, test_db, patient_user):
        result = validate_token(test_db, create_access_token({"sub": "patient@medease.com"}))

        assert result["valid"] is True
        assert result["user"]["id"] == patient_user.id
        assert result["user"]["roles"] == ["PATIENT"]

    def test_validate_garbage_token(self, test_db):
        assert validate_token(test_db, "not-a-jwt") == {"valid": False}

    def test_validate_token_of_inactive_user(self, test_db, inactive_user):
        with pytest.raises(UnauthorizedError, match="Invalid token"):
            validate_token(test_db, create_access_token({"sub": "inactive@example.com"}))

    def test_change_password(self, test_db, patient_user):
        response = change_password(test_db, patient_user, "password123", "newsecret456")

        assert response == {"message": "Password changed successfully"}
        assert authenticate_user(test_db, "patient@medease.com", "newsecret456")
        assert authenticate_user(test_db, "patient@medease.com", "password123") is False

    def test_change_password_wrong_current(self, test_db, patient_user):
        with pytest.raises(UnauthorizedError, match="Current password is incorrect"):
            change_password(test_db, patient_user, "not-my-password", "newsecret456")

    def test_change_password_same_password(self, test_db, patient_user):
        with pytest.raises(ValidationFailedError, match="must be different"):
            change_password(test_db, patient_user, "password123", "password123")

    def test_logout(self, patient_user):
        assert logout(patient_user) == {"message": "Logout successful"}

    def test_signin_includes_refresh_token(self, test_db, patient_user):
        response = authenticate(test_db, "patient@medease.com", "password123")

        assert decode_refresh_token(response["refresh_token"]) == "patient@medease.com"
