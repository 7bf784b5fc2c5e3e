"""
Account registration, sign-in and token maintenance.

Registration always creates a PATIENT; doctors are created by an admin through
the doctor directory. Tokens are stateless JWTs, so logging out only records
the event; the client discards its tokens.
"""

from datetime import timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from auth import (
    authenticate_user, create_access_token, create_refresh_token, decode_access_token,
    decode_refresh_token, get_password_hash, get_user, verify_password
)
from config import ACCESS_TOKEN_EXPIRE_MINUTES
from database import User, Role, Patient, RoleName
from errors import ConflictError, UnauthorizedError, ValidationFailedError
from structured_logging import log_account_event, log_security_event

EMAIL_IN_USE = "Email is already in use!"


def get_or_create_role(db: Session, name: RoleName) -> Role:
    """Role rows are created on demand so a fresh database can accept signups."""
    role = db.query(Role).filter(Role.name == name.value).first()
    if role is None:
        role = Role(name=name.value)
        db.add(role)
        db.flush()
    return role


def create_user(
    db: Session,
    *,
    first_name: str,
    last_name: str,
    email: str,
    password: str,
    role: RoleName,
    phone: Optional[str] = None,
    date_of_birth=None,
    gender=None,
) -> User:
    """Add a user holding `role`; the caller commits through commit_new_account."""
    if get_user(db, email) is not None:
        raise ConflictError(EMAIL_IN_USE)

    user = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        phone=phone,
        hashed_password=get_password_hash(password),
        date_of_birth=date_of_birth,
        gender=getattr(gender, "value", gender),
        is_active=True,
    )
    user.roles.append(get_or_create_role(db, role))
    db.add(user)
    return user


def commit_new_account(db: Session):
    """Commit a freshly created account; a concurrent signup with the same email loses here."""
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(EMAIL_IN_USE)


def _access_token(user: User) -> str:
    return create_access_token(
        data={"sub": user.email},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def build_auth_response(user: User) -> dict:
    return {
        "token": _access_token(user),
        "type": "Bearer",
        "id": user.id,
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "roles": user.role_names,
        "refresh_token": create_refresh_token(user.email),
    }


def register(db: Session, request) -> dict:
    """Create a patient account and sign it in."""
    user = create_user(
        db,
        first_name=request.first_name,
        last_name=request.last_name,
        email=request.email,
        password=request.password,
        role=RoleName.PATIENT,
        phone=request.phone,
        date_of_birth=request.date_of_birth,
        gender=request.gender,
    )
    user.patient = Patient()
    commit_new_account(db)
    db.refresh(user)

    log_account_event("registered", user.id, patient_id=user.patient.id)
    return build_auth_response(user)


def authenticate(db: Session, email: str, password: str) -> dict:
    user = authenticate_user(db, email, password)
    if not user:
        log_security_event("login_failed", "medium", details=f"email={email}")
        raise UnauthorizedError("Invalid email or password")
    if not user.is_active:
        log_security_event("login_inactive_user", "medium", user_id=user.id)
        raise UnauthorizedError("User account is disabled")

    log_account_event("signed_in", user.id, roles=user.role_names)
    return build_auth_response(user)


# =============================================================================
# TOKEN MAINTENANCE
# =============================================================================

def refresh_access_token(db: Session, refresh_token: str) -> dict:
    """Trade a refresh token for a new access token."""
    email = decode_refresh_token(refresh_token)
    user = get_user(db, email) if email else None
    if user is None or not user.is_active:
        log_security_event("invalid_refresh_token", "low", user_id=getattr(user, "id", None))
        raise UnauthorizedError("Invalid refresh token")

    log_account_event("token_refreshed", user.id)
    return {
        "token": _access_token(user),
        "type": "Bearer",
        "expires_in": ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    }


def validate_token(db: Session, token: str) -> dict:
    """
    Report whether an access token is usable.

    Undecodable or expired tokens give {"valid": False}; a well-formed token
    whose account is gone or disabled raises UnauthorizedError.
    """
    email = decode_access_token(token)
    if email is None:
        return {"valid": False}

    user = get_user(db, email)
    if user is None or not user.is_active:
        raise UnauthorizedError("Invalid token")

    return {
        "valid": True,
        "user": {
            "id": user.id,
            "email": user.email,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "roles": user.role_names,
        },
    }


def change_password(db: Session, user: User, current_password: str, new_password: str) -> dict:
    if not verify_password(current_password, user.hashed_password):
        log_security_event("password_change_rejected", "medium", user_id=user.id)
        raise UnauthorizedError("Current password is incorrect")
    if verify_password(new_password, user.hashed_password):
        raise ValidationFailedError("New password must be different from current password")

    user.hashed_password = get_password_hash(new_password)
    db.commit()

    log_account_event("password_changed", user.id)
    return {"message": "Password changed successfully"}


def logout(user: User) -> dict:
    log_account_event("logged_out", user.id)
    return {"message": "Logout successful"}
