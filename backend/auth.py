"""
Authentication helpers

- Password hashing (bcrypt via passlib)
- JWT access tokens (python-jose)
- FastAPI dependencies for the current user and role checks
"""

from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlalchemy.orm import Session

from config import (
    SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES, REFRESH_SECRET_KEY, REFRESH_TOKEN_EXPIRE_DAYS
)
from database import get_db, User, Patient, Doctor, RoleName
from structured_logging import log_security_event, set_context

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/signin")


class TokenData(BaseModel):
    email: Optional[str] = None


# =============================================================================
# PASSWORDS
# =============================================================================

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# =============================================================================
# USERS & TOKENS
# =============================================================================

def get_user(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email).first()


def authenticate_user(db: Session, email: str, password: str):
    """Return the user when the credentials match, otherwise False."""
    user = get_user(db, email)
    if not user:
        return False
    if not verify_password(password, user.hashed_password):
        return False
    return user


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def create_refresh_token(email: str) -> str:
    expire = datetime.utcnow() + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
    return jwt.encode({"sub": email, "type": "refresh", "exp": expire}, REFRESH_SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Optional[str]:
    """Email carried by a valid, unexpired access token, else None."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") == "refresh":
        return None
    return payload.get("sub")


def decode_refresh_token(token: str) -> Optional[str]:
    """Email carried by a valid, unexpired refresh token, else None."""
    try:
        payload = jwt.decode(token, REFRESH_SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if payload.get("type") != "refresh":
        return None
    return payload.get("sub")


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        email: str = payload.get("sub")
        if email is None or payload.get("type") == "refresh":
            raise credentials_exception
        token_data = TokenData(email=email)
    except JWTError:
        log_security_event("invalid_token", "low")
        raise credentials_exception

    user = get_user(db, email=token_data.email)
    if user is None:
        raise credentials_exception
    set_context(user_id=user.id)
    return user


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")
    return current_user


def require_roles(*roles: RoleName):
    """Dependency factory: the current user must hold at least one of `roles`."""
    def _check_roles(current_user: User = Depends(get_current_active_user)) -> User:
        if not current_user.has_role(*roles):
            log_security_event(
                "insufficient_permissions",
                "medium",
                user_id=current_user.id,
                details=f"required one of {[r.value for r in roles]}",
            )
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return current_user
    return _check_roles


get_current_patient_user = require_roles(RoleName.PATIENT)
get_current_doctor_user = require_roles(RoleName.DOCTOR)
get_current_admin_user = require_roles(RoleName.ADMIN)


# =============================================================================
# PROFILE RESOLUTION
# =============================================================================

def get_current_patient(current_user: User = Depends(get_current_patient_user)) -> Patient:
    """Patient profile of the signed-in user."""
    if current_user.patient is None:
        raise HTTPException(status_code=400, detail="Patient not found")
    return current_user.patient


def get_current_doctor(current_user: User = Depends(get_current_doctor_user)) -> Doctor:
    """Doctor profile of the signed-in user."""
    if current_user.doctor is None:
        raise HTTPException(status_code=400, detail="Doctor not found")
    return current_user.doctor
