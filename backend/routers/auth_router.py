"""
Authentication Router

Endpoints for:
- Patient self-registration
- Sign-in (access and refresh tokens)
- Token refresh and validation
- Password change and logout
- Current user

Credential endpoints share a per-client attempt limit.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from database import get_db, User
from auth import get_current_active_user
from accounts import (
    register, authenticate, refresh_access_token, validate_token, change_password, logout
)
from errors import ClinicError, UnauthorizedError, to_http_exception
from middleware import auth_rate_limit
from models import (
    SignupRequest, SigninRequest, AuthResponse, UserResponse, RefreshRequest, RefreshResponse,
    ChangePasswordRequest, TokenValidationResponse, MessageResponse
)

router = APIRouter(tags=["Authentication"])

rate_limited = [Depends(auth_rate_limit)]


@router.post("/auth/signup", response_model=AuthResponse, dependencies=rate_limited)
def signup(request: SignupRequest, db: Session = Depends(get_db)):
    """Register a new patient account and return an access token."""
    try:
        return register(db, request)
    except ClinicError as e:
        raise to_http_exception(e, 400)


@router.post("/auth/signin", response_model=AuthResponse, dependencies=rate_limited)
def signin(request: SigninRequest, db: Session = Depends(get_db)):
    """Authenticate with email and password."""
    try:
        return authenticate(db, request.email, request.password)
    except ClinicError as e:
        raise to_http_exception(e, 400)


@router.post("/auth/refresh", response_model=RefreshResponse, dependencies=rate_limited)
def refresh(request: RefreshRequest, db: Session = Depends(get_db)):
    """Exchange a refresh token for a new access token."""
    try:
        return refresh_access_token(db, request.refresh_token)
    except ClinicError as e:
        raise to_http_exception(e, 401)


@router.post("/auth/change-password", response_model=MessageResponse, dependencies=rate_limited)
def update_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    """Change the signed-in user's password; the current one must be given."""
    try:
        return change_password(db, current_user, request.current_password, request.new_password)
    except UnauthorizedError as e:
        raise to_http_exception(e, 401)
    except ClinicError as e:
        raise to_http_exception(e, 400)


@router.post("/auth/validate-token", response_model=TokenValidationResponse)
def check_token(request: Request, db: Session = Depends(get_db)):
    """Report whether the bearer token in the Authorization header is usable."""
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=400,
            detail="Authentication token is required",
            headers={"X-Error-Code": "TOKEN_REQUIRED"},
        )
    try:
        return validate_token(db, token.strip())
    except ClinicError as e:
        raise to_http_exception(e, 401)


@router.post("/auth/logout", response_model=MessageResponse)
def sign_out(current_user: User = Depends(get_current_active_user)):
    """Record the logout; tokens are stateless and dropped by the client."""
    return logout(current_user)


@router.get("/auth/me", response_model=UserResponse)
def read_users_me(current_user: User = Depends(get_current_active_user)):
    """Get current authenticated user."""
    return current_user
