"""
Authentication Endpoints Module

This module provides authentication endpoints for user registration, login, and logout.
The system supports both JWT bearer token authentication and HTTP-only cookie-based
authentication for browser clients.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status, Response
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from sqlmodel import Session, select
from sportspm.api import deps
from sportspm.db.session import get_db
from sportspm.models.common import utc_now
from sportspm.models.user import User, UserRole
from sportspm.core.security import verify_password, get_password_hash, create_access_token
from sportspm.core.config import settings
from sportspm.schemas.auth import AuthResponse, LoginRequest, Token, UserRegister
from sportspm.schemas.user import UserRead

logger = logging.getLogger(__name__)

router = APIRouter()


def _set_auth_cookie(response: Response, access_token: str) -> None:
    # httponly=True prevents JavaScript access to the cookie (XSS protection)
    # samesite="lax" provides CSRF protection while allowing normal navigation
    response.set_cookie(
        key="access_token",
        value=f"Bearer {access_token}",
        httponly=True,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,  # Convert minutes to seconds
        samesite="lax",
    )


def _authenticate(db: Session, email: str, password: str) -> User:
    user = db.exec(select(User).where(User.email == email)).first()

    # Verify user exists and password is correct
    if not user or not verify_password(password, user.password):
        logger.warning("Login failed. email=%s", email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user.last_login = utc_now()
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register_user(
    user_in: UserRegister,
    response: Response,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(deps.get_optional_user),
):
    """
    Register a new user account.

    Creates a new user with the provided name, email and password. The password
    is hashed before storage. Only an authenticated Admin may register accounts
    with a role other than Team Member.

    Returns:
        AuthResponse: The new user and an access token for them

    Raises:
        HTTPException 403: If a non-admin requests an elevated role
        HTTPException 409: If a user with this email already exists
    """
    if user_in.role != UserRole.TEAM_MEMBER and not (current_user and current_user.is_privileged):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only administrators can assign elevated roles",
        )

    # Check if email is already registered
    user = db.exec(select(User).where(User.email == user_in.email)).first()
    if user:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists",
        )

    db_user = User(
        name=user_in.name.strip(),
        email=user_in.email,
        password=get_password_hash(user_in.password),
        role=user_in.role,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    logger.info("User registered. user_id=%s role=%s", db_user.id, UserRole(db_user.role).value)

    access_token = create_access_token(subject=db_user.email)
    _set_auth_cookie(response, access_token)
    return AuthResponse(
        message="User registered successfully",
        user=UserRead.model_validate(db_user),
        token=access_token,
        access_token=access_token,
    )


@router.post("/login", response_model=AuthResponse)
def login(credentials: LoginRequest, response: Response, db: Session = Depends(get_db)):
    """
    Authenticate a user and issue an access token.

    The token is returned in the body and also set as an HTTP-only cookie for
    browser clients.

    Raises:
        HTTPException 401: If credentials are invalid
    """
    user = _authenticate(db, credentials.email, credentials.password)
    access_token = create_access_token(subject=user.email)
    _set_auth_cookie(response, access_token)
    return AuthResponse(
        message="Login successful",
        user=UserRead.model_validate(user),
        token=access_token,
        access_token=access_token,
    )


@router.post("/token", response_model=Token)
def login_for_access_token(
    response: Response,
    db: Session = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends(),
):
    """
    OAuth2 password flow used by the interactive API docs.

    Note: OAuth2PasswordRequestForm uses 'username' field, but we treat it as email.
    """
    user = _authenticate(db, form_data.username, form_data.password)
    access_token = create_access_token(subject=user.email)
    _set_auth_cookie(response, access_token)
    return {"access_token": access_token, "token_type": "bearer"}


@router.get("/profile", response_model=UserRead)
def read_profile(current_user: User = Depends(deps.get_current_active_user)):
    """Get the current authenticated user's profile."""
    return current_user


@router.get("/logout")
def logout():
    """
    Log out the current user by clearing their authentication cookie.

    API clients can simply discard their token.
    """
    response = JSONResponse({"message": "Logged out"})
    response.delete_cookie("access_token")
    return response
