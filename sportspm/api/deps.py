"""
API Dependencies Module

This module provides FastAPI dependency functions for authentication and authorization.
It implements a dual authentication strategy supporting both bearer tokens (for API clients)
and HTTP-only cookies (for browser clients).
"""
from typing import List, Optional
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from pydantic import ValidationError
from sqlmodel import Session, select

from sportspm.core.config import settings
from sportspm.db.session import get_db
from sportspm.models.user import User, UserRole
from sportspm.schemas.auth import TokenData

# Configure OAuth2 scheme to use the token endpoint
# auto_error=False allows us to check cookies as a fallback
reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/token",
    auto_error=False  # Don't raise error immediately if Authorization header is missing
)


def _resolve_token(request: Request, token: Optional[str]) -> Optional[str]:
    # Try Authorization header first, then fall back to cookie
    if token:
        return token
    cookie = request.cookies.get("access_token")
    # Cookie format is "Bearer <token>", so we need to extract the token
    if cookie and cookie.startswith("Bearer "):
        return cookie[len("Bearer "):]
    return cookie


def _user_from_token(db: Session, token: str) -> User:
    # Decode and validate the JWT token
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
        token_data = TokenData(email=payload.get("sub"))  # Extract email from token
    except (JWTError, ValidationError):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or expired token",
        )
    if not token_data.email:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or expired token",
        )

    # Verify the user still exists
    user = db.exec(select(User).where(User.email == token_data.email)).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    token: Optional[str] = Depends(reusable_oauth2)
) -> User:
    """
    Dependency that retrieves and validates the current authenticated user.

    Supports dual authentication methods:
    1. Bearer token in Authorization header (for API clients)
    2. HTTP-only cookie (for browser clients)

    Returns:
        User: The authenticated user object

    Raises:
        HTTPException 401: If no token is provided or its user no longer exists
        HTTPException 403: If the token is invalid or expired
    """
    token = _resolve_token(request, token)

    # Require authentication
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _user_from_token(db, token)


def get_optional_user(
    request: Request,
    db: Session = Depends(get_db),
    token: Optional[str] = Depends(reusable_oauth2)
) -> Optional[User]:
    """Like get_current_user, but anonymous requests resolve to None."""
    token = _resolve_token(request, token)
    if not token:
        return None
    return _user_from_token(db, token)


def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Dependency that requires any authenticated user.

    This is a convenience wrapper around get_current_user that can be extended
    to add additional checks like account status.
    """
    return current_user


class RoleChecker:
    """
    Dependency factory for checking user roles.

    Usage: Depends(RoleChecker([UserRole.ADMIN, UserRole.MANAGER]))
    """
    def __init__(self, allowed_roles: List[UserRole]):
        self.allowed_roles = allowed_roles

    def __call__(self, current_user: User = Depends(get_current_active_user)) -> User:
        if current_user.role not in self.allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user


require_manager = RoleChecker([UserRole.ADMIN, UserRole.MANAGER])


def get_current_active_superuser(
    current_user: User = Depends(get_current_active_user),
) -> User:
    """
    Dependency that requires the current user to be an administrator.
    """
    if not current_user.is_privileged:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="The user doesn't have enough privileges"
        )
    return current_user
