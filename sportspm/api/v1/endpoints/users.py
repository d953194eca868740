"""
User Management Endpoints Module

This module provides endpoints for user management. Listing users is open to
administrators and managers (who need it to allocate people to projects);
changing or deleting other users requires administrative privileges. The /me
endpoints allow every user to manage their own profile.
"""
import logging
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select
from sportspm.api import deps
from sportspm.db.session import get_db
from sportspm.models.common import utc_now
from sportspm.models.user import User, UserRole
from sportspm.schemas.user import UserCreate, UserRead, UserUpdate, UserUpdateMe
from sportspm.core.security import get_password_hash

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=List[UserRead])
def read_users(
    db: Session = Depends(get_db),
    skip: int = 0,
    limit: int = 100,
    role: Optional[UserRole] = None,
    current_user: User = Depends(deps.require_manager),
) -> Any:
    """
    Retrieve a paginated list of users, optionally filtered by role.
    """
    statement = select(User)
    if role is not None:
        statement = statement.where(User.role == role.value)
    users = db.exec(statement.order_by(User.name).offset(skip).limit(limit)).all()
    return users


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    *,
    db: Session = Depends(get_db),
    user_in: UserCreate,
    current_user: User = Depends(deps.get_current_active_superuser),
) -> Any:
    """
    Create a new user with any role. Only administrators can do this.

    Raises:
        HTTPException 409: If a user with this email already exists
    """
    user = db.exec(select(User).where(User.email == user_in.email)).first()
    if user:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User with this email already exists",
        )

    db_user = User(
        email=user_in.email,
        password=get_password_hash(user_in.password),
        name=user_in.name,
        role=user_in.role or UserRole.TEAM_MEMBER,  # Default to TEAM_MEMBER if not specified
        avatar=user_in.avatar,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    logger.info("User created. user_id=%s by=%s", db_user.id, current_user.id)
    return db_user


@router.get("/me", response_model=UserRead)
def read_user_me(
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    Get the current authenticated user's profile.
    """
    return current_user


@router.put("/me", response_model=UserRead)
def update_user_me(
    *,
    db: Session = Depends(get_db),
    user_in: UserUpdateMe,
    current_user: User = Depends(deps.get_current_user),
) -> Any:
    """
    Update the current user's own profile (name, avatar, password).
    Users cannot change their own role.
    """
    if user_in.password is not None:
        current_user.password = get_password_hash(user_in.password)
    if user_in.name is not None:
        current_user.name = user_in.name
    if user_in.avatar is not None:
        current_user.avatar = user_in.avatar
    current_user.updated_at = utc_now()

    db.add(current_user)
    db.commit()
    db.refresh(current_user)
    return current_user


@router.get("/{user_id}", response_model=UserRead)
def read_user_by_id(
    user_id: int,
    current_user: User = Depends(deps.get_current_user),
    db: Session = Depends(get_db),
) -> Any:
    """
    Get a specific user by ID.

    Users can retrieve their own profile. Administrators and managers can
    retrieve anyone's.

    Raises:
        HTTPException 403: If the user doesn't have permission to view this profile
        HTTPException 404: If the user doesn't exist
    """
    if user_id != current_user.id and not current_user.can_manage:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="The user doesn't have enough privileges"
        )
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.put("/{user_id}", response_model=UserRead)
def update_user(
    *,
    db: Session = Depends(get_db),
    user_id: int,
    user_in: UserUpdate,
    current_user: User = Depends(deps.get_current_active_superuser),
) -> Any:
    """
    Update any user's profile, including role and password. Administrators only.

    Raises:
        HTTPException 404: If the user doesn't exist
        HTTPException 409: If the new email belongs to another user
    """
    db_user = db.get(User, user_id)
    if not db_user:
        raise HTTPException(status_code=404, detail="User not found")

    # Get update data, excluding unset fields
    update_data = user_in.model_dump(exclude_unset=True)

    if update_data.get("email") and update_data["email"] != db_user.email:
        taken = db.exec(select(User).where(User.email == update_data["email"])).first()
        if taken:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User with this email already exists",
            )

    # Hash password if it's being updated
    if update_data.get("password"):
        update_data["password"] = get_password_hash(update_data["password"])
    else:
        update_data.pop("password", None)

    for field, value in update_data.items():
        if value is None and field in ("email", "name", "role"):
            continue
        setattr(db_user, field, value)
    db_user.updated_at = utc_now()

    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    logger.info("User updated. user_id=%s by=%s", db_user.id, current_user.id)
    return db_user


@router.delete("/{user_id}", response_model=UserRead)
def delete_user(
    *,
    db: Session = Depends(get_db),
    user_id: int,
    current_user: User = Depends(deps.get_current_active_superuser),
) -> Any:
    """
    Delete a user. Administrators only; users cannot delete themselves.

    The user's resource allocations are removed with them.

    Raises:
        HTTPException 404: If the user doesn't exist
        HTTPException 400: If trying to delete yourself
    """
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    # Prevent self-deletion
    if user.id == current_user.id:
        raise HTTPException(
            status_code=400, detail="Users cannot delete themselves"
        )

    deleted = UserRead.model_validate(user)
    db.delete(user)
    db.commit()
    logger.info("User deleted. user_id=%s by=%s", user_id, current_user.id)
    return deleted
