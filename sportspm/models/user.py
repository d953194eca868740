"""
User Model Module

This module defines the User model and UserRole enumeration for authentication
and authorization throughout the application.
"""
from enum import Enum
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field, AutoString

from sportspm.models.common import utc_now


class UserRole(str, Enum):
    """
    Enumeration of user roles defining permission levels in the system.

    Role hierarchy (from least to most privileged):
    - TEAM_MEMBER: Default role; works on projects and records expenses
    - MANAGER: Approves expenses and allocates people to projects
    - ADMIN: Full access, including user management
    """
    TEAM_MEMBER = "Team Member"
    MANAGER = "Manager"
    ADMIN = "Admin"


class User(SQLModel, table=True):
    """
    User model representing authenticated users in the system.

    Users authenticate via email/password. The role field determines their
    permission level throughout the application.

    Attributes:
        id: Auto-incrementing primary key
        name: Display name (required)
        email: Login email address (required, unique, indexed)
        password: Hashed password (bcrypt)
        role: One UserRole value (default: TEAM_MEMBER)
        avatar: URL to the user's avatar image
        created_at: When the account was created
        updated_at: When the profile was last modified
        last_login: When the user last logged in
    """
    __tablename__ = "users"

    # Primary key
    id: Optional[int] = Field(default=None, primary_key=True)

    # Profile information
    name: str = Field(nullable=False)
    email: str = Field(unique=True, index=True, nullable=False)
    avatar: Optional[str] = None

    # Authentication
    password: Optional[str] = None  # Hashed password (bcrypt)

    # Authorization
    role: UserRole = Field(default=UserRole.TEAM_MEMBER, sa_type=AutoString)

    # Audit timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    last_login: Optional[datetime] = None

    @property
    def is_privileged(self) -> bool:
        """Helper to check if user has the admin role."""
        return self.role == UserRole.ADMIN

    @property
    def can_manage(self) -> bool:
        """Admins and managers can approve expenses and allocate resources."""
        return self.role in (UserRole.ADMIN, UserRole.MANAGER)
