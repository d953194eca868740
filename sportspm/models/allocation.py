"""
Resource Allocation Model Module

A resource allocation commits a share of one user's working capacity to one
project. A user's allocations across all projects may never add up to more
than 100 percent.
"""
from typing import Optional
from datetime import date, datetime
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

from sportspm.models.common import utc_now

MAX_ALLOCATION_PERCENTAGE = 100


class AllocationBase(SQLModel):
    role: str = Field(nullable=False)  # Role on this project, e.g. "Coach", "Analyst"
    allocation_percentage: int = Field(nullable=False)
    start_date: date = Field(nullable=False)
    end_date: date = Field(nullable=False)


class ResourceAllocation(AllocationBase, table=True):
    """
    Resource allocation table model.

    At most one row exists per (project_id, user_id) pair.
    """
    __tablename__ = "resource_allocations"
    __table_args__ = (
        UniqueConstraint("project_id", "user_id", name="uq_resource_allocations_project_user"),
    )

    # Primary key
    id: Optional[int] = Field(default=None, primary_key=True)

    project_id: int = Field(foreign_key="projects.id", ondelete="CASCADE", index=True)
    user_id: int = Field(foreign_key="users.id", ondelete="CASCADE", index=True)

    created_by: Optional[int] = Field(default=None, foreign_key="users.id", ondelete="SET NULL")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class AllocationCreate(SQLModel):
    project_id: int
    user_id: int
    role: str = ""
    allocation_percentage: int
    start_date: date
    end_date: date


class AllocationUpdate(SQLModel):
    role: str = ""
    allocation_percentage: int
    start_date: date
    end_date: date


class AllocationRead(AllocationBase):
    id: int
    project_id: int
    user_id: int
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    user_role: Optional[str] = None
