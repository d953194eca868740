"""
Project Model Module

This module defines the Project model for managing sports department projects with
tracking of status, budget, timeline, and progress.
"""
from enum import Enum
from decimal import Decimal
from typing import List, Optional
from datetime import date, datetime
from pydantic import field_validator
from sqlmodel import SQLModel, Field, AutoString, Column, JSON

from sportspm.models.common import utc_now


class ProjectStatus(str, Enum):
    PLANNING = "Planning"
    ACTIVE = "Active"
    ON_HOLD = "On Hold"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class ProjectPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class BudgetStatus(str, Enum):
    """Spend relative to the budget ceiling. Always derived, never set by clients."""
    UNDER_BUDGET = "Under Budget"
    ON_BUDGET = "On Budget"
    OVER_BUDGET = "Over Budget"


class ProjectBase(SQLModel):
    """
    Base Project model containing the client-writable fields.
    """
    # Basic project information
    name: str = Field(nullable=False)
    description: Optional[str] = None
    scope: Optional[str] = None  # What the project includes and excludes

    status: ProjectStatus = Field(default=ProjectStatus.PLANNING, sa_type=AutoString)
    priority: ProjectPriority = Field(default=ProjectPriority.MEDIUM, sa_type=AutoString)

    # Planned and actual timeline
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    actual_start_date: Optional[date] = None
    actual_end_date: Optional[date] = None

    # Budget ceiling; spend is tracked in actual_cost
    budget: Decimal = Field(default=Decimal("0"), max_digits=15, decimal_places=2)


class Project(ProjectBase, table=True):
    """
    Project table model.

    Derived fields (kept consistent by the service layer, never by the read path):
        actual_cost: Sum of all expense amounts recorded against the project
        budget_status: Comparison of actual_cost against budget
        progress: Percentage of the project's tasks that are Completed
    """
    __tablename__ = "projects"

    # Primary key
    id: Optional[int] = Field(default=None, primary_key=True)

    # Tags stored as a JSON array of strings
    tags: List[str] = Field(default_factory=list, sa_column=Column(JSON))

    actual_cost: Decimal = Field(default=Decimal("0"), max_digits=15, decimal_places=2)
    budget_status: BudgetStatus = Field(default=BudgetStatus.ON_BUDGET, sa_type=AutoString)
    progress: int = Field(default=0)

    # Ownership
    created_by: Optional[int] = Field(
        default=None, foreign_key="users.id", ondelete="SET NULL"
    )

    # Audit timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


def _clean_tags(v):
    if v is None:
        return v
    seen = []
    for tag in v:
        tag = str(tag).strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class ProjectCreate(ProjectBase):
    """Schema for creating a project."""
    name: str = Field(min_length=1)
    tags: List[str] = []
    budget: Decimal = Field(default=Decimal("0"), ge=0, max_digits=15, decimal_places=2)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v):
        return _clean_tags(v)


class ProjectUpdate(SQLModel):
    """Schema for updating a project. Derived fields are not accepted."""
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    scope: Optional[str] = None
    status: Optional[ProjectStatus] = None
    priority: Optional[ProjectPriority] = None
    tags: Optional[List[str]] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    actual_start_date: Optional[date] = None
    actual_end_date: Optional[date] = None
    budget: Optional[Decimal] = Field(default=None, ge=0, max_digits=15, decimal_places=2)

    @field_validator("tags", mode="before")
    @classmethod
    def normalize_tags(cls, v):
        return _clean_tags(v)


class ProjectRead(ProjectBase):
    """Schema for reading a project, including derived fields."""
    id: int
    tags: List[str] = []
    actual_cost: Decimal
    budget_status: BudgetStatus
    progress: int
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime
