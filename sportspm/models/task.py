"""
Task Model Module

This module defines the timeline models of a project: milestones, the tasks
grouped under them, and dependencies between tasks. TaskStatus is the single
status vocabulary for tasks; progress counts tasks whose status is COMPLETED.
"""
from enum import Enum
from decimal import Decimal
from typing import Optional
from datetime import date, datetime
from pydantic import field_validator
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field, AutoString

from sportspm.models.common import utc_now


class TaskStatus(str, Enum):
    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    REVIEW = "Review"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


# Status strings written by older clients, and their canonical replacement
LEGACY_TASK_STATUSES = {
    "done": TaskStatus.COMPLETED,
    "complete": TaskStatus.COMPLETED,
    "pending": TaskStatus.TODO,
    "todo": TaskStatus.TODO,
}


def coerce_task_status(value) -> TaskStatus:
    """
    Map a status string onto TaskStatus, accepting legacy spellings.

    Raises:
        ValueError: If the value is neither canonical nor a known legacy value
    """
    if isinstance(value, TaskStatus):
        return value
    text = str(value).strip()
    for status in TaskStatus:
        if text.lower() == status.value.lower():
            return status
    legacy = LEGACY_TASK_STATUSES.get(text.lower())
    if legacy is None:
        allowed = ", ".join(s.value for s in TaskStatus)
        raise ValueError(f"Unknown task status '{value}'. Allowed: {allowed}")
    return legacy


class TaskPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class MilestoneStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    OVERDUE = "Overdue"


class MilestoneBase(SQLModel):
    name: str = Field(nullable=False)
    description: Optional[str] = None
    due_date: date = Field(nullable=False)
    completed_date: Optional[date] = None
    status: MilestoneStatus = Field(default=MilestoneStatus.PENDING, sa_type=AutoString)
    order_index: int = 0


class Milestone(MilestoneBase, table=True):
    """
    Milestone table model.
    """
    __tablename__ = "project_milestones"

    id: Optional[int] = Field(default=None, primary_key=True)
    project_id: int = Field(foreign_key="projects.id", ondelete="CASCADE", index=True)
    created_at: datetime = Field(default_factory=utc_now)


class MilestoneCreate(SQLModel):
    project_id: int
    name: str = Field(min_length=1)
    description: Optional[str] = None
    due_date: date
    order_index: int = 0


class MilestoneUpdate(SQLModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    due_date: Optional[date] = None
    status: Optional[MilestoneStatus] = None
    completed_date: Optional[date] = None
    order_index: Optional[int] = None


class MilestoneRead(MilestoneBase):
    id: int
    project_id: int
    created_at: datetime


class TaskBase(SQLModel):
    """
    Base Task model containing common fields.
    """
    # Basic task information
    name: str = Field(nullable=False)
    description: Optional[str] = None

    status: TaskStatus = Field(default=TaskStatus.TODO, sa_type=AutoString)
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, sa_type=AutoString)

    due_date: Optional[date] = None
    completed_date: Optional[date] = None

    # Effort and cost tracking
    estimated_hours: Optional[Decimal] = Field(default=None, max_digits=7, decimal_places=2)
    actual_hours: Optional[Decimal] = Field(default=None, max_digits=7, decimal_places=2)
    estimated_cost: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    actual_cost: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)

    order_index: int = 0


class Task(TaskBase, table=True):
    """
    Task table model.
    """
    __tablename__ = "project_tasks"

    # Primary key
    id: Optional[int] = Field(default=None, primary_key=True)

    project_id: int = Field(foreign_key="projects.id", ondelete="CASCADE", index=True)
    milestone_id: Optional[int] = Field(
        default=None, foreign_key="project_milestones.id", ondelete="SET NULL", index=True
    )
    assigned_to: Optional[int] = Field(
        default=None, foreign_key="users.id", ondelete="SET NULL", index=True
    )
    created_by: Optional[int] = Field(default=None, foreign_key="users.id", ondelete="SET NULL")

    # Audit timestamps
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class TaskCreate(TaskBase):
    """Schema for creating a task."""
    project_id: int
    milestone_id: Optional[int] = None
    assigned_to: Optional[int] = None
    name: str = Field(min_length=1)

    @field_validator("status", mode="before")
    @classmethod
    def map_legacy_status(cls, v):
        if v is None:
            return TaskStatus.TODO
        return coerce_task_status(v)


class TaskUpdate(SQLModel):
    """Schema for updating a task. Omitted fields keep their value."""
    project_id: Optional[int] = None
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    milestone_id: Optional[int] = None
    assigned_to: Optional[int] = None
    due_date: Optional[date] = None
    completed_date: Optional[date] = None
    estimated_hours: Optional[Decimal] = None
    actual_hours: Optional[Decimal] = None
    estimated_cost: Optional[Decimal] = None
    actual_cost: Optional[Decimal] = None
    order_index: Optional[int] = None

    @field_validator("status", mode="before")
    @classmethod
    def map_legacy_status(cls, v):
        if v is None:
            return v
        return coerce_task_status(v)


class TaskRead(TaskBase):
    """Schema for reading basic task data."""
    id: int
    project_id: int
    milestone_id: Optional[int] = None
    assigned_to: Optional[int] = None
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime


class TaskDependency(SQLModel, table=True):
    """
    A task that cannot proceed until another task reaches a given point.
    """
    __tablename__ = "task_dependencies"
    __table_args__ = (
        UniqueConstraint("task_id", "depends_on_task_id", name="uq_task_dependencies_pair"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    task_id: int = Field(foreign_key="project_tasks.id", ondelete="CASCADE", index=True)
    depends_on_task_id: int = Field(foreign_key="project_tasks.id", ondelete="CASCADE")
    dependency_type: str = "Finish-to-Start"
    created_at: datetime = Field(default_factory=utc_now)


class TaskDependencyCreate(SQLModel):
    depends_on_task_id: int
    dependency_type: str = "Finish-to-Start"
