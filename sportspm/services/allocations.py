"""
Allocation Capacity Guard

Assigns people to projects while keeping each person's total committed
capacity, summed over every project they work on, at or below 100 percent.

The capacity check and the write happen in one transaction, after the
allocated user's row has been locked. Two concurrent requests for the same
person therefore cannot both pass the check against the same total.
"""
import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from sportspm.core.errors import CapacityExceeded, Conflict, NotFound, ValidationError
from sportspm.models.allocation import (
    MAX_ALLOCATION_PERCENTAGE,
    AllocationCreate,
    AllocationUpdate,
    ResourceAllocation,
)
from sportspm.models.common import utc_now
from sportspm.models.project import Project
from sportspm.models.user import User
from sportspm.services.locking import lock_user

logger = logging.getLogger(__name__)


def _validate_fields(role: Optional[str], percentage, start_date, end_date) -> None:
    if not role or not role.strip():
        raise ValidationError("Role is required")
    if percentage is None or not 0 <= percentage <= MAX_ALLOCATION_PERCENTAGE:
        raise ValidationError(
            f"Allocation percentage must be between 0 and {MAX_ALLOCATION_PERCENTAGE}"
        )
    if start_date is None or end_date is None:
        raise ValidationError("Start and end dates are required")
    if end_date < start_date:
        raise ValidationError("End date cannot be before start date")


def user_total_allocation(
    session: Session, user_id: int, exclude_id: Optional[int] = None
) -> int:
    """Sum of a user's allocation percentages across all projects."""
    statement = select(func.coalesce(func.sum(ResourceAllocation.allocation_percentage), 0)).where(
        ResourceAllocation.user_id == user_id
    )
    if exclude_id is not None:
        statement = statement.where(ResourceAllocation.id != exclude_id)
    return int(session.exec(statement).one())


def _check_capacity(session: Session, user_id: int, requested: int, exclude_id: Optional[int] = None) -> None:
    current_total = user_total_allocation(session, user_id, exclude_id=exclude_id)
    if current_total + requested > MAX_ALLOCATION_PERCENTAGE:
        logger.warning(
            "Allocation rejected. user_id=%s current_total=%s requested=%s",
            user_id, current_total, requested,
        )
        raise CapacityExceeded(
            f"Total allocation would exceed {MAX_ALLOCATION_PERCENTAGE}%. "
            f"Current: {current_total}%, Requested: {requested}%"
        )


def allocate(session: Session, data: AllocationCreate, created_by: Optional[User] = None) -> ResourceAllocation:
    """
    Allocate a share of a user's capacity to a project.

    Raises:
        ValidationError: Empty role, percentage outside 0-100, end before start
        NotFound: Unknown project or user
        Conflict: The user is already allocated to this project
        CapacityExceeded: The user's total would go above 100%
    """
    _validate_fields(data.role, data.allocation_percentage, data.start_date, data.end_date)
    try:
        if session.get(Project, data.project_id) is None:
            raise NotFound("Project not found")
        lock_user(session, data.user_id)

        existing = session.exec(
            select(ResourceAllocation.id).where(
                ResourceAllocation.project_id == data.project_id,
                ResourceAllocation.user_id == data.user_id,
            )
        ).first()
        if existing is not None:
            raise Conflict("Resource already allocated to this project")

        _check_capacity(session, data.user_id, data.allocation_percentage)

        allocation = ResourceAllocation(
            project_id=data.project_id,
            user_id=data.user_id,
            role=data.role.strip(),
            allocation_percentage=data.allocation_percentage,
            start_date=data.start_date,
            end_date=data.end_date,
            created_by=created_by.id if created_by else None,
        )
        session.add(allocation)
        session.commit()
    except IntegrityError:
        # Unique (project_id, user_id) constraint hit by a concurrent insert
        session.rollback()
        raise Conflict("Resource already allocated to this project")
    except Exception:
        session.rollback()
        raise

    session.refresh(allocation)
    logger.info(
        "Resource allocated. allocation_id=%s project_id=%s user_id=%s percentage=%s",
        allocation.id, allocation.project_id, allocation.user_id, allocation.allocation_percentage,
    )
    return allocation


def reallocate(session: Session, allocation_id: int, data: AllocationUpdate) -> ResourceAllocation:
    """
    Change an existing allocation in place. The capacity check leaves the
    allocation's own current percentage out of the user's total.

    Raises:
        NotFound: Unknown allocation
        ValidationError: Same field rules as allocate
        CapacityExceeded: The user's total would go above 100%
    """
    _validate_fields(data.role, data.allocation_percentage, data.start_date, data.end_date)
    try:
        allocation = session.get(ResourceAllocation, allocation_id)
        if allocation is None:
            raise NotFound("Allocation not found")
        lock_user(session, allocation.user_id)
        _check_capacity(
            session, allocation.user_id, data.allocation_percentage, exclude_id=allocation.id
        )

        allocation.role = data.role.strip()
        allocation.allocation_percentage = data.allocation_percentage
        allocation.start_date = data.start_date
        allocation.end_date = data.end_date
        allocation.updated_at = utc_now()
        session.add(allocation)
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(allocation)
    logger.info(
        "Resource reallocated. allocation_id=%s user_id=%s percentage=%s",
        allocation.id, allocation.user_id, allocation.allocation_percentage,
    )
    return allocation


def deallocate(session: Session, allocation_id: int) -> None:
    """
    Remove an allocation. Removing can only free capacity, so there is no check.

    Raises:
        NotFound: Unknown allocation
    """
    try:
        allocation = session.get(ResourceAllocation, allocation_id)
        if allocation is None:
            raise NotFound("Allocation not found")
        user_id = allocation.user_id
        session.delete(allocation)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info("Resource deallocated. allocation_id=%s user_id=%s", allocation_id, user_id)
