"""
Resource Endpoints Module

Endpoints for allocating people to projects and for reading workload and
capacity. Allocation writes are limited to administrators and managers and
go through the allocation service, which enforces the 100% capacity ceiling.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy import case, func
from sqlmodel import Session, select
from sportspm.api import deps
from sportspm.db.session import get_db
from sportspm.models.allocation import (
    MAX_ALLOCATION_PERCENTAGE,
    AllocationCreate,
    AllocationRead,
    AllocationUpdate,
    ResourceAllocation,
)
from sportspm.models.project import Project
from sportspm.models.task import Task, TaskStatus
from sportspm.models.user import User, UserRole
from sportspm.services import allocations as guard
from sportspm.services.notifications import get_notification_service

logger = logging.getLogger(__name__)

router = APIRouter()

CLOSED_TASK_STATUSES = [TaskStatus.COMPLETED.value, TaskStatus.CANCELLED.value]


def _allocation_read(db: Session, allocation: ResourceAllocation) -> AllocationRead:
    user = db.get(User, allocation.user_id)
    return AllocationRead.model_validate(
        allocation,
        update={
            "user_name": user.name if user else None,
            "user_email": user.email if user else None,
            "user_role": UserRole(user.role).value if user else None,
        },
    )


def _allocation_totals(db: Session) -> Dict[int, int]:
    rows = db.exec(
        select(ResourceAllocation.user_id, func.sum(ResourceAllocation.allocation_percentage))
        .group_by(ResourceAllocation.user_id)
    ).all()
    return {user_id: int(total or 0) for user_id, total in rows}


def _task_stats_by_user(db: Session, project_id: Optional[int] = None) -> Dict[int, Dict[str, Any]]:
    today = date.today()
    statement = select(
        Task.assigned_to,
        func.count(Task.id),
        func.coalesce(func.sum(case((Task.status == TaskStatus.COMPLETED.value, 1), else_=0)), 0),
        func.coalesce(func.sum(case((Task.status == TaskStatus.IN_PROGRESS.value, 1), else_=0)), 0),
        func.coalesce(
            func.sum(
                case(
                    ((Task.due_date < today) & Task.status.not_in(CLOSED_TASK_STATUSES), 1),
                    else_=0,
                )
            ),
            0,
        ),
        func.coalesce(func.sum(Task.estimated_hours), 0),
        func.coalesce(func.sum(Task.actual_hours), 0),
    ).where(Task.assigned_to.is_not(None))
    if project_id is not None:
        statement = statement.where(Task.project_id == project_id)

    stats = {}
    for user_id, total, completed, in_progress, overdue, est, act in db.exec(
        statement.group_by(Task.assigned_to)
    ).all():
        stats[user_id] = {
            "total_tasks": int(total),
            "completed_tasks": int(completed),
            "in_progress_tasks": int(in_progress),
            "overdue_tasks": int(overdue),
            "estimated_hours": Decimal(est or 0),
            "actual_hours": Decimal(act or 0),
        }
    return stats


EMPTY_TASK_STATS = {
    "total_tasks": 0,
    "completed_tasks": 0,
    "in_progress_tasks": 0,
    "overdue_tasks": 0,
    "estimated_hours": Decimal("0"),
    "actual_hours": Decimal("0"),
}


@router.get("/projects/{project_id}/allocations", response_model=List[AllocationRead])
def list_project_allocations(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """List the people allocated to a project, with their name, email and role."""
    if not db.get(Project, project_id):
        raise HTTPException(status_code=404, detail="Project not found")
    allocations = db.exec(
        select(ResourceAllocation)
        .where(ResourceAllocation.project_id == project_id)
        .order_by(ResourceAllocation.created_at, ResourceAllocation.id)
    ).all()
    return [_allocation_read(db, a) for a in allocations]


@router.post(
    "/projects/allocations",
    response_model=AllocationRead,
    status_code=status.HTTP_201_CREATED,
)
def create_allocation(
    allocation_in: AllocationCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.require_manager),
) -> Any:
    """
    Allocate a user to a project.

    Raises:
        422: Invalid role, percentage or dates
        404: Unknown project or user
        409: Already allocated, or the user's total would exceed 100%
    """
    allocation = guard.allocate(db, allocation_in, created_by=current_user)

    user = db.get(User, allocation.user_id)
    project = db.get(Project, allocation.project_id)
    background_tasks.add_task(
        get_notification_service().notify,
        "allocation_created.txt",
        [user.email],
        {
            "project_name": project.name,
            "user_name": user.name,
            "allocator_name": current_user.name,
            "role": allocation.role,
            "allocation_percentage": allocation.allocation_percentage,
            "start_date": allocation.start_date.isoformat(),
            "end_date": allocation.end_date.isoformat(),
            "total_allocation": guard.user_total_allocation(db, user.id),
        },
    )
    return _allocation_read(db, allocation)


@router.put("/projects/allocations/{allocation_id}", response_model=AllocationRead)
def update_allocation(
    allocation_id: int,
    allocation_in: AllocationUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.require_manager),
) -> Any:
    """Change an allocation's role, share or dates."""
    allocation = guard.reallocate(db, allocation_id, allocation_in)
    return _allocation_read(db, allocation)


@router.delete("/projects/allocations/{allocation_id}")
def delete_allocation(
    allocation_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.require_manager),
) -> Any:
    guard.deallocate(db, allocation_id)
    return {"message": "Resource allocation removed successfully"}


@router.get("/workload")
def resource_workload(
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """
    Per-user workload: assigned task counts, overdue tasks, estimated and
    actual hours, and the user's total allocation across projects.
    """
    users = db.exec(select(User).order_by(User.name)).all()
    task_stats = _task_stats_by_user(db)
    totals = _allocation_totals(db)

    workload = []
    for user in users:
        stats = task_stats.get(user.id, EMPTY_TASK_STATS)
        workload.append(
            {
                "user_id": user.id,
                "name": user.name,
                "email": user.email,
                "role": UserRole(user.role).value,
                **stats,
                "total_allocation": totals.get(user.id, 0),
            }
        )
    return workload


@router.get("/capacity")
def resource_capacity(
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """
    Per-user capacity (total allocation and what is left of 100%) and the
    same figures aggregated per user role.
    """
    users = db.exec(select(User).order_by(User.name)).all()
    totals = _allocation_totals(db)
    project_counts = dict(
        db.exec(
            select(ResourceAllocation.user_id, func.count(ResourceAllocation.id))
            .group_by(ResourceAllocation.user_id)
        ).all()
    )

    capacity = []
    by_role: Dict[str, Dict[str, Any]] = {}
    for user in users:
        total = totals.get(user.id, 0)
        role = UserRole(user.role).value
        capacity.append(
            {
                "user_id": user.id,
                "name": user.name,
                "role": role,
                "active_projects": int(project_counts.get(user.id, 0)),
                "total_allocation": total,
                "available_capacity": MAX_ALLOCATION_PERCENTAGE - total,
            }
        )
        summary = by_role.setdefault(
            role, {"role": role, "user_count": 0, "total_allocation": 0, "available_capacity": 0}
        )
        summary["user_count"] += 1
        summary["total_allocation"] += total
        summary["available_capacity"] += MAX_ALLOCATION_PERCENTAGE - total

    for summary in by_role.values():
        summary["avg_allocation"] = round(summary["total_allocation"] / summary["user_count"], 2)

    return {"users": capacity, "by_role": sorted(by_role.values(), key=lambda r: r["role"])}


@router.get("/projects/{project_id}/analytics")
def project_resource_analytics(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """Allocation summary for a project plus task counts for each allocated person."""
    if not db.get(Project, project_id):
        raise HTTPException(status_code=404, detail="Project not found")

    allocations = db.exec(
        select(ResourceAllocation).where(ResourceAllocation.project_id == project_id)
    ).all()
    task_stats = _task_stats_by_user(db, project_id=project_id)

    percentages = [a.allocation_percentage for a in allocations]
    resources = []
    for allocation in allocations:
        read = _allocation_read(db, allocation)
        resources.append(
            {
                **read.model_dump(include={"user_id", "user_name", "user_email", "role", "allocation_percentage"}),
                **task_stats.get(allocation.user_id, EMPTY_TASK_STATS),
            }
        )

    return {
        "summary": {
            "total_resources": len(allocations),
            "total_allocation": sum(percentages),
            "avg_allocation": round(sum(percentages) / len(percentages), 2) if percentages else 0,
        },
        "resources": resources,
    }
