"""
Project Endpoints Module

This module provides CRUD endpoints for managing projects. Every authenticated user
can browse projects; a project can be changed by its creator, managers and
administrators, and deleted by its creator or an administrator.
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session, select
from sportspm.db.session import get_db
from sportspm.models.common import utc_now
from sportspm.models.project import (
    Project,
    ProjectCreate,
    ProjectPriority,
    ProjectRead,
    ProjectStatus,
    ProjectUpdate,
)
from sportspm.models.user import User
from sportspm.api import deps
from sportspm.services.budget import budget_status_for, refresh_budget_status
from sportspm.services.locking import lock_project

logger = logging.getLogger(__name__)

router = APIRouter()


def get_project_or_404(db: Session, project_id: int) -> Project:
    project = db.get(Project, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


@router.get("", response_model=List[ProjectRead])
def list_projects(
    skip: int = 0,
    limit: int = 100,
    status: Optional[ProjectStatus] = None,
    priority: Optional[ProjectPriority] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
):
    """
    Retrieve a paginated list of projects, newest first.

    Args:
        skip: Number of records to skip (for pagination)
        limit: Maximum number of records to return
        status: Only projects in this status
        priority: Only projects with this priority
    """
    statement = select(Project)
    if status is not None:
        statement = statement.where(Project.status == status.value)
    if priority is not None:
        statement = statement.where(Project.priority == priority.value)
    statement = statement.order_by(Project.created_at.desc(), Project.id.desc()).offset(skip).limit(limit)
    return db.exec(statement).all()


@router.get("/{project_id}", response_model=ProjectRead)
def read_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
):
    """
    Get a specific project by ID.

    Raises:
        HTTPException 404: If the project doesn't exist
    """
    return get_project_or_404(db, project_id)


@router.post("", response_model=ProjectRead, status_code=status.HTTP_201_CREATED)
def create_project(
    project_in: ProjectCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
):
    """
    Create a new project owned by the current user.

    actual_cost starts at zero and budget_status is derived from the budget.
    """
    if project_in.start_date and project_in.end_date and project_in.end_date < project_in.start_date:
        raise HTTPException(status_code=422, detail="End date cannot be before start date")

    project = Project(**project_in.model_dump(), created_by=current_user.id)
    project.budget_status = budget_status_for(project.budget, project.actual_cost)

    db.add(project)
    db.commit()
    db.refresh(project)
    logger.info("Project created. project_id=%s by=%s", project.id, current_user.id)
    return project


@router.put("/{project_id}", response_model=ProjectRead)
@router.patch("/{project_id}", response_model=ProjectRead)
def update_project(
    project_id: int,
    project_update: ProjectUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
):
    """
    Update an existing project.

    Only the supplied fields change. Derived fields (actual_cost, budget_status,
    progress) cannot be set here; changing the budget recomputes budget_status.

    Raises:
        HTTPException 404: If the project doesn't exist
        HTTPException 403: If the user is not the creator, a manager or an admin
    """
    project = get_project_or_404(db, project_id)

    # Check ownership permissions
    if project.created_by != current_user.id and not current_user.can_manage:
        raise HTTPException(status_code=403, detail="Not authorized")

    update_data = project_update.model_dump(exclude_unset=True)
    for key in ("name", "status", "priority", "budget", "tags"):
        if key in update_data and update_data[key] is None:
            update_data.pop(key)

    # Lock the row so a budget change and concurrent expense writes see each other
    project = lock_project(db, project_id)
    for key, value in update_data.items():
        setattr(project, key, value)

    if project.start_date and project.end_date and project.end_date < project.start_date:
        db.rollback()
        raise HTTPException(status_code=422, detail="End date cannot be before start date")

    refresh_budget_status(project)
    project.updated_at = utc_now()

    db.add(project)
    db.commit()
    db.refresh(project)
    logger.info("Project updated. project_id=%s fields=%s", project.id, sorted(update_data))
    return project


@router.delete("/{project_id}")
def delete_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
):
    """
    Delete a project together with its expenses, allocations, milestones,
    tasks and comments.

    Raises:
        HTTPException 404: If the project doesn't exist
        HTTPException 403: If the user is neither the creator nor an admin
    """
    project = get_project_or_404(db, project_id)

    if project.created_by != current_user.id and not current_user.is_privileged:
        raise HTTPException(status_code=403, detail="Not authorized")

    db.delete(project)
    db.commit()
    logger.info("Project deleted. project_id=%s by=%s", project_id, current_user.id)
    return {"status": "success", "detail": "Project deleted"}
