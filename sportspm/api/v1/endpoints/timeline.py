"""
Timeline Endpoints Module

Milestones, tasks and task dependencies for a project's timeline.

Every task write recalculates the owning project's progress in the same
transaction, so projects.progress always matches the committed tasks.
"""
import logging
from datetime import date, datetime, timedelta
from typing import Any, List, Optional, Set
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
from sportspm.api import deps
from sportspm.db.session import get_db
from sportspm.models.common import utc_now
from sportspm.models.project import Project, ProjectRead
from sportspm.models.task import (
    Milestone,
    MilestoneCreate,
    MilestoneRead,
    MilestoneStatus,
    MilestoneUpdate,
    Task,
    TaskCreate,
    TaskDependency,
    TaskDependencyCreate,
    TaskRead,
    TaskStatus,
    TaskUpdate,
)
from sportspm.models.user import User
from sportspm.services.progress import recalculate_progress

logger = logging.getLogger(__name__)

router = APIRouter()

CLOSED_TASK_STATUSES = [TaskStatus.COMPLETED.value, TaskStatus.CANCELLED.value]


def get_project_or_404(db: Session, project_id: int) -> Project:
    project = db.get(Project, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return project


def get_task_or_404(db: Session, task_id: int) -> Task:
    task = db.get(Task, task_id)
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


def _check_milestone(db: Session, milestone_id: Optional[int], project_id: int) -> None:
    if milestone_id is None:
        return
    milestone = db.get(Milestone, milestone_id)
    if not milestone:
        raise HTTPException(status_code=404, detail="Milestone not found")
    if milestone.project_id != project_id:
        raise HTTPException(status_code=422, detail="Milestone belongs to a different project")


def _check_assignee(db: Session, user_id: Optional[int]) -> None:
    if user_id is not None and not db.get(User, user_id):
        raise HTTPException(status_code=404, detail="Assigned user not found")


def _stamp_completion(task: Task) -> None:
    # completed_date follows the status unless the client set one
    if task.status == TaskStatus.COMPLETED:
        if task.completed_date is None:
            task.completed_date = date.today()
    else:
        task.completed_date = None


def _commit_with_progress(db: Session, project_ids: Set[int]) -> None:
    try:
        for project_id in sorted(project_ids):
            recalculate_progress(db, project_id, commit=False)
        db.commit()
    except Exception:
        db.rollback()
        raise


@router.get("/projects/{project_id}")
def project_timeline(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """
    The full timeline of a project: milestones with their tasks and
    completion counts, tasks not under any milestone, and task dependencies.
    """
    project = get_project_or_404(db, project_id)

    milestones = db.exec(
        select(Milestone)
        .where(Milestone.project_id == project_id)
        .order_by(Milestone.order_index, Milestone.due_date)
    ).all()
    tasks = db.exec(
        select(Task)
        .where(Task.project_id == project_id)
        .order_by(Task.order_index, Task.due_date, Task.id)
    ).all()

    task_ids = [t.id for t in tasks]
    dependencies = []
    if task_ids:
        dependencies = db.exec(
            select(TaskDependency).where(TaskDependency.task_id.in_(task_ids))
        ).all()
    names = {t.id: t.name for t in tasks}

    milestone_views = []
    for milestone in milestones:
        own_tasks = [t for t in tasks if t.milestone_id == milestone.id]
        milestone_views.append(
            {
                **MilestoneRead.model_validate(milestone).model_dump(),
                "task_count": len(own_tasks),
                "completed_tasks": sum(1 for t in own_tasks if t.status == TaskStatus.COMPLETED),
                "tasks": [TaskRead.model_validate(t) for t in own_tasks],
            }
        )

    return {
        "project": ProjectRead.model_validate(project),
        "milestones": milestone_views,
        "unassigned_tasks": [TaskRead.model_validate(t) for t in tasks if t.milestone_id is None],
        "dependencies": [
            {
                **d.model_dump(),
                "depends_on_task_name": names.get(d.depends_on_task_id)
                or getattr(db.get(Task, d.depends_on_task_id), "name", None),
            }
            for d in dependencies
        ],
    }


@router.get("/stats")
def timeline_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """
    Deadlines due within the next seven days, overdue milestones and tasks
    (most overdue first), and the projects whose progress changed this week.
    """
    today = date.today()
    horizon = today + timedelta(days=7)

    def _item(kind, row, project_name):
        return {
            "id": row.id,
            "name": row.name,
            "type": kind,
            "due_date": row.due_date,
            "project_id": row.project_id,
            "project_name": project_name,
        }

    upcoming, overdue = [], []
    for milestone, project_name in db.exec(
        select(Milestone, Project.name)
        .join(Project, Project.id == Milestone.project_id)
        .where(Milestone.status != MilestoneStatus.COMPLETED.value)
    ).all():
        if today <= milestone.due_date <= horizon:
            upcoming.append(_item("milestone", milestone, project_name))
        elif milestone.due_date < today:
            overdue.append(_item("milestone", milestone, project_name))

    for task, project_name in db.exec(
        select(Task, Project.name)
        .join(Project, Project.id == Task.project_id)
        .where(Task.due_date.is_not(None), Task.status.not_in(CLOSED_TASK_STATUSES))
    ).all():
        if today <= task.due_date <= horizon:
            upcoming.append(_item("task", task, project_name))
        elif task.due_date < today:
            overdue.append(_item("task", task, project_name))

    for item in overdue:
        item["days_overdue"] = (today - item["due_date"]).days

    since = datetime.combine(today - timedelta(days=7), datetime.min.time())
    recent = db.exec(
        select(Project.id, Project.name, Project.progress, Project.updated_at)
        .where(Project.updated_at >= since)
        .order_by(Project.updated_at.desc())
        .limit(10)
    ).all()

    return {
        "upcoming_deadlines": sorted(upcoming, key=lambda i: i["due_date"]),
        "overdue_items": sorted(overdue, key=lambda i: i["days_overdue"], reverse=True),
        "recent_progress": [
            {"project_id": pid, "project_name": name, "progress": progress, "updated_at": updated_at}
            for pid, name, progress, updated_at in recent
        ],
    }


@router.post("/projects/{project_id}/update-progress")
def update_project_progress(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """Recalculate a project's progress from its tasks and return the figures."""
    result = recalculate_progress(db, project_id)
    return {"message": "Progress updated successfully", **result}


# Milestones


@router.post("/milestones", response_model=MilestoneRead, status_code=status.HTTP_201_CREATED)
def create_milestone(
    milestone_in: MilestoneCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    get_project_or_404(db, milestone_in.project_id)
    milestone = Milestone(**milestone_in.model_dump())
    milestone.name = milestone.name.strip()
    db.add(milestone)
    db.commit()
    db.refresh(milestone)
    logger.info("Milestone created. milestone_id=%s project_id=%s", milestone.id, milestone.project_id)
    return milestone


@router.put("/milestones/{milestone_id}", response_model=MilestoneRead)
def update_milestone(
    milestone_id: int,
    milestone_in: MilestoneUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    milestone = db.get(Milestone, milestone_id)
    if not milestone:
        raise HTTPException(status_code=404, detail="Milestone not found")

    for key, value in milestone_in.model_dump(exclude_unset=True).items():
        if key in ("name", "due_date", "status") and value is None:
            continue
        setattr(milestone, key, value)
    if milestone.status == MilestoneStatus.COMPLETED and milestone.completed_date is None:
        milestone.completed_date = date.today()

    db.add(milestone)
    db.commit()
    db.refresh(milestone)
    return milestone


@router.delete("/milestones/{milestone_id}")
def delete_milestone(
    milestone_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """Delete a milestone. Its tasks stay on the project without a milestone."""
    milestone = db.get(Milestone, milestone_id)
    if not milestone:
        raise HTTPException(status_code=404, detail="Milestone not found")
    db.delete(milestone)
    db.commit()
    return {"message": "Milestone deleted successfully"}


# Tasks


@router.get("/projects/{project_id}/tasks", response_model=List[TaskRead])
def list_project_tasks(
    project_id: int,
    status: Optional[TaskStatus] = None,
    assigned_to: Optional[int] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    get_project_or_404(db, project_id)
    statement = select(Task).where(Task.project_id == project_id)
    if status is not None:
        statement = statement.where(Task.status == status.value)
    if assigned_to is not None:
        statement = statement.where(Task.assigned_to == assigned_to)
    return db.exec(statement.order_by(Task.order_index, Task.due_date, Task.id)).all()


@router.post("/tasks", response_model=TaskRead, status_code=status.HTTP_201_CREATED)
def create_task(
    task_in: TaskCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """
    Create a task and recalculate the project's progress.

    Legacy status values such as "Done" are accepted and stored under their
    current name.
    """
    get_project_or_404(db, task_in.project_id)
    _check_milestone(db, task_in.milestone_id, task_in.project_id)
    _check_assignee(db, task_in.assigned_to)

    task = Task(**task_in.model_dump(), created_by=current_user.id)
    task.name = task.name.strip()
    _stamp_completion(task)
    db.add(task)
    _commit_with_progress(db, {task.project_id})
    db.refresh(task)
    logger.info("Task created. task_id=%s project_id=%s status=%s", task.id, task.project_id, TaskStatus(task.status).value)
    return task


@router.get("/tasks/{task_id}", response_model=TaskRead)
def read_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    return get_task_or_404(db, task_id)


@router.put("/tasks/{task_id}", response_model=TaskRead)
@router.patch("/tasks/{task_id}", response_model=TaskRead)
def update_task(
    task_id: int,
    task_in: TaskUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """
    Update a task and recalculate progress. A task moved to another project
    recalculates both projects.
    """
    task = get_task_or_404(db, task_id)
    update_data = task_in.model_dump(exclude_unset=True)
    for key in ("name", "status", "priority", "project_id"):
        if update_data.get(key) is None:
            update_data.pop(key, None)

    old_project_id = task.project_id
    new_project_id = update_data.get("project_id", old_project_id)
    if new_project_id != old_project_id:
        get_project_or_404(db, new_project_id)
        # A milestone of the old project cannot follow the task
        if "milestone_id" not in update_data:
            update_data["milestone_id"] = None
    _check_milestone(db, update_data.get("milestone_id", task.milestone_id), new_project_id)
    if "assigned_to" in update_data:
        _check_assignee(db, update_data["assigned_to"])

    status_changed = "status" in update_data and update_data["status"] != task.status
    for key, value in update_data.items():
        setattr(task, key, value)
    if status_changed and "completed_date" not in update_data:
        task.completed_date = None
        _stamp_completion(task)
    task.updated_at = utc_now()

    db.add(task)
    _commit_with_progress(db, {old_project_id, new_project_id})
    db.refresh(task)
    return task


@router.delete("/tasks/{task_id}")
def delete_task(
    task_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """Delete a task and recalculate the project's progress."""
    task = get_task_or_404(db, task_id)
    project_id = task.project_id
    db.delete(task)
    _commit_with_progress(db, {project_id})
    return {"message": "Task deleted successfully"}


# Dependencies


@router.post(
    "/tasks/{task_id}/dependencies",
    response_model=TaskDependency,
    status_code=status.HTTP_201_CREATED,
)
def add_dependency(
    task_id: int,
    dependency_in: TaskDependencyCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """
    Record that a task depends on another task.

    Raises:
        HTTPException 404: If either task doesn't exist
        HTTPException 422: If a task would depend on itself
        HTTPException 409: If the dependency already exists
    """
    get_task_or_404(db, task_id)
    if dependency_in.depends_on_task_id == task_id:
        raise HTTPException(status_code=422, detail="A task cannot depend on itself")
    get_task_or_404(db, dependency_in.depends_on_task_id)

    existing = db.exec(
        select(TaskDependency).where(
            TaskDependency.task_id == task_id,
            TaskDependency.depends_on_task_id == dependency_in.depends_on_task_id,
        )
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail="Dependency already exists")

    dependency = TaskDependency(
        task_id=task_id,
        depends_on_task_id=dependency_in.depends_on_task_id,
        dependency_type=dependency_in.dependency_type or "Finish-to-Start",
    )
    db.add(dependency)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Dependency already exists")
    db.refresh(dependency)
    return dependency


@router.delete("/tasks/{task_id}/dependencies/{dependency_id}")
def remove_dependency(
    task_id: int,
    dependency_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    dependency = db.get(TaskDependency, dependency_id)
    if not dependency or dependency.task_id != task_id:
        raise HTTPException(status_code=404, detail="Dependency not found")
    db.delete(dependency)
    db.commit()
    return {"message": "Dependency removed successfully"}
