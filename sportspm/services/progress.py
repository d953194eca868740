"""
Progress Recalculator

A project's progress is the share of its tasks whose status is Completed,
as a whole percentage. Task writes recalculate it in their own transaction;
the timeline API also exposes it as an explicit operation.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict

from sqlalchemy import case, func
from sqlmodel import Session, select

from sportspm.models.common import utc_now
from sportspm.models.task import Task, TaskStatus, coerce_task_status
from sportspm.services.locking import lock_project

logger = logging.getLogger(__name__)


def progress_percentage(completed: int, total: int) -> int:
    """Whole-number percentage, rounding halves up. Zero when there are no tasks."""
    if total <= 0:
        return 0
    ratio = Decimal(completed * 100) / Decimal(total)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def task_counts(session: Session, project_id: int) -> Dict[str, int]:
    statement = select(
        func.count(Task.id),
        func.coalesce(func.sum(case((Task.status == TaskStatus.COMPLETED.value, 1), else_=0)), 0),
    ).where(Task.project_id == project_id)
    total, completed = session.exec(statement).one()
    return {"total_tasks": int(total), "completed_tasks": int(completed)}


def recalculate_progress(session: Session, project_id: int, commit: bool = True) -> Dict[str, int]:
    """
    Recompute and store a project's progress from its task completion ratio.

    With commit=False the caller owns the transaction, which lets task writes
    and the progress update land together.

    Returns:
        dict: progress, total_tasks and completed_tasks

    Raises:
        NotFound: If the project does not exist
    """
    project = lock_project(session, project_id)

    session.flush()
    counts = task_counts(session, project_id)
    progress = progress_percentage(counts["completed_tasks"], counts["total_tasks"])

    project.progress = progress
    project.updated_at = utc_now()
    session.add(project)
    if commit:
        session.commit()

    logger.info(
        "Progress recalculated. project_id=%s progress=%s completed=%s total=%s",
        project_id, progress, counts["completed_tasks"], counts["total_tasks"],
    )
    return {"progress": progress, **counts}


def migrate_task_statuses(session: Session) -> int:
    """
    Rewrite stored task statuses onto the TaskStatus vocabulary.

    Legacy values (e.g. "Done") are mapped to their canonical status; values
    that cannot be mapped are reset to To Do and logged. Projects whose tasks
    changed get their progress recalculated.

    Returns:
        int: Number of tasks rewritten
    """
    canonical = [s.value for s in TaskStatus]
    tasks = session.exec(select(Task).where(Task.status.not_in(canonical))).all()

    touched_projects = set()
    for task in tasks:
        try:
            new_status = coerce_task_status(task.status)
        except ValueError:
            logger.warning(
                "Unrecognised task status reset. task_id=%s status=%r", task.id, task.status
            )
            new_status = TaskStatus.TODO
        task.status = new_status
        session.add(task)
        touched_projects.add(task.project_id)

    for project_id in touched_projects:
        recalculate_progress(session, project_id, commit=False)
    session.commit()

    if tasks:
        logger.info("Task statuses migrated. tasks=%s projects=%s", len(tasks), len(touched_projects))
    return len(tasks)
