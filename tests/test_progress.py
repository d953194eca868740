from __future__ import annotations

import pytest
from pydantic import ValidationError as SchemaValidationError
from sqlmodel import select

from sportspm.core.errors import NotFound
from sportspm.models.project import Project
from sportspm.models.task import Task, TaskCreate, TaskStatus, TaskUpdate, coerce_task_status
from sportspm.services.progress import (
    migrate_task_statuses,
    progress_percentage,
    recalculate_progress,
)


def _add_tasks(session, project, statuses):
    for i, status in enumerate(statuses):
        session.add(Task(project_id=project.id, name=f"Task {i}", status=status))
    session.commit()


@pytest.mark.parametrize(
    "completed, total, expected",
    [(0, 0, 0), (0, 3, 0), (3, 4, 75), (1, 3, 33), (2, 3, 67), (151, 200, 76), (5, 5, 100)],
)
def test_progress_percentage_rounds_half_up(completed, total, expected) -> None:
    assert progress_percentage(completed, total) == expected


def test_project_without_tasks_has_zero_progress(session, project) -> None:
    result = recalculate_progress(session, project.id)
    assert result == {"progress": 0, "total_tasks": 0, "completed_tasks": 0}
    assert session.get(Project, project.id).progress == 0


def test_three_of_four_completed_is_75_percent(session, project) -> None:
    _add_tasks(
        session,
        project,
        [TaskStatus.COMPLETED, TaskStatus.COMPLETED, TaskStatus.COMPLETED, TaskStatus.IN_PROGRESS],
    )
    result = recalculate_progress(session, project.id)
    assert result == {"progress": 75, "total_tasks": 4, "completed_tasks": 3}

    session.expire_all()
    assert session.get(Project, project.id).progress == 75


def test_only_completed_counts_towards_progress(session, project) -> None:
    _add_tasks(session, project, [TaskStatus.COMPLETED, TaskStatus.CANCELLED, TaskStatus.REVIEW])
    assert recalculate_progress(session, project.id)["progress"] == 33


def test_recalculate_for_unknown_project_is_not_found(session) -> None:
    with pytest.raises(NotFound):
        recalculate_progress(session, 12345)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Done", TaskStatus.COMPLETED),
        ("done", TaskStatus.COMPLETED),
        ("Pending", TaskStatus.TODO),
        ("completed", TaskStatus.COMPLETED),
        ("In Progress", TaskStatus.IN_PROGRESS),
    ],
)
def test_legacy_statuses_map_onto_the_canonical_set(raw, expected) -> None:
    assert coerce_task_status(raw) == expected


def test_unknown_status_is_rejected_on_input(project) -> None:
    with pytest.raises(SchemaValidationError):
        TaskCreate(project_id=project.id, name="Warm-up drills", status="Finished-ish")
    with pytest.raises(SchemaValidationError):
        TaskUpdate(status="Blocked")
    assert TaskCreate(project_id=project.id, name="Drills", status="Done").status == TaskStatus.COMPLETED


def test_migration_rewrites_legacy_rows_and_refreshes_progress(session, project) -> None:
    _add_tasks(session, project, ["Done", "Pending", "Completed", "Mystery"])

    migrated = migrate_task_statuses(session)

    assert migrated == 3
    session.expire_all()
    statuses = sorted(t.status for t in session.exec(select(Task)).all())
    assert statuses == sorted(["Completed", "To Do", "Completed", "To Do"])
    assert session.get(Project, project.id).progress == 50

    assert migrate_task_statuses(session) == 0
