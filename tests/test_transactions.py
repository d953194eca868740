"""
Transaction handling: rollback in the request session, and concurrent
writers against a file-backed SQLite database.

Each worker runs in its own thread with its own session, the way two
requests would. A short sleep is injected between the read and the write of
each check-then-act sequence so that, without serialisation, both workers
would act on the same stale read.
"""
from __future__ import annotations

import threading
import time
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func
from sqlmodel import Session, SQLModel, select

import sportspm.models  # noqa: F401  registers every table on the metadata
from sportspm.core.errors import CapacityExceeded, NotFound
from sportspm.db import session as db_session
from sportspm.db.session import build_engine
from sportspm.models.allocation import AllocationCreate, ResourceAllocation
from sportspm.models.expense import Expense, ExpenseCategory, ExpenseCreate
from sportspm.models.project import BudgetStatus, Project
from sportspm.models.user import User, UserRole
from sportspm.services import allocations as guard
from sportspm.services import budget as ledger

PAUSE = 0.3


@pytest.fixture()
def file_engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'sportspm.db'}")
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def seeded(file_engine):
    with Session(file_engine) as session:
        coach = User(name="Cora Coach", email="cora@example.com", password="unused", role=UserRole.TEAM_MEMBER)
        session.add(coach)
        session.commit()
        session.refresh(coach)
        projects = [
            Project(
                name=name,
                budget=Decimal("1000.00"),
                budget_status=BudgetStatus.UNDER_BUDGET,
                created_by=coach.id,
            )
            for name in ("Project A", "Project B")
        ]
        session.add_all(projects)
        session.commit()
        for project in projects:
            session.refresh(project)
        session.refresh(coach)
        return coach, projects


def _run_together(*calls):
    """Start every call at the same moment in its own thread; return results or raised errors."""
    barrier = threading.Barrier(len(calls))
    outcomes = [None] * len(calls)

    def _worker(index, call):
        barrier.wait()
        try:
            outcomes[index] = call()
        except Exception as exc:
            outcomes[index] = exc

    threads = [threading.Thread(target=_worker, args=(i, call)) for i, call in enumerate(calls)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)
    assert not any(thread.is_alive() for thread in threads)
    return outcomes


def _allocate(engine, project_id: int, user_id: int, percentage: int) -> int:
    with Session(engine) as session:
        allocation = guard.allocate(
            session,
            AllocationCreate(
                project_id=project_id,
                user_id=user_id,
                role="Coach",
                allocation_percentage=percentage,
                start_date=date(2026, 2, 1),
                end_date=date(2026, 6, 30),
            ),
        )
        return allocation.id


def _record(engine, project_id: int, submitter: User, amount: str) -> int:
    with Session(engine) as session:
        expense = ledger.record_expense(
            session,
            ExpenseCreate(
                project_id=project_id,
                description="Match balls",
                amount=Decimal(amount),
                category="Equipment",
                expense_date=date(2026, 3, 14),
            ),
            submitter,
        )
        return expense.id


def test_concurrent_allocations_cannot_pass_the_capacity_ceiling(
    file_engine, seeded, monkeypatch: pytest.MonkeyPatch
) -> None:
    coach, (project_a, project_b) = seeded
    read_total = guard.user_total_allocation

    def _slow_total(*args, **kwargs):
        total = read_total(*args, **kwargs)
        time.sleep(PAUSE)
        return total

    monkeypatch.setattr(guard, "user_total_allocation", _slow_total)

    outcomes = _run_together(
        lambda: _allocate(file_engine, project_a.id, coach.id, 60),
        lambda: _allocate(file_engine, project_b.id, coach.id, 60),
    )

    assert len([o for o in outcomes if isinstance(o, CapacityExceeded)]) == 1
    assert len([o for o in outcomes if isinstance(o, int)]) == 1
    with Session(file_engine) as session:
        total = session.exec(
            select(func.sum(ResourceAllocation.allocation_percentage)).where(ResourceAllocation.user_id == coach.id)
        ).one()
    assert total == 60


def test_concurrent_expenses_all_reach_actual_cost(file_engine, seeded, monkeypatch: pytest.MonkeyPatch) -> None:
    coach, (project, _) = seeded
    lock_project = ledger.lock_project

    def _slow_lock(session, project_id):
        locked = lock_project(session, project_id)
        time.sleep(PAUSE)
        return locked

    monkeypatch.setattr(ledger, "lock_project", _slow_lock)

    outcomes = _run_together(*[lambda: _record(file_engine, project.id, coach, "100") for _ in range(4)])

    assert all(isinstance(o, int) for o in outcomes), outcomes
    with Session(file_engine) as session:
        stored = session.get(Project, project.id)
        expense_total = session.exec(
            select(func.sum(Expense.amount)).where(Expense.project_id == project.id)
        ).one()
        assert Decimal(str(stored.actual_cost)) == Decimal("400.00")
        assert Decimal(str(expense_total)).quantize(Decimal("0.01")) == Decimal("400.00")
        assert stored.budget_status == BudgetStatus.UNDER_BUDGET.value


def test_request_session_rolls_back_when_the_handler_fails(engine, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(db_session, "engine", engine)
    dependency = db_session.get_db()
    db = next(dependency)
    db.add(ExpenseCategory(name="Half written"))
    db.flush()

    with pytest.raises(RuntimeError):
        dependency.throw(RuntimeError("handler failed"))

    with Session(engine) as check:
        assert check.exec(select(ExpenseCategory)).all() == []


def test_failed_deallocation_leaves_the_session_usable(session, project, member) -> None:
    with pytest.raises(NotFound):
        guard.deallocate(session, 9999)
    allocation = guard.allocate(
        session,
        AllocationCreate(
            project_id=project.id,
            user_id=member.id,
            role="Coach",
            allocation_percentage=40,
            start_date=date(2026, 2, 1),
            end_date=date(2026, 6, 30),
        ),
    )
    guard.deallocate(session, allocation.id)
    assert session.get(ResourceAllocation, allocation.id) is None
