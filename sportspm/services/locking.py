"""
Row locks that serialise derived-state updates.

Each helper loads one row with SELECT ... FOR UPDATE and refreshes any copy
already in the session, so the caller works from the committed values for
the rest of its transaction. SQLite ignores FOR UPDATE; a file database
built by ``build_engine`` opens every transaction with BEGIN IMMEDIATE
instead, which gives the same ordering.
"""
from sqlmodel import Session, select

from sportspm.core.errors import NotFound
from sportspm.models.expense import Expense
from sportspm.models.project import Project
from sportspm.models.user import User


def lock_row(session: Session, model, row_id: int, label: str):
    statement = (
        select(model)
        .where(model.id == row_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    row = session.exec(statement).first()
    if row is None:
        raise NotFound(f"{label} not found")
    return row


def lock_project(session: Session, project_id: int) -> Project:
    return lock_row(session, Project, project_id, "Project")


def lock_user(session: Session, user_id: int) -> User:
    return lock_row(session, User, user_id, "User")


def lock_expense(session: Session, expense_id: int) -> Expense:
    return lock_row(session, Expense, expense_id, "Expense")
