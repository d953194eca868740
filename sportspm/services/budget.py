"""
Budget Ledger Service

Keeps ``projects.actual_cost`` and ``projects.budget_status`` consistent with the
expenses recorded against each project.

Every operation runs as one transaction. The owning project row is locked
(SELECT ... FOR UPDATE) before actual_cost is read, so concurrent expense
writes against one project are applied one after another and the stored
budget_status always reflects the committed actual_cost.
"""
import logging
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Optional

from sqlalchemy import update
from sqlmodel import Session

from sportspm.core.errors import NotFound, ValidationError
from sportspm.models.common import utc_now
from sportspm.models.expense import Expense, ExpenseCreate, ExpenseUpdate
from sportspm.models.project import BudgetStatus, Project
from sportspm.models.user import User
from sportspm.services.locking import lock_expense, lock_project

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
# Largest value a Numeric(12, 2) amount column holds
MAX_AMOUNT = Decimal("9999999999.99")


def budget_status_for(budget, actual_cost) -> BudgetStatus:
    """Classify spend against the budget ceiling."""
    budget = Decimal(budget or 0)
    actual_cost = Decimal(actual_cost or 0)
    if actual_cost > budget:
        return BudgetStatus.OVER_BUDGET
    if actual_cost == budget:
        return BudgetStatus.ON_BUDGET
    return BudgetStatus.UNDER_BUDGET


def _to_money(value, field: str = "amount") -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    return amount.quantize(CENTS)


def _validate_fields(
    description: Optional[str],
    amount,
    category: Optional[str],
    expense_date: Optional[date],
) -> Decimal:
    if amount is None:
        raise ValidationError("Amount is required")
    amount = _to_money(amount)
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    if amount > MAX_AMOUNT:
        raise ValidationError(f"Amount cannot exceed {MAX_AMOUNT}")
    if not description or not description.strip():
        raise ValidationError("Description is required")
    if not category or not category.strip():
        raise ValidationError("Category is required")
    if expense_date is None:
        raise ValidationError("Expense date is required")
    return amount


def apply_cost_delta(session: Session, project: Project, delta: Decimal) -> None:
    """
    Shift actual_cost by a signed delta and recompute budget_status.

    The addition runs in SQL against the stored value, so it never writes
    back a total computed from a stale read.
    """
    session.exec(
        update(Project)
        .where(Project.id == project.id)
        .values(actual_cost=Project.actual_cost + delta, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    session.refresh(project)
    project.budget_status = budget_status_for(project.budget, project.actual_cost)


def refresh_budget_status(project: Project) -> None:
    """Recompute budget_status after the budget ceiling itself changed."""
    project.budget_status = budget_status_for(project.budget, project.actual_cost)


def record_expense(session: Session, data: ExpenseCreate, submitter: User) -> Expense:
    """
    Record a new, unapproved expense and add its amount to the project's cost.

    Raises:
        ValidationError: Non-positive amount, empty description or category, missing date
        NotFound: If the project does not exist
    """
    amount = _validate_fields(data.description, data.amount, data.category, data.expense_date)
    try:
        project = lock_project(session, data.project_id)
        expense = Expense(
            project_id=project.id,
            description=data.description.strip(),
            amount=amount,
            category=data.category.strip(),
            expense_date=data.expense_date,
            notes=data.notes,
            receipt_url=data.receipt_url,
            submitted_by=submitter.id,
            approved=False,
        )
        session.add(expense)
        apply_cost_delta(session, project, amount)
        session.add(project)
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(expense)
    logger.info(
        "Expense recorded. expense_id=%s project_id=%s amount=%s actual_cost=%s budget_status=%s",
        expense.id, project.id, amount, project.actual_cost, BudgetStatus(project.budget_status).value,
    )
    return expense


def revise_expense(session: Session, expense_id: int, data: ExpenseUpdate) -> Expense:
    """
    Update an expense. The project's actual_cost moves by the difference
    between the new and the old amount, not to the new amount.

    Raises:
        NotFound: If the expense does not exist
        ValidationError: If the resulting field values are invalid
    """
    try:
        current = session.get(Expense, expense_id)
        if current is None:
            raise NotFound("Expense not found")
        project = lock_project(session, current.project_id)
        # Re-read under the project lock so the delta uses the committed amount
        expense = lock_expense(session, expense_id)

        changes = data.model_dump(exclude_unset=True)
        new_amount = _validate_fields(
            changes.get("description", expense.description),
            changes.get("amount", expense.amount),
            changes.get("category", expense.category),
            changes.get("expense_date", expense.expense_date),
        )
        delta = new_amount - Decimal(expense.amount)

        for key, value in changes.items():
            if key in ("description", "category") and value is not None:
                value = value.strip()
            setattr(expense, key, value)
        expense.amount = new_amount
        session.add(expense)

        apply_cost_delta(session, project, delta)
        session.add(project)
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(expense)
    logger.info(
        "Expense revised. expense_id=%s project_id=%s delta=%s actual_cost=%s budget_status=%s",
        expense.id, project.id, delta, project.actual_cost, BudgetStatus(project.budget_status).value,
    )
    return expense


def remove_expense(session: Session, expense_id: int) -> None:
    """
    Delete an expense and subtract its amount from the project's cost.

    Raises:
        NotFound: If the expense does not exist
    """
    try:
        current = session.get(Expense, expense_id)
        if current is None:
            raise NotFound("Expense not found")
        project = lock_project(session, current.project_id)
        expense = lock_expense(session, expense_id)
        amount = Decimal(expense.amount)

        apply_cost_delta(session, project, -amount)
        session.add(project)
        session.delete(expense)
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(
        "Expense removed. expense_id=%s project_id=%s amount=%s actual_cost=%s budget_status=%s",
        expense_id, project.id, amount, project.actual_cost, BudgetStatus(project.budget_status).value,
    )


def set_approval(session: Session, expense_id: int, approved: bool, approver: User) -> Expense:
    """
    Approve or reject an expense.

    Approval is a workflow flag: actual_cost already includes the expense
    and is left untouched.

    Raises:
        NotFound: If the expense does not exist
    """
    try:
        expense = session.get(Expense, expense_id)
        if expense is None:
            raise NotFound("Expense not found")

        expense.approved = approved
        expense.approved_by = approver.id
        expense.approved_at = utc_now()
        session.add(expense)
        session.commit()
    except Exception:
        session.rollback()
        raise

    session.refresh(expense)
    logger.info(
        "Expense approval set. expense_id=%s approved=%s approver_id=%s",
        expense.id, approved, approver.id,
    )
    return expense
