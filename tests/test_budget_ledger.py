from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func
from sqlmodel import Session, select

from sportspm.core.errors import NotFound, ValidationError
from sportspm.models.expense import Expense, ExpenseCreate, ExpenseUpdate
from sportspm.models.project import BudgetStatus, Project
from sportspm.services import budget as ledger


def _expense(project: Project, amount, description="Match balls", category="Equipment") -> ExpenseCreate:
    return ExpenseCreate(
        project_id=project.id,
        description=description,
        amount=Decimal(str(amount)),
        category=category,
        expense_date=date(2026, 3, 14),
    )


def _expense_total(session: Session, project_id: int) -> Decimal:
    total = session.exec(
        select(func.coalesce(func.sum(Expense.amount), 0)).where(Expense.project_id == project_id)
    ).one()
    return Decimal(str(total)).quantize(Decimal("0.01"))


def _reload(session: Session, project: Project) -> Project:
    session.expire_all()
    return session.get(Project, project.id)


@pytest.mark.parametrize(
    "budget, actual, expected",
    [
        ("1000", "0", BudgetStatus.UNDER_BUDGET),
        ("1000", "1000", BudgetStatus.ON_BUDGET),
        ("1000", "1000.01", BudgetStatus.OVER_BUDGET),
        ("0", "0", BudgetStatus.ON_BUDGET),
        ("0", "5", BudgetStatus.OVER_BUDGET),
    ],
)
def test_budget_status_for_classifies_spend(budget, actual, expected) -> None:
    assert ledger.budget_status_for(Decimal(budget), Decimal(actual)) == expected


def test_spend_crossing_the_budget_moves_status_and_back(session, project, member) -> None:
    assert project.budget_status == BudgetStatus.UNDER_BUDGET

    ledger.record_expense(session, _expense(project, 1000), member)
    project = _reload(session, project)
    assert project.actual_cost == Decimal("1000.00")
    assert project.budget_status == BudgetStatus.ON_BUDGET

    second = ledger.record_expense(session, _expense(project, 1, description="Whistle"), member)
    project = _reload(session, project)
    assert project.actual_cost == Decimal("1001.00")
    assert project.budget_status == BudgetStatus.OVER_BUDGET

    ledger.remove_expense(session, second.id)
    project = _reload(session, project)
    assert project.actual_cost == Decimal("1000.00")
    assert project.budget_status == BudgetStatus.ON_BUDGET


def test_revise_applies_the_difference_not_the_new_amount(session, project, member) -> None:
    ledger.record_expense(session, _expense(project, 300, description="Kit"), member)
    revised = ledger.record_expense(session, _expense(project, 200, description="Transport"), member)
    assert _reload(session, project).actual_cost == Decimal("500.00")

    ledger.revise_expense(session, revised.id, ExpenseUpdate(amount=Decimal("50")))

    project = _reload(session, project)
    assert project.actual_cost == Decimal("350.00")
    assert project.budget_status == BudgetStatus.UNDER_BUDGET


def test_actual_cost_matches_sum_of_expenses_after_every_operation(session, project, member) -> None:
    def check():
        current = _reload(session, project)
        assert current.actual_cost == _expense_total(session, project.id)
        assert current.budget_status == ledger.budget_status_for(current.budget, current.actual_cost)

    a = ledger.record_expense(session, _expense(project, "120.50"), member)
    check()
    b = ledger.record_expense(session, _expense(project, "899.49", category="Travel"), member)
    check()
    ledger.revise_expense(session, a.id, ExpenseUpdate(amount=Decimal("10.01"), category="Materials"))
    check()
    ledger.revise_expense(session, b.id, ExpenseUpdate(description="Coach hire"))
    check()
    ledger.remove_expense(session, a.id)
    check()
    ledger.remove_expense(session, b.id)
    check()
    assert _reload(session, project).actual_cost == Decimal("0.00")


def test_approval_does_not_change_actual_cost(session, project, member, manager) -> None:
    expense = ledger.record_expense(session, _expense(project, 250), member)
    assert expense.approved is False

    approved = ledger.set_approval(session, expense.id, True, manager)
    assert approved.approved is True
    assert approved.approved_by == manager.id
    assert approved.approved_at is not None
    assert _reload(session, project).actual_cost == Decimal("250.00")

    rejected = ledger.set_approval(session, expense.id, False, manager)
    assert rejected.approved is False
    assert _reload(session, project).actual_cost == Decimal("250.00")


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"amount": Decimal("0")}, "Amount must be greater than zero"),
        ({"amount": Decimal("-5")}, "Amount must be greater than zero"),
        ({"amount": Decimal("10000000000")}, "Amount cannot exceed 9999999999.99"),
        ({"description": "   "}, "Description is required"),
        ({"category": ""}, "Category is required"),
        ({"expense_date": None}, "Expense date is required"),
    ],
)
def test_record_rejects_invalid_fields_without_touching_the_project(
    session, project, member, overrides, message
) -> None:
    data = _expense(project, 10).model_copy(update=overrides)
    with pytest.raises(ValidationError) as exc:
        ledger.record_expense(session, data, member)
    assert exc.value.message == message

    current = _reload(session, project)
    assert current.actual_cost == Decimal("0.00")
    assert session.exec(select(Expense)).all() == []


def test_record_against_unknown_project_is_not_found(session, member) -> None:
    data = ExpenseCreate(
        project_id=9999,
        description="Balls",
        amount=Decimal("10"),
        category="Equipment",
        expense_date=date(2026, 1, 1),
    )
    with pytest.raises(NotFound):
        ledger.record_expense(session, data, member)


def test_revise_and_remove_unknown_expense_are_not_found(session, manager) -> None:
    with pytest.raises(NotFound):
        ledger.revise_expense(session, 42, ExpenseUpdate(amount=Decimal("1")))
    with pytest.raises(NotFound):
        ledger.remove_expense(session, 42)
    with pytest.raises(NotFound):
        ledger.set_approval(session, 42, True, manager)


def test_invalid_revision_leaves_cost_unchanged(session, project, member) -> None:
    expense = ledger.record_expense(session, _expense(project, 75), member)

    with pytest.raises(ValidationError):
        ledger.revise_expense(session, expense.id, ExpenseUpdate(amount=Decimal("0")))

    assert _reload(session, project).actual_cost == Decimal("75.00")
    assert session.get(Expense, expense.id).amount == Decimal("75.00")


def test_deleting_a_project_removes_its_expenses(session, project, member) -> None:
    ledger.record_expense(session, _expense(project, 30), member)
    session.delete(_reload(session, project))
    session.commit()
    session.expire_all()
    assert session.exec(select(Expense)).all() == []
