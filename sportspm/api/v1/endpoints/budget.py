"""
Budget Endpoints Module

Expense writes go through the budget ledger service, which keeps each
project's actual_cost and budget_status in step with its expenses. The read
endpoints summarise spend per project and across the department.
"""
import logging
from collections import OrderedDict
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from sqlalchemy import case, func
from sqlmodel import Session, select
from sportspm.api import deps
from sportspm.db.session import get_db
from sportspm.models.expense import (
    Expense,
    ExpenseApproval,
    ExpenseCategory,
    ExpenseCategoryCreate,
    ExpenseCreate,
    ExpenseRead,
    ExpenseUpdate,
)
from sportspm.models.project import BudgetStatus, Project
from sportspm.models.user import User, UserRole
from sportspm.services import budget as ledger
from sportspm.services.notifications import get_notification_service

logger = logging.getLogger(__name__)

router = APIRouter()

CENTS = Decimal("0.01")


def _money(value) -> Decimal:
    # Aggregates may come back as float or int depending on the backend
    return Decimal(str(value or 0)).quantize(CENTS)


def _user_names(db: Session, user_ids) -> Dict[int, str]:
    ids = {uid for uid in user_ids if uid is not None}
    if not ids:
        return {}
    rows = db.exec(select(User.id, User.name).where(User.id.in_(ids))).all()
    return {uid: name for uid, name in rows}


def _expense_reads(db: Session, expenses: List[Expense]) -> List[ExpenseRead]:
    names = _user_names(
        db, [e.submitted_by for e in expenses] + [e.approved_by for e in expenses]
    )
    return [
        ExpenseRead.model_validate(
            e,
            update={
                "submitted_by_name": names.get(e.submitted_by),
                "approved_by_name": names.get(e.approved_by),
            },
        )
        for e in expenses
    ]


def _expense_notification(db: Session, expense: Expense, submitter: User) -> Optional[dict]:
    project = db.get(Project, expense.project_id)
    approvers = db.exec(
        select(User.email).where(User.role.in_([UserRole.ADMIN.value, UserRole.MANAGER.value]))
    ).all()
    recipients = set(approvers)
    if project.created_by:
        creator = db.get(User, project.created_by)
        if creator:
            recipients.add(creator.email)
    recipients.discard(submitter.email)
    if not recipients:
        return None
    return {
        "recipients": sorted(recipients),
        "context": {
            "project_name": project.name,
            "description": expense.description,
            "submitter_name": submitter.name,
            "category": expense.category,
            "amount": expense.amount,
            "expense_date": expense.expense_date.isoformat(),
            "actual_cost": project.actual_cost,
            "budget": project.budget,
            "budget_status": BudgetStatus(project.budget_status).value,
        },
    }


@router.get("/projects/{project_id}")
def budget_overview(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """
    Budget overview for one project.

    Returns the project's budget figures with remaining budget and utilisation,
    spend grouped by category, the ten most recent expenses and the split
    between approved and pending spend.
    """
    project = db.get(Project, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")

    budget = Decimal(project.budget or 0)
    actual_cost = Decimal(project.actual_cost or 0)
    utilization = float(actual_cost / budget * 100) if budget > 0 else 0.0

    by_category = db.exec(
        select(
            Expense.category,
            func.count(Expense.id),
            func.sum(Expense.amount),
            func.avg(Expense.amount),
        )
        .where(Expense.project_id == project_id)
        .group_by(Expense.category)
        .order_by(func.sum(Expense.amount).desc())
    ).all()

    recent = db.exec(
        select(Expense)
        .where(Expense.project_id == project_id)
        .order_by(Expense.created_at.desc(), Expense.id.desc())
        .limit(10)
    ).all()

    approved_total, pending_total, total_count, approved_count = db.exec(
        select(
            func.coalesce(func.sum(case((Expense.approved.is_(True), Expense.amount), else_=0)), 0),
            func.coalesce(func.sum(case((Expense.approved.is_(False), Expense.amount), else_=0)), 0),
            func.count(Expense.id),
            func.coalesce(func.sum(case((Expense.approved.is_(True), 1), else_=0)), 0),
        ).where(Expense.project_id == project_id)
    ).one()

    return {
        "project": {
            "id": project.id,
            "name": project.name,
            "budget": budget,
            "actual_cost": actual_cost,
            "budget_status": BudgetStatus(project.budget_status).value,
            "remaining_budget": budget - actual_cost,
            "budget_utilization": round(utilization, 2),
        },
        "expenses_by_category": [
            {
                "category": category,
                "count": count,
                "total_amount": _money(total),
                "avg_amount": round(float(avg or 0), 2),
            }
            for category, count, total, avg in by_category
        ],
        "recent_expenses": _expense_reads(db, recent),
        "budget_comparison": {
            "approved_expenses": _money(approved_total),
            "pending_expenses": _money(pending_total),
            "total_expenses": int(total_count),
            "approved_count": int(approved_count),
        },
    }


@router.get("/projects/{project_id}/expenses", response_model=List[ExpenseRead])
def list_project_expenses(
    project_id: int,
    category: Optional[str] = None,
    status: Optional[str] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """
    List a project's expenses, newest first.

    Args:
        category: Only expenses in this category
        status: "approved" or "pending"
        date_from: Only expenses dated on or after this day
        date_to: Only expenses dated on or before this day
    """
    if not db.get(Project, project_id):
        raise HTTPException(status_code=404, detail="Project not found")

    statement = select(Expense).where(Expense.project_id == project_id)
    if category:
        statement = statement.where(Expense.category == category)
    if status == "approved":
        statement = statement.where(Expense.approved.is_(True))
    elif status == "pending":
        statement = statement.where(Expense.approved.is_(False))
    elif status:
        raise HTTPException(status_code=422, detail="status must be 'approved' or 'pending'")
    if date_from:
        statement = statement.where(Expense.expense_date >= date_from)
    if date_to:
        statement = statement.where(Expense.expense_date <= date_to)

    expenses = db.exec(statement.order_by(Expense.expense_date.desc(), Expense.id.desc())).all()
    return _expense_reads(db, expenses)


@router.post("/expenses", response_model=ExpenseRead, status_code=status.HTTP_201_CREATED)
def create_expense(
    expense_in: ExpenseCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """
    Submit an expense against a project.

    The expense starts unapproved and its amount counts towards the project's
    actual cost straight away. Approvers are emailed in the background.
    """
    expense = ledger.record_expense(db, expense_in, current_user)

    notification = _expense_notification(db, expense, current_user)
    if notification:
        background_tasks.add_task(
            get_notification_service().notify,
            "expense_submitted.txt",
            notification["recipients"],
            notification["context"],
        )
    return _expense_reads(db, [expense])[0]


@router.put("/expenses/{expense_id}", response_model=ExpenseRead)
def update_expense(
    expense_id: int,
    expense_in: ExpenseUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """Revise an expense; the project's cost moves by the change in amount."""
    expense = ledger.revise_expense(db, expense_id, expense_in)
    return _expense_reads(db, [expense])[0]


@router.patch("/expenses/{expense_id}/approve", response_model=ExpenseRead)
def approve_expense(
    expense_id: int,
    approval: ExpenseApproval,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.require_manager),
) -> Any:
    """Approve or reject an expense. Admins and managers only."""
    expense = ledger.set_approval(db, expense_id, approval.approved, current_user)
    return _expense_reads(db, [expense])[0]


@router.delete("/expenses/{expense_id}")
def delete_expense(
    expense_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """Delete an expense and take its amount off the project's cost."""
    ledger.remove_expense(db, expense_id)
    return {"message": "Expense deleted successfully"}


@router.get("/categories", response_model=List[ExpenseCategory])
def list_categories(
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    return db.exec(select(ExpenseCategory).order_by(ExpenseCategory.name)).all()


@router.post("/categories", response_model=ExpenseCategory, status_code=status.HTTP_201_CREATED)
def create_category(
    category_in: ExpenseCategoryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.require_manager),
) -> Any:
    """
    Add an expense category. Admins and managers only.

    Raises:
        HTTPException 409: If a category with this name already exists
    """
    name = category_in.name.strip()
    if not name:
        raise HTTPException(status_code=422, detail="Category name is required")
    if db.exec(select(ExpenseCategory).where(ExpenseCategory.name == name)).first():
        raise HTTPException(status_code=409, detail="Category already exists")

    category = ExpenseCategory(name=name, description=category_in.description)
    if category_in.color:
        category.color = category_in.color
    db.add(category)
    db.commit()
    db.refresh(category)
    logger.info("Expense category created. name=%s by=%s", name, current_user.id)
    return category


def _month_start(day: date) -> date:
    return day.replace(day=1)


@router.get("/analytics")
def budget_analytics(
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """
    Department-wide budget figures: totals over projects that have a budget,
    project counts per budget status, monthly spend over the last twelve
    months and the ten most expensive categories.
    """
    total_projects, total_budget, total_actual, avg_budget, avg_actual = db.exec(
        select(
            func.count(Project.id),
            func.coalesce(func.sum(Project.budget), 0),
            func.coalesce(func.sum(Project.actual_cost), 0),
            func.avg(Project.budget),
            func.avg(Project.actual_cost),
        ).where(Project.budget > 0)
    ).one()

    by_status = db.exec(
        select(
            Project.budget_status,
            func.count(Project.id),
            func.sum(Project.budget),
            func.sum(Project.actual_cost),
        )
        .where(Project.budget > 0)
        .group_by(Project.budget_status)
    ).all()

    # Month buckets are built here so the query stays portable across backends
    since = _month_start(date.today() - timedelta(days=365))
    monthly: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
    rows = db.exec(
        select(Expense.expense_date, Expense.amount)
        .where(Expense.expense_date >= since)
        .order_by(Expense.expense_date.desc())
    ).all()
    for expense_date, amount in rows:
        key = _month_start(expense_date).isoformat()
        bucket = monthly.setdefault(key, {"month": key, "expense_count": 0, "total_amount": Decimal("0")})
        bucket["expense_count"] += 1
        bucket["total_amount"] += _money(amount)

    top_categories = db.exec(
        select(Expense.category, func.count(Expense.id), func.sum(Expense.amount))
        .group_by(Expense.category)
        .order_by(func.sum(Expense.amount).desc())
        .limit(10)
    ).all()

    return {
        "overall_stats": {
            "total_projects": int(total_projects),
            "total_budget": _money(total_budget),
            "total_actual_cost": _money(total_actual),
            "avg_budget": round(float(avg_budget or 0), 2),
            "avg_actual_cost": round(float(avg_actual or 0), 2),
        },
        "budget_status": [
            {
                "budget_status": BudgetStatus(budget_status).value,
                "count": count,
                "total_budget": _money(budget_sum),
                "total_actual_cost": _money(actual_sum),
            }
            for budget_status, count, budget_sum, actual_sum in by_status
        ],
        "monthly_trends": list(monthly.values()),
        "top_categories": [
            {"category": category, "expense_count": count, "total_amount": _money(total)}
            for category, count, total in top_categories
        ],
    }
