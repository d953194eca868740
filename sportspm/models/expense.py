"""
Expense Model Module

This module defines two models:
1. Expense: A cost recorded against a project, feeding the project's actual_cost
2. ExpenseCategory: Named categories expenses are usually filed under
"""
from decimal import Decimal
from typing import Optional
from datetime import date, datetime
from sqlmodel import SQLModel, Field

from sportspm.models.common import utc_now


class ExpenseCategory(SQLModel, table=True):
    """
    Expense category reference data.

    Expense.category is free-form text; categories exist so that clients can
    offer a consistent list and reports group cleanly.
    """
    __tablename__ = "expense_categories"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True, nullable=False)
    description: Optional[str] = None
    color: str = "#1976d2"  # Display color for charts
    created_at: datetime = Field(default_factory=utc_now)


class ExpenseCategoryCreate(SQLModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    color: Optional[str] = Field(default=None, regex=r"^#[0-9a-fA-F]{6}$")


class ExpenseBase(SQLModel):
    """
    Base properties for an Expense.
    """
    description: str = Field(nullable=False)
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    category: str = Field(nullable=False, index=True)
    expense_date: date = Field(nullable=False)
    notes: Optional[str] = None
    receipt_url: Optional[str] = None


class Expense(ExpenseBase, table=True):
    """
    Expense table model.

    Approval is a workflow flag only. actual_cost on the owning project counts
    every expense from the moment it is submitted, approved or not.
    """
    __tablename__ = "project_expenses"

    # Primary key
    id: Optional[int] = Field(default=None, primary_key=True)

    # Owning project; expenses go with it
    project_id: int = Field(foreign_key="projects.id", ondelete="CASCADE", index=True)

    # Approval workflow
    approved: bool = False
    approved_by: Optional[int] = Field(default=None, foreign_key="users.id", ondelete="SET NULL")
    approved_at: Optional[datetime] = None

    submitted_by: Optional[int] = Field(default=None, foreign_key="users.id", ondelete="SET NULL")
    created_at: datetime = Field(default_factory=utc_now)


class ExpenseCreate(SQLModel):
    """
    Schema for recording an expense.

    Field values are checked by the budget service so that the same rules
    apply whether an expense arrives over HTTP or from a script.
    """
    project_id: int
    description: str = ""
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    category: str = ""
    expense_date: Optional[date] = None
    notes: Optional[str] = None
    receipt_url: Optional[str] = None


class ExpenseUpdate(SQLModel):
    """Schema for revising an expense. Omitted fields keep their value."""
    description: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, max_digits=12, decimal_places=2)
    category: Optional[str] = None
    expense_date: Optional[date] = None
    notes: Optional[str] = None
    receipt_url: Optional[str] = None


class ExpenseApproval(SQLModel):
    approved: bool


class ExpenseRead(ExpenseBase):
    """Schema for reading an expense."""
    id: int
    project_id: int
    approved: bool
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    submitted_by: Optional[int] = None
    created_at: datetime
    submitted_by_name: Optional[str] = None
    approved_by_name: Optional[str] = None
