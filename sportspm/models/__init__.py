from .user import User, UserRole
from .project import Project, ProjectStatus, ProjectPriority, BudgetStatus
from .expense import Expense, ExpenseCategory
from .allocation import ResourceAllocation
from .task import Milestone, Task, TaskDependency, TaskStatus, MilestoneStatus
from .comment import Comment

__all__ = [
    "User", "UserRole",
    "Project", "ProjectStatus", "ProjectPriority", "BudgetStatus",
    "Expense", "ExpenseCategory",
    "ResourceAllocation",
    "Milestone", "Task", "TaskDependency", "TaskStatus", "MilestoneStatus",
    "Comment",
]
