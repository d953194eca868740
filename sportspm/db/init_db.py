"""
Database Initialisation Module

Creates all tables and seeds the reference data the application expects:
the default expense categories and a bootstrap Admin account.
"""
import logging

from sqlmodel import Session, SQLModel, select

from sportspm.core.config import settings
from sportspm.core.security import get_password_hash
from sportspm.models import ExpenseCategory, User, UserRole
from sportspm.services.progress import migrate_task_statuses

logger = logging.getLogger(__name__)

DEFAULT_EXPENSE_CATEGORIES = [
    ("Equipment", "Hardware, software, and tools", "#1976d2"),
    ("Travel", "Transportation and accommodation", "#388e3c"),
    ("Materials", "Raw materials and supplies", "#f57c00"),
    ("Services", "External services and consulting", "#7b1fa2"),
    ("Marketing", "Advertising and promotional expenses", "#d32f2f"),
    ("Training", "Employee training and development", "#1976d2"),
    ("Utilities", "Electricity, internet, and other utilities", "#388e3c"),
    ("Other", "Miscellaneous expenses", "#757575"),
]


def seed_expense_categories(session: Session) -> int:
    """Insert any missing default categories. Returns how many were added."""
    existing = set(session.exec(select(ExpenseCategory.name)).all())
    added = 0
    for name, description, color in DEFAULT_EXPENSE_CATEGORIES:
        if name in existing:
            continue
        session.add(ExpenseCategory(name=name, description=description, color=color))
        added += 1
    session.commit()
    return added


def ensure_first_admin(session: Session) -> User:
    """Create the bootstrap Admin account unless a user with that email exists."""
    user = session.exec(select(User).where(User.email == settings.FIRST_ADMIN_EMAIL)).first()
    if user:
        return user

    user = User(
        name=settings.FIRST_ADMIN_NAME,
        email=settings.FIRST_ADMIN_EMAIL,
        password=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
        role=UserRole.ADMIN,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("Bootstrap admin account created. user_id=%s", user.id)
    return user


def init_db(engine) -> None:
    SQLModel.metadata.create_all(engine)
    with Session(engine) as session:
        added = seed_expense_categories(session)
        ensure_first_admin(session)
        migrated = migrate_task_statuses(session)
    logger.info("Database initialised. seeded_categories=%s migrated_tasks=%s", added, migrated)
