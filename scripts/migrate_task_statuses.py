"""
Migration script to move stored task statuses onto the current vocabulary
(To Do, In Progress, Review, Completed, Cancelled) and refresh project progress.
"""
import sys
import os

# Add current directory to path
sys.path.append(os.getcwd())

from sqlmodel import Session

from sportspm.core.logging import setup_app_logging
from sportspm.db.session import engine
from sportspm.services.progress import migrate_task_statuses


def migrate_tasks_table():
    print("--- Migrating Task Statuses ---")
    setup_app_logging()

    with Session(engine) as session:
        migrated = migrate_task_statuses(session)

    if migrated:
        print(f"✓ Rewrote {migrated} task status value(s)")
    else:
        print("✓ All task statuses already use the current values")


if __name__ == "__main__":
    migrate_tasks_table()
