import sys
import os

# Add current directory to path
sys.path.append(os.getcwd())

from sqlmodel import Session

from sportspm.core.config import settings
from sportspm.db.init_db import init_db, ensure_first_admin
from sportspm.db.session import engine
from sportspm.models.user import UserRole


def create_initial_user():
    print("--- Initial User Creation ---")

    # Creates tables, seeds expense categories and normalises task statuses
    init_db(engine)

    with Session(engine) as session:
        user = ensure_first_admin(session)
        print(f"Admin account: {user.email} (id={user.id}, role={UserRole(user.role).value})")
        if user.email == settings.FIRST_ADMIN_EMAIL and settings.FIRST_ADMIN_PASSWORD == "admin123":
            print("WARNING: the default admin password is in use. Set FIRST_ADMIN_PASSWORD.")


if __name__ == "__main__":
    create_initial_user()
