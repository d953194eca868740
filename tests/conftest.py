from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel

import sportspm.models  # noqa: F401  registers every table on the metadata
from sportspm.core.security import create_access_token, get_password_hash
from sportspm.db.session import build_engine, get_db
from sportspm.main import app
from sportspm.models.project import Project
from sportspm.models.user import User, UserRole
from sportspm.services.budget import budget_status_for

TEST_PASSWORD = "secret123"


@pytest.fixture()
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture()
def client(session: Session):
    def _get_db_override():
        yield session

    app.dependency_overrides[get_db] = _get_db_override
    yield TestClient(app)
    app.dependency_overrides.clear()


def _make_user(session: Session, name: str, email: str, role: UserRole) -> User:
    user = User(name=name, email=email, password=get_password_hash(TEST_PASSWORD), role=role)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture()
def admin(session: Session) -> User:
    return _make_user(session, "Ada Admin", "ada@example.com", UserRole.ADMIN)


@pytest.fixture()
def manager(session: Session) -> User:
    return _make_user(session, "Max Manager", "max@example.com", UserRole.MANAGER)


@pytest.fixture()
def member(session: Session) -> User:
    return _make_user(session, "Tess Member", "tess@example.com", UserRole.TEAM_MEMBER)


@pytest.fixture()
def other_member(session: Session) -> User:
    return _make_user(session, "Otto Member", "otto@example.com", UserRole.TEAM_MEMBER)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(subject=user.email)}"}


@pytest.fixture()
def admin_headers(admin: User) -> dict:
    return auth_headers(admin)


@pytest.fixture()
def manager_headers(manager: User) -> dict:
    return auth_headers(manager)


@pytest.fixture()
def member_headers(member: User) -> dict:
    return auth_headers(member)


@pytest.fixture()
def project_factory(session: Session, member: User):
    def _create(name: str = "Youth Football League", budget="1000.00", created_by: Optional[User] = None) -> Project:
        project = Project(
            name=name,
            budget=Decimal(budget),
            start_date=date(2026, 1, 1),
            end_date=date(2026, 12, 31),
            created_by=(created_by or member).id,
        )
        project.budget_status = budget_status_for(project.budget, project.actual_cost)
        session.add(project)
        session.commit()
        session.refresh(project)
        return project

    return _create


@pytest.fixture()
def project(project_factory) -> Project:
    return project_factory()
