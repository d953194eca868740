"""
Comment Model Module

Discussion comments attached to a project (and optionally one of its tasks).
"""
from typing import Optional
from datetime import datetime
from sqlmodel import SQLModel, Field

from sportspm.models.common import utc_now


class Comment(SQLModel, table=True):
    __tablename__ = "project_comments"

    id: Optional[int] = Field(default=None, primary_key=True)
    project_id: int = Field(foreign_key="projects.id", ondelete="CASCADE", index=True)
    task_id: Optional[int] = Field(default=None, foreign_key="project_tasks.id", ondelete="CASCADE")
    author_id: Optional[int] = Field(default=None, foreign_key="users.id", ondelete="SET NULL")
    content: str = Field(nullable=False)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class CommentCreate(SQLModel):
    project_id: int
    task_id: Optional[int] = None
    content: str = ""


class CommentUpdate(SQLModel):
    content: str = ""


class CommentRead(SQLModel):
    id: int
    project_id: int
    task_id: Optional[int] = None
    author_id: Optional[int] = None
    author_name: Optional[str] = None
    author_avatar: Optional[str] = None
    content: str
    created_at: datetime
    updated_at: datetime
