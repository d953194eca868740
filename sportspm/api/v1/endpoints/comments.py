"""
Comment Endpoints Module

Project discussion threads. Any user can comment; only the author can edit
a comment, and the author, the project creator or an admin can remove it.
"""
import logging
from typing import Any, List, Optional
from fastapi import APIRouter, Depends, status
from sqlmodel import Session, select
from sportspm.api import deps
from sportspm.core.errors import NotFound, PermissionDenied, ValidationError
from sportspm.db.session import get_db
from sportspm.models.comment import Comment, CommentCreate, CommentRead, CommentUpdate
from sportspm.models.common import utc_now
from sportspm.models.project import Project
from sportspm.models.task import Task
from sportspm.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter()


def _comment_read(comment: Comment, author: Optional[User] = None) -> CommentRead:
    return CommentRead.model_validate(
        comment,
        update={
            "author_name": author.name if author else None,
            "author_avatar": author.avatar if author else None,
        },
    )


def _clean_content(content: str) -> str:
    content = (content or "").strip()
    if not content:
        raise ValidationError("Comment content is required")
    return content


@router.get("/project/{project_id}", response_model=List[CommentRead])
def list_project_comments(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    """List a project's comments, newest first, with author details."""
    if not db.get(Project, project_id):
        raise NotFound("Project not found")
    rows = db.exec(
        select(Comment, User)
        .join(User, User.id == Comment.author_id, isouter=True)
        .where(Comment.project_id == project_id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    ).all()
    return [_comment_read(comment, author) for comment, author in rows]


@router.post("", response_model=CommentRead, status_code=status.HTTP_201_CREATED)
def create_comment(
    comment_in: CommentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    content = _clean_content(comment_in.content)
    if not db.get(Project, comment_in.project_id):
        raise NotFound("Project not found")
    if comment_in.task_id is not None:
        task = db.get(Task, comment_in.task_id)
        if not task or task.project_id != comment_in.project_id:
            raise NotFound("Task not found")

    comment = Comment(
        project_id=comment_in.project_id,
        task_id=comment_in.task_id,
        author_id=current_user.id,
        content=content,
    )
    db.add(comment)
    db.commit()
    db.refresh(comment)
    logger.info("Comment added. comment_id=%s project_id=%s", comment.id, comment.project_id)
    return _comment_read(comment, current_user)


@router.put("/{comment_id}", response_model=CommentRead)
def update_comment(
    comment_id: int,
    comment_in: CommentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    comment = db.get(Comment, comment_id)
    if not comment:
        raise NotFound("Comment not found")
    if comment.author_id != current_user.id:
        raise PermissionDenied("Only the author can edit this comment")

    comment.content = _clean_content(comment_in.content)
    comment.updated_at = utc_now()
    db.add(comment)
    db.commit()
    db.refresh(comment)
    return _comment_read(comment, current_user)


@router.delete("/{comment_id}")
def delete_comment(
    comment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_active_user),
) -> Any:
    comment = db.get(Comment, comment_id)
    if not comment:
        raise NotFound("Comment not found")

    project = db.get(Project, comment.project_id)
    is_project_creator = project is not None and project.created_by == current_user.id
    if comment.author_id != current_user.id and not is_project_creator and not current_user.is_privileged:
        raise PermissionDenied("Not authorized to delete this comment")

    db.delete(comment)
    db.commit()
    return {"message": "Comment deleted successfully"}
