import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from sportspm.db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=dict[str, Any])
def health_check(db: Session = Depends(get_db)) -> Any:
    """
    Health check endpoint. Reports whether the database answers a trivial query.
    """
    try:
        db.exec(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        logger.error("Health check database query failed: %s", e)
        database = "disconnected"
    return {
        "status": "ok" if database == "connected" else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "database": database,
    }
