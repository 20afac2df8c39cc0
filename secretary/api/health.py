from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from secretary.config import settings
from secretary.db import engine, get_db

router = APIRouter(tags=["health"])


@router.get("")
def health(db: Session = Depends(get_db)) -> dict:
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as exc:  # pragma: no cover
        logger.bind(tag="health").warning("database probe failed", error=str(exc))
        database = "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "timestamp": datetime.now(tz=timezone.utc).isoformat(),
        "service": settings.project_name,
        "database": f"{engine.dialect.name}:{database}",
    }
