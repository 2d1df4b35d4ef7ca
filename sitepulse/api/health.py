from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
import structlog

from sitepulse.db import get_session

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health")
def health(session: Session = Depends(get_session)):
    """Liveness plus database connectivity."""
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Health check failed", error=str(e))
        return JSONResponse(
            status_code=500,
            content={
                "status": "unhealthy",
                "timestamp": timestamp,
                "database": {"connected": False, "error": str(e)},
            },
        )

    return {
        "status": "healthy",
        "timestamp": timestamp,
        "database": {"connected": True, "dialect": session.get_bind().dialect.name},
    }
