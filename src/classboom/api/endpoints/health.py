"""Health check: database reachability plus the student import's live state"""
import logging

from fastapi import APIRouter
from sqlalchemy import text

from src.classboom.api.deps import DbSession, Store
from src.classboom.config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
def health_check(db: DbSession, store: Store):
    settings = get_settings()
    try:
        db.execute(text("SELECT 1"))
        database = "connected"
    except Exception as e:
        logger.error(f"Health check could not reach the database: {e}")
        database = "unreachable"

    return {
        "status": "ok" if database == "connected" else "degraded",
        "environment": settings.APP_ENV,
        "database": database,
        "student_import": {
            "active_sessions": len(store),
            "max_upload_mb": settings.IMPORT_MAX_UPLOAD_MB,
            "max_rows": settings.IMPORT_MAX_ROWS,
            "batch_size": settings.IMPORT_BATCH_SIZE,
            "max_workers": settings.IMPORT_MAX_WORKERS,
        },
    }
