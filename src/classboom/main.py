"""Main FastAPI application"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from src.classboom.api.endpoints import health, student_import
from src.classboom.config import settings
from src.classboom.services.session_store import get_session_store

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting ClassBoom API in {settings.APP_ENV} environment")
    logger.info(
        f"Student import limits: {settings.IMPORT_MAX_UPLOAD_MB}MB, {settings.IMPORT_MAX_ROWS} rows, "
        f"batch size {settings.IMPORT_BATCH_SIZE}, {settings.IMPORT_MAX_WORKERS} worker(s)"
    )

    yield

    store = get_session_store()
    logger.info(f"Shutting down ClassBoom API ({len(store)} import sessions discarded)")


app = FastAPI(
    title="ClassBoom - Institution Management",
    description="Institution management dashboard API: student bulk import",
    version="0.1.0",
    lifespan=lifespan
)

app.include_router(health.router, tags=["Health"])
app.include_router(student_import.router, tags=["Student Import"])


@app.get("/")
def root():
    return {
        "message": "ClassBoom API",
        "environment": settings.APP_ENV,
        "docs": "/docs"
    }
