import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from staffdesk.config import get_settings
from staffdesk.db import SessionDep
from staffdesk.models import StoredDocument

logger = logging.getLogger(__name__)

health_router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Service status and whether the document store answered."""

    status: Literal["ok", "degraded"]
    version: str
    environment: str
    store_reachable: bool
    documents: int | None = None


@health_router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep) -> HealthResponse:
    settings = get_settings()
    documents: int | None = None

    try:
        result = await session.execute(select(func.count()).select_from(StoredDocument))
        documents = result.scalar_one()
    except (SQLAlchemyError, OSError):
        logger.exception("Health check: document store unreachable")

    return HealthResponse(
        status="ok" if documents is not None else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        store_reachable=documents is not None,
        documents=documents,
    )
