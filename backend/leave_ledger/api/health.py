import logging
from typing import Literal

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from leave_ledger.config import get_settings
from leave_ledger.db import SessionDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Liveness of the service and reachability of its ledger database."""

    status: Literal["ok", "degraded"]
    database: Literal["up", "down"]
    service: str
    version: str
    environment: str


@router.get("/health", response_model=HealthResponse)
async def health(session: SessionDep) -> HealthResponse:
    settings = get_settings()
    database: Literal["up", "down"] = "up"

    try:
        await session.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check: ledger database unreachable")
        database = "down"

    return HealthResponse(
        status="ok" if database == "up" else "degraded",
        database=database,
        service=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )
