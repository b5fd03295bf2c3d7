"""Sync trigger route.

`GET /sync` runs one Konzertmeister -> BMV sync and reports a short
outcome. Details stay in the server log.

Calls must not overlap; whoever triggers the endpoint (cron, uptime
monitor, ...) has to wait for the previous call to return.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from km_bmv_sync.api.dependencies import (
    SyncRunner,
    get_app_settings,
    get_sync_runner,
    require_token,
)
from km_bmv_sync.config import Settings

logger = logging.getLogger(__name__)

router = APIRouter()


class SyncResponse(BaseModel):
    """Successful sync response."""

    message: str
    appointments_new: int
    activities_submitted: int


class SyncErrorResponse(BaseModel):
    """Failed sync response."""

    error: str


@router.get(
    "/sync",
    response_model=SyncResponse,
    responses={500: {"model": SyncErrorResponse}},
    dependencies=[Depends(require_token)],
)
async def trigger_sync(
    settings: Settings = Depends(get_app_settings),
    runner: SyncRunner = Depends(get_sync_runner),
):
    """Run a sync now."""
    logger.info("Starting sync process...")
    try:
        result = await runner(settings, limit=settings.sync_debug_limit)
    except Exception as e:
        logger.exception(f"Sync error: {e}")
        return _failed()

    if not result.success:
        logger.error(f"Sync failed: {'; '.join(result.errors)}")
        return _failed()

    logger.info(result.message)
    return SyncResponse(
        message="Sync completed successfully",
        appointments_new=result.appointments_new,
        activities_submitted=result.activities_submitted,
    )


def _failed() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Sync failed"},
    )
