"""Operational router: scheduler introspection and manual task runs.

Requires a tenant API key.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter

from doclink.api.dependencies import AppContainer
from doclink.api.middleware.auth import CurrentTenant
from doclink.api.schemas.admin import (
    ScheduledTaskResponse,
    SchedulerStatusResponse,
    TriggerResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    responses={401: {"description": "Tenant API key required"}},
)


@router.get(
    "/scheduler",
    response_model=SchedulerStatusResponse,
    summary="Scheduled tasks and their next runs",
)
async def scheduler_status(
    tenant: CurrentTenant,
    container: AppContainer,
) -> SchedulerStatusResponse:
    scheduler = container.scheduler
    return SchedulerStatusResponse(
        running=scheduler.running,
        tasks=[ScheduledTaskResponse(**task) for task in scheduler.describe()],
    )


@router.post(
    "/scheduler/{name}/trigger",
    response_model=TriggerResponse,
    summary="Run a scheduled task now",
)
async def trigger_task(
    name: str,
    tenant: CurrentTenant,
    container: AppContainer,
) -> TriggerResponse:
    """Run the task to completion and return its result.

    The task's regular schedule is unchanged.
    """
    logger.info(
        "Manual run of %s requested",
        name,
        extra={"tenant_id": str(tenant.tenant_id)},
    )
    result = await container.scheduler.trigger(name)
    to_dict = getattr(result, "to_dict", None)
    return TriggerResponse(
        name=name,
        result=to_dict() if callable(to_dict) else None,
        config=container.scheduler.get(name).config(),
    )
