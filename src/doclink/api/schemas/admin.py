"""Pydantic schemas for operational endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ScheduledTaskResponse(BaseModel):
    name: str
    enabled: bool
    schedule: str
    timezone: str
    next_run: str | None = None
    last_run: str | None = None
    last_error: str | None = None


class SchedulerStatusResponse(BaseModel):
    running: bool
    tasks: list[ScheduledTaskResponse]


class TriggerResponse(BaseModel):
    """Result of a manually triggered task run."""

    name: str
    result: dict[str, Any] | None = None
    config: dict[str, Any]
