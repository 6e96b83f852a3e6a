"""Process-wide settings for doclink.

The API entry point and the lifespan read configuration through
:func:`get_settings`, which loads ``DOCLINK_*`` variables once.
Misconfiguration stops the process at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from pydantic import ValidationError

from doclink.core.config import (
    ConfigValidationError,
    Settings,
    validate_settings,
)

logger = logging.getLogger(__name__)


def _describe(error: ValidationError) -> str:
    lines = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "settings"
        lines.append(f"  {location}: {item['msg']}")
    return "\n".join(lines)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load, check and cache the settings.

    Raises:
        SystemExit: If a value is malformed or a production requirement is
            not met.
    """
    try:
        settings = Settings()
    except ValidationError as e:
        logger.critical("Invalid doclink configuration:\n%s", _describe(e))
        raise SystemExit(1) from e

    try:
        validate_settings(settings)
    except ConfigValidationError as e:
        logger.critical("Incomplete doclink configuration: %s (%s)", e.message, e.field or "-")
        raise SystemExit(1) from e

    logger.info(
        "Settings loaded: environment=%s sweeper=%s",
        settings.environment.value,
        "enabled" if settings.sweeper.enabled else "disabled",
    )
    return settings


def clear_settings_cache() -> None:
    """Forget the cached settings so the next call reloads them."""
    get_settings.cache_clear()


def get_settings_safe() -> Settings | None:
    """Like :func:`get_settings`, but returns None instead of exiting."""
    try:
        return get_settings()
    except SystemExit:
        return None
