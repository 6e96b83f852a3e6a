"""doclink core module.

Shared components used across all services:
- Configuration management
- Cron expression parsing
"""

from doclink.core.config import (
    ConfigValidationError,
    CRMSettings,
    DatabaseSettings,
    Environment,
    EventBusSettings,
    LifecycleSettings,
    S3Settings,
    Settings,
    SMTPSettings,
    SweeperSettings,
)
from doclink.core.cron import CronExpression, CronSyntaxError
from doclink.core.settings import (
    clear_settings_cache,
    get_settings,
    get_settings_safe,
)

__all__ = [
    "CRMSettings",
    "ConfigValidationError",
    "CronExpression",
    "CronSyntaxError",
    "DatabaseSettings",
    "Environment",
    "EventBusSettings",
    "LifecycleSettings",
    "S3Settings",
    "SMTPSettings",
    "Settings",
    "SweeperSettings",
    "clear_settings_cache",
    "get_settings",
    "get_settings_safe",
]
