"""Background work for doclink.

The task scheduler runs inside the API process, started and stopped by the
FastAPI lifespan. Its only registered task is the expiry sweeper.
"""

from doclink.worker.scheduler import ScheduledTask, TaskNotFoundError, TaskScheduler
from doclink.worker.sweeper import SWEEPER_TASK_NAME, ExpirySweeper, SweepResult

__all__ = [
    "SWEEPER_TASK_NAME",
    "ExpirySweeper",
    "ScheduledTask",
    "SweepResult",
    "TaskNotFoundError",
    "TaskScheduler",
]
