"""Post-commit side-effect dispatch.

Side effects (notification email, event publication, CRM linkage) run after
the owning state change has committed. They are scheduled as tracked
asyncio tasks; a failing side effect is logged and never reaches the caller
whose request triggered it.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable

logger = logging.getLogger(__name__)


class SideEffectDispatcher:
    """Run best-effort coroutines in the background.

    Example:
        dispatcher.dispatch("send_link_email", notifier.send_link(...))
        ...
        await dispatcher.drain()  # in tests or on shutdown
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    def dispatch(self, name: str, effect: Awaitable[Any], **context: Any) -> asyncio.Task[Any]:
        """Schedule ``effect``; failures are logged under ``name``.

        Must be called from a running event loop.
        """
        task = asyncio.create_task(self._run(name, effect, context), name=f"side-effect:{name}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, name: str, effect: Awaitable[Any], context: dict[str, Any]) -> Any:
        try:
            result = await effect
        except asyncio.CancelledError:
            logger.warning("Side effect %s cancelled", name, extra=context)
            raise
        except Exception:
            logger.exception("Side effect %s failed", name, extra=context)
            return None
        logger.debug("Side effect %s completed", name, extra=context)
        return result

    @property
    def pending(self) -> int:
        """Number of side effects still running."""
        return len(self._tasks)

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for all scheduled side effects to finish.

        Args:
            timeout: Seconds to wait before cancelling what is left.
        """
        if not self._tasks:
            return
        tasks = list(self._tasks)
        done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("Cancelled %d unfinished side effects", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
