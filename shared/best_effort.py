"""
Best-effort and fire-and-forget execution helpers.

run_best_effort() wraps one awaitable so that its failure (exception,
timeout, or a result object reporting ``success=False``) becomes a logged
``ActionResult`` instead of propagating to the caller.

BackgroundRunner schedules the same wrapper as a background task and keeps
a strong reference until it finishes, so the request that spawned it
never waits on it and never sees its failure.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from shared.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one best-effort action."""

    action: str
    success: bool
    error: Optional[str] = None
    value: Any = None


async def run_best_effort(
    action: str,
    coro_factory: Callable[[], Awaitable[Any]],
    *,
    timeout: Optional[float] = None,
    **log_context: Any,
) -> ActionResult:
    """Run *coro_factory()* and never raise.

    Args:
        action: Short name used in the log event and the result.
        coro_factory: Zero-arg callable returning the awaitable to run.
        timeout: Seconds before the action is abandoned; ``None`` waits forever.
        **log_context: Extra key/values attached to the failure log line.

    Returns:
        ActionResult with ``success=False`` and an error string on any failure.
    """
    try:
        value = await asyncio.wait_for(coro_factory(), timeout=timeout)
    except asyncio.TimeoutError:
        log.warning(f"{action}_timed_out", timeout=timeout, **log_context)
        return ActionResult(action=action, success=False, error="timeout")
    except Exception as e:
        log.warning(
            f"{action}_failed",
            error=str(e),
            error_type=type(e).__name__,
            **log_context,
        )
        return ActionResult(action=action, success=False, error=str(e))

    if getattr(value, "success", True) is False:
        error = getattr(value, "error", None) or f"{action} failed"
        log.warning(f"{action}_failed", error=error, **log_context)
        return ActionResult(action=action, success=False, error=error, value=value)

    return ActionResult(action=action, success=True, value=value)


class BackgroundRunner:
    """Fire-and-forget task runner bound to the application lifespan.

    Each spawned action runs under run_best_effort(), so a failure is a
    logged warning and never reaches the request that spawned it.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._timeout = timeout
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(
        self,
        action: str,
        coro_factory: Callable[[], Awaitable[Any]],
        **log_context: Any,
    ) -> asyncio.Task:
        task = asyncio.ensure_future(
            run_best_effort(action, coro_factory, timeout=self._timeout, **log_context)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for in-flight tasks; cancel whatever is still running after *timeout*."""
        if not self._tasks:
            return
        _, pending = await asyncio.wait(list(self._tasks), timeout=timeout)
        if pending:
            for task in pending:
                task.cancel()
            log.warning("background_tasks_cancelled", count=len(pending))
            await asyncio.gather(*pending, return_exceptions=True)
