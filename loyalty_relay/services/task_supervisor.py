"""Detached task supervision for post-response webhook processing.

WHAT:
    Owns the asyncio tasks that route webhooks after Shopify has been
    answered. Keeps a strong reference to every task until it finishes, logs
    each outcome, and lets shutdown (and tests) wait for in-flight work.

WHY:
    The event loop only keeps weak references to tasks. A bare
    `asyncio.create_task(...)` whose result is dropped can be garbage
    collected mid-flight, silently losing a reward. Failures in these tasks
    have no caller to raise to, so the done-callback is their only error
    channel (logs + Sentry).

USAGE:
    supervisor = TaskSupervisor()
    supervisor.spawn(router.route(topic, payload, shop), name="orders/create")
    ...
    await supervisor.drain()   # on shutdown
"""

import asyncio
import logging
from typing import Any, Coroutine, Dict, Optional, Set

from ..exceptions import PartialRewardError, RemoteApiError
from ..telemetry.sentry import capture_exception

logger = logging.getLogger(__name__)


class TaskSupervisor:
    """Tracks detached tasks spawned on the running event loop."""

    def __init__(self) -> None:
        self._tasks: Set[asyncio.Task] = set()
        self.completed = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(
        self,
        coro: Coroutine[Any, Any, Any],
        name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> asyncio.Task:
        """Schedule `coro` as a tracked task and return its handle.

        Must be called from inside the running event loop.

        Args:
            coro: Coroutine to run (typically WebhookRouter.route(...))
            name: Task name used in logs
            context: Extra fields attached to the outcome log line
        """
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_done(t, context or {}))
        return task

    def _on_done(self, task: asyncio.Task, context: Dict[str, Any]) -> None:
        self._tasks.discard(task)
        name = task.get_name()

        if task.cancelled():
            self.failed += 1
            logger.warning(f"[TASKS] {name} cancelled before completion", extra=context)
            return

        error = task.exception()
        if error is None:
            self.completed += 1
            result = task.result()
            summary = result.to_log_dict() if hasattr(result, "to_log_dict") else {}
            logger.info(f"[TASKS] {name} processed", extra={**context, **summary})
            return

        self.failed += 1
        if isinstance(error, PartialRewardError):
            logger.error(
                f"[TASKS] {name} partially delivered: {error.message}",
                extra={**context, "delivered": [e.event_type.value for e in error.delivered]},
            )
        elif isinstance(error, RemoteApiError):
            logger.error(
                f"[TASKS] {name} failed, rewards API error: {error.message}",
                extra={**context, "status": error.status, "response": error.body},
            )
        else:
            logger.error(
                f"[TASKS] {name} failed: {error}",
                exc_info=(type(error), error, error.__traceback__),
                extra=context,
            )
        capture_exception(error, extra={**context, "task": name})

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for every outstanding task to finish.

        Tasks spawned while draining are waited for too. Task errors are
        already handled by the done-callback, so they are not re-raised here.

        Raises:
            asyncio.TimeoutError: if `timeout` elapses first
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        while self._tasks:
            remaining = None if deadline is None else max(deadline - loop.time(), 0)
            done, _ = await asyncio.wait(set(self._tasks), timeout=remaining)
            if not done and self._tasks:
                raise asyncio.TimeoutError(f"{len(self._tasks)} webhook task(s) still running")
            # give done-callbacks a chance to run before re-checking the set
            await asyncio.sleep(0)
