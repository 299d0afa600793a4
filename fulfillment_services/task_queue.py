"""
Background task queues for detached units of work.

Contract:
    ``submit()`` returns immediately.  Each task runs inside its own error
    boundary: exceptions are logged with ``logger.exception`` and never
    reach the submitter.  Tasks open their own sessions.

Architecture: fulfillment_services.  Used by FulfillmentEngine for
    auto-assignment after payment and auto-reassignment after rejection.

Invariants enforced:
    - The submitter's LogContext (correlation id, actor) is carried into
      the worker thread, plus ``task_name`` and any recognised context
      fields passed to ``submit()``.
    - ``drain()`` waits for everything submitted so far, including tasks
      submitted by running tasks.
"""

from __future__ import annotations

import contextvars
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any, Callable

from fulfillment_kernel.logging_config import LogContext, get_logger

logger = get_logger("tasks")

_CONTEXT_FIELDS = frozenset(LogContext.FIELD_NAMES)


class TaskQueue(ABC):
    """Fire-and-forget task submission."""

    @abstractmethod
    def submit(self, task_name: str, fn: Callable[[], Any], **context: Any) -> None:
        ...

    def drain(self, timeout: float | None = None) -> bool:
        """Wait for outstanding tasks.  Returns False on timeout."""
        return True

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting tasks and release workers."""

    @staticmethod
    def _run(task_name: str, fn: Callable[[], Any], context: dict[str, Any]) -> None:
        bound = {k: str(v) for k, v in context.items() if k in _CONTEXT_FIELDS and v is not None}
        with LogContext.bind(task_name=task_name, **bound):
            try:
                fn()
            except Exception:
                logger.exception(
                    "background_task_failed",
                    extra={"task_context": {k: str(v) for k, v in context.items()}},
                )


class ImmediateTaskQueue(TaskQueue):
    """Runs each task inline, inside the same error boundary."""

    def submit(self, task_name: str, fn: Callable[[], Any], **context: Any) -> None:
        self._run(task_name, fn, context)


class BackgroundTaskQueue(TaskQueue):
    """
    Thread pool backed task queue.

    Non-goals:
        - Not durable: tasks pending at process exit are lost.  The orders
          they would have touched stay in their last consistent state and
          are picked up by the next trigger or by an admin.
    """

    def __init__(self, max_workers: int = 4, thread_name_prefix: str = "fulfillment-task"):
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=thread_name_prefix,
        )
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def submit(self, task_name: str, fn: Callable[[], Any], **context: Any) -> None:
        ctx = contextvars.copy_context()
        future = self._executor.submit(ctx.run, self._run, task_name, fn, context)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)
        logger.debug("background_task_submitted", extra={"submitted_task": task_name})

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def drain(self, timeout: float | None = None) -> bool:
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                pending = set(self._pending)
            if not pending:
                return True
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            _, not_done = wait(pending, timeout=remaining)
            if not_done and deadline is not None and time.monotonic() >= deadline:
                logger.warning(
                    "background_tasks_drain_timeout",
                    extra={"pending_tasks": len(not_done)},
                )
                return False

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        logger.info("background_task_queue_stopped")
