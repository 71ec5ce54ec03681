"""Background task handles whose failures are collected instead of lost."""

from dataclasses import dataclass
from typing import Any, Awaitable, Generic, Optional, TypeVar
import asyncio
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class TaskOutcome(Generic[T]):
    name: str
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BackgroundTask(Generic[T]):
    """
    Wraps an ``asyncio.Task`` with a result channel.

    ``outcome()`` never raises: the value or the exception is returned as a
    ``TaskOutcome`` and failures are logged under the task name.
    """

    def __init__(self, name: str, coro: Awaitable[T]):
        self.name = name
        self._task: asyncio.Task = asyncio.ensure_future(coro)
        self._outcome: Optional[TaskOutcome[T]] = None

    @property
    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        self._task.cancel()

    async def outcome(self) -> TaskOutcome[T]:
        if self._outcome is not None:
            return self._outcome

        try:
            value = await self._task
            self._outcome = TaskOutcome(name=self.name, value=value)
        except asyncio.CancelledError as e:
            if not self._task.cancelled():
                # The awaiting caller was cancelled, not the task
                raise
            logger.info(f"Background task {self.name} cancelled")
            self._outcome = TaskOutcome(name=self.name, error=e)
        except Exception as e:
            logger.warning(f"Background task {self.name} failed: {type(e).__name__}: {e}")
            self._outcome = TaskOutcome(name=self.name, error=e)

        return self._outcome


def spawn(name: str, coro: Awaitable[Any]) -> BackgroundTask:
    """Start ``coro`` in the background and return its handle."""
    return BackgroundTask(name, coro)
