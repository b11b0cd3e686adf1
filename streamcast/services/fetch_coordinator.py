"""
Fetch Coordination

Coalesces concurrent refresh requests so that at most one provider fetch runs
per key; callers arriving while a fetch is in flight await the same result.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Generic, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


class FetchCoordinator(Generic[T]):
    """
    Coordinates keyed fetch operations to prevent duplicate executions.

    The first caller for a key starts the fetch as a task; later callers for
    the same key share that task. The task outcome (result or exception) is
    delivered to every waiter, and the key is released once it finishes.
    """

    def __init__(self):
        self._in_flight: dict[str, asyncio.Task[T]] = {}

    async def execute(self, key: str, fetch_func: Callable[[], Awaitable[T]]) -> T:
        """
        Execute fetch_func for key, or join the fetch already running for key.

        Args:
            key: Coalescing key (e.g. user id)
            fetch_func: Async callable producing the result

        Raises:
            Any exception raised by fetch_func
        """
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.create_task(fetch_func())
            self._in_flight[key] = task
            task.add_done_callback(lambda _t, k=key: self._release(k, _t))
        else:
            logger.info("Fetch for %s already in progress, joining it", key)

        # shield so one cancelled waiter does not cancel the shared fetch
        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Task[T]) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Fetch for %s finished with %s", key, type(task.exception()).__name__)

    def is_fetching(self, key: str) -> bool:
        """
        Check if a fetch operation is currently in progress for key.
        """
        return key in self._in_flight


class KeyedLock:
    """
    One asyncio.Lock per key, dropped once no caller holds or awaits it.

    Usage:
        async with locks("cam1"):
            ...
    """

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def __call__(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)

    def __contains__(self, key: str) -> bool:
        return key in self._locks
