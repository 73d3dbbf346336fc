"""Ordering helpers for concurrent requests."""
import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MutationQueue:
    """
    Serializes cart writes per user.

    Each user gets one ``asyncio.Lock``; waiters are woken in FIFO order, so
    mutations for the same user are applied in the order they were issued.
    Different users never wait on each other. Locks live in a weak-value map
    and disappear once nobody holds or waits on them.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    @asynccontextmanager
    async def serialize(self, user_id: str) -> AsyncIterator[None]:
        """Hold the user's mutation slot for the duration of the block."""
        lock = self._lock_for(user_id)
        async with lock:
            yield

    async def run(self, user_id: str, func: Callable[..., T], *args: Any) -> T:
        """
        Run blocking ``func(*args)`` in a worker thread while holding the user's slot.

        A worker thread cannot be interrupted, so when the caller is cancelled
        the slot stays held until the worker returns; only then is the
        cancellation re-raised. The next mutation for the user never overlaps
        a write that is still in progress.
        """
        async with self.serialize(user_id):
            worker = asyncio.ensure_future(asyncio.to_thread(func, *args))
            try:
                return await asyncio.shield(worker)
            except asyncio.CancelledError:
                logger.warning("Mutation cancelled, waiting for worker to finish", extra={
                    "user_id": user_id,
                    "operation": getattr(func, "__name__", repr(func))
                })
                await asyncio.gather(worker, return_exceptions=True)
                raise

    def active_users(self) -> int:
        return len(self._locks)


class RequestSequencer:
    """
    Latest-wins guard for overlapping fetches.

    Every request takes a ticket; a result may only be applied while its
    ticket is still the newest one issued.
    """

    def __init__(self, name: str):
        self.name = name
        self._latest = 0

    def issue(self) -> int:
        self._latest += 1
        return self._latest

    def is_current(self, ticket: int) -> bool:
        current = ticket == self._latest
        if not current:
            logger.info("Discarding superseded result", extra={
                "sequence": self.name,
                "ticket": ticket,
                "latest": self._latest
            })
        return current
