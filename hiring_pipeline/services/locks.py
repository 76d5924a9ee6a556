from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

import anyio

from hiring_pipeline.core.errors import StorageError

logger = logging.getLogger("hp.transitions")

DEFAULT_LOCK_TIMEOUT_SECONDS = 10.0


class ApplicationLockRegistry:
    """
    Single-writer discipline per application inside one process. Requests for the same application
    queue behind each other; requests for different applications never contend. Row locks taken by
    the transition service cover writers in other processes.
    """

    def __init__(self, timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS) -> None:
        self.timeout_seconds = timeout_seconds
        self._locks: dict[int, anyio.Lock] = {}
        self._holders: dict[int, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, application_id: int) -> AsyncIterator[None]:
        lock = self._locks.get(application_id)
        if lock is None:
            lock = anyio.Lock()
            self._locks[application_id] = lock
        self._holders[application_id] = self._holders.get(application_id, 0) + 1
        try:
            try:
                with anyio.fail_after(self.timeout_seconds):
                    await lock.acquire()
            except TimeoutError as exc:
                logger.warning(
                    "application_lock_timeout",
                    extra={"application_id": application_id, "timeout_seconds": self.timeout_seconds},
                )
                raise StorageError(
                    "Another change for this application is still in progress.",
                    details={"application_id": application_id},
                ) from exc
            try:
                yield
            finally:
                lock.release()
        finally:
            remaining = self._holders[application_id] - 1
            if remaining:
                self._holders[application_id] = remaining
            else:
                self._holders.pop(application_id, None)
                self._locks.pop(application_id, None)
