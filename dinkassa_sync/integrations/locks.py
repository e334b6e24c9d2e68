"""
Named process-wide locks.

The stock path acquires its lock on the trigger side before the event is
queued and the reconciliation step releases it once Dinkassa.se has
answered, so acquire and release happen in different tasks. asyncio.Lock
has no owner, which allows exactly that.
"""

import asyncio
import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class NamedLock:
    def __init__(self, name: str):
        self.name = name
        self._lock = asyncio.Lock()

    def locked(self) -> bool:
        return self._lock.locked()

    async def acquire(self, timeout: Optional[float] = None) -> bool:
        """Wait for the lock; returns False if timeout expires first"""
        if timeout is None:
            await self._lock.acquire()
            return True
        try:
            await asyncio.wait_for(self._lock.acquire(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Timed out after {timeout}s waiting for lock '{self.name}'")
            return False

    def release(self) -> bool:
        """Release if held. Releasing an unheld lock is logged and ignored."""
        if not self._lock.locked():
            logger.warning(f"Lock '{self.name}' released while not held")
            return False
        self._lock.release()
        return True

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.release()
        return False

    def __repr__(self):
        return f"<NamedLock {self.name} ({'locked' if self.locked() else 'free'})>"


_locks: Dict[str, NamedLock] = {}


def get_lock(name: str) -> NamedLock:
    lock = _locks.get(name)
    if lock is None:
        lock = _locks[name] = NamedLock(name)
    return lock


def reset_locks() -> None:
    """Forget every registered lock (tests)"""
    _locks.clear()
