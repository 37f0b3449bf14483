# /flowbot/utils/session_lock.py

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

# Serializes engine steps per session id inside one process. Locks are
# created on demand and dropped as soon as nobody holds or waits for them.

logger = logging.getLogger(__name__)


class SessionLockManager:
    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, session_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks[session_id] = asyncio.Lock()
        self._holders[session_id] = self._holders.get(session_id, 0) + 1
        if lock.locked():
            logger.debug(f"Session {session_id} is busy; queuing step.")
        try:
            async with lock:
                yield
        finally:
            self._holders[session_id] -= 1
            if self._holders[session_id] == 0:
                del self._holders[session_id]
                del self._locks[session_id]

    def __len__(self) -> int:
        return len(self._locks)

    def is_held(self, session_id: str) -> bool:
        lock = self._locks.get(session_id)
        return lock is not None and lock.locked()
