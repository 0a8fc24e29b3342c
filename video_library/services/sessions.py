"""Per-owner sync session registry.

Each authenticated owner gets one started ``VideoLibrarySync``, created on first
use and closed on shutdown or after a period of inactivity.
"""

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import AsyncIterator, Callable, Dict, List, Optional

import structlog

from video_library.core.logging import hash_identifier
from video_library.core.metrics import MetricsCollector
from video_library.services.library_sync import VideoLibrarySync

logger = structlog.get_logger(__name__)

SessionFactory = Callable[[str], VideoLibrarySync]


class SessionManager:
    """Registry of live sync sessions keyed by owner id."""

    def __init__(self, factory: SessionFactory, idle_minutes: int = 30) -> None:
        """Initialize the session manager.

        Args:
            factory: Builds an unstarted session for an owner id.
            idle_minutes: Inactivity after which ``cleanup_idle`` closes a session.
        """
        self._factory = factory
        self.idle_timeout = timedelta(minutes=idle_minutes)
        self._sessions: Dict[str, VideoLibrarySync] = {}
        self._last_used: Dict[str, datetime] = {}
        self._in_use: Dict[str, int] = {}
        self._start_locks: Dict[str, asyncio.Lock] = {}
        self._lock = asyncio.Lock()

    async def get_or_create(self, owner_id: str) -> VideoLibrarySync:
        """Return the owner's session, starting one if needed.

        An open session is returned without waiting on any lock. Starting a
        session only serialises callers for the same owner.

        Args:
            owner_id: Authenticated owner id.

        Returns:
            Started session.
        """
        session = self._sessions.get(owner_id)
        if session is not None and not session.closed:
            self._touch(owner_id)
            return session

        start_lock = self._start_locks.setdefault(owner_id, asyncio.Lock())
        async with start_lock:
            session = self._sessions.get(owner_id)
            if session is None or session.closed:
                session = self._factory(owner_id)
                await session.start()
                self._sessions[owner_id] = session
                MetricsCollector.set_active_sessions(len(self._sessions))
                logger.info("sync_session_started", owner=hash_identifier(owner_id))

            self._touch(owner_id)
            return session

    @asynccontextmanager
    async def lease(self, owner_id: str) -> AsyncIterator[VideoLibrarySync]:
        """Hold the owner's session for the duration of a request.

        A leased session is never closed by ``cleanup_idle``, and its idle
        clock restarts when the lease ends.
        """
        session = await self.get_or_create(owner_id)
        self._in_use[owner_id] = self._in_use.get(owner_id, 0) + 1
        try:
            yield session
        finally:
            remaining = self._in_use.get(owner_id, 0) - 1
            if remaining > 0:
                self._in_use[owner_id] = remaining
            else:
                self._in_use.pop(owner_id, None)
            if self._sessions.get(owner_id) is session:
                self._touch(owner_id)

    def in_use(self, owner_id: str) -> bool:
        return self._in_use.get(owner_id, 0) > 0

    def _touch(self, owner_id: str) -> None:
        self._last_used[owner_id] = datetime.now(timezone.utc)

    def get(self, owner_id: str) -> Optional[VideoLibrarySync]:
        return self._sessions.get(owner_id)

    async def close(self, owner_id: str) -> bool:
        """Close and forget one owner's session.

        Returns:
            True if a session was closed.
        """
        async with self._lock:
            return await self._close_locked(owner_id)

    async def _close_locked(self, owner_id: str) -> bool:
        session = self._sessions.pop(owner_id, None)
        self._last_used.pop(owner_id, None)
        start_lock = self._start_locks.get(owner_id)
        if start_lock is not None and not start_lock.locked():
            del self._start_locks[owner_id]
        if session is None:
            return False

        try:
            await session.close()
        finally:
            MetricsCollector.set_active_sessions(len(self._sessions))
            logger.info("sync_session_closed", owner=hash_identifier(owner_id))
        return True

    async def close_all(self) -> int:
        """Close every session. Used on shutdown.

        Returns:
            Number of sessions closed.
        """
        async with self._lock:
            owners = list(self._sessions)
            for owner_id in owners:
                try:
                    await self._close_locked(owner_id)
                except Exception as e:
                    logger.error(
                        "sync_session_close_failed",
                        owner=hash_identifier(owner_id),
                        error=str(e),
                    )
            return len(owners)

    async def cleanup_idle(self, now: Optional[datetime] = None) -> int:
        """Close sessions unused for longer than the idle timeout.

        Sessions held by a ``lease`` are skipped.

        Args:
            now: Reference time, defaults to the current UTC time.

        Returns:
            Number of sessions closed.
        """
        now = now or datetime.now(timezone.utc)
        async with self._lock:
            idle = [
                owner_id
                for owner_id, last_used in self._last_used.items()
                if now - last_used > self.idle_timeout and not self.in_use(owner_id)
            ]
            for owner_id in idle:
                await self._close_locked(owner_id)

        if idle:
            logger.info("idle_sessions_closed", count=len(idle))
        return len(idle)

    def owners(self) -> List[str]:
        return list(self._sessions)

    @property
    def count(self) -> int:
        return len(self._sessions)


async def session_cleanup_scheduler(
    manager: SessionManager,
    interval: int = 300,
    run_once: bool = False,
) -> Optional[int]:
    """Run periodic idle session cleanup.

    Args:
        manager: SessionManager to sweep.
        interval: Seconds between sweeps (default: 5 minutes).
        run_once: If True, run only one sweep (for testing).

    Returns:
        Number of closed sessions if run_once is True, None otherwise.
    """
    logger.info("session_cleanup_scheduler_started", interval_seconds=interval)

    while True:
        await asyncio.sleep(interval)

        closed = await manager.cleanup_idle()
        logger.debug("session_cleanup_completed", closed=closed, active=manager.count)

        if run_once:
            return closed
