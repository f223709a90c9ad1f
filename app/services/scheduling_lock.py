# app/services/scheduling_lock.py
from __future__ import annotations

import asyncio
import hashlib
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def meeting_key(meeting_id: str) -> str:
    return f"meeting:{meeting_id}"


def user_key(user_id: str) -> str:
    return f"user:{user_id}"


def advisory_key(key: str) -> int:
    """
    Stable signed 64-bit id for a lock key, as PostgreSQL advisory locks expect.
    """
    digest = hashlib.blake2b(key.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


class SchedulingLock:
    """
    Serializes "check conflicts + write" units of work that touch the same
    meeting or the same users.

    Keys are acquired in sorted order. An operation takes at most one
    `meeting:` key and takes it before any `user:` key, so every caller
    follows the same global order and no deadlock is possible.

    - In-process: one asyncio.Lock per key, discarded once nobody holds or
      waits for it.
    - PostgreSQL: a transaction-scoped advisory lock per key, released by
      the commit/rollback that ends the unit of work. This covers several
      worker processes sharing one database.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def is_locked(self, key: str) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(
        self,
        session: AsyncSession,
        keys: Iterable[str],
    ) -> AsyncIterator[None]:
        ordered = sorted(set(keys))
        acquired: list[str] = []
        try:
            for key in ordered:
                await self._acquire(key)
                acquired.append(key)
            await self._advisory_lock(session, ordered)
            yield
        finally:
            for key in reversed(acquired):
                self._release(key)

    async def _acquire(self, key: str) -> None:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        if lock.locked():
            logger.debug("Waiting for scheduling lock %s", key)
        try:
            await lock.acquire()
        except BaseException:
            self._forget(key)
            raise

    def _release(self, key: str) -> None:
        self._locks[key].release()
        self._forget(key)

    def _forget(self, key: str) -> None:
        remaining = self._users[key] - 1
        if remaining:
            self._users[key] = remaining
        else:
            del self._users[key]
            del self._locks[key]

    async def _advisory_lock(self, session: AsyncSession, keys: list[str]) -> None:
        if session.get_bind().dialect.name != "postgresql":
            return
        for key in keys:
            await session.execute(
                text("SELECT pg_advisory_xact_lock(:key)"),
                {"key": advisory_key(key)},
            )
