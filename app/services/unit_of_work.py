# app/services/unit_of_work.py
from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession

from app.services.scheduling_errors import SchedulingError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def unit_of_work(session: AsyncSession, operation: str) -> AsyncIterator[None]:
    """
    Wrap one scheduling operation.

    Callers commit explicitly while still holding their scheduling lock.
    Any exception rolls the session back, which also releases PostgreSQL
    advisory locks taken in the transaction.
    """
    try:
        yield
    except SchedulingError as exc:
        logger.info("%s rejected (%s): %s", operation, exc.kind.value, exc.message)
        await session.rollback()
        raise
    except Exception:
        logger.exception("%s failed unexpectedly", operation)
        await session.rollback()
        raise
