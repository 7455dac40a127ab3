# core/unit_of_work.py
"""
Error translation around a write transaction.

Code inside ``guarded_write`` reads, validates, writes and commits. Whatever
goes wrong, the session is rolled back and the caller sees a typed error:

- lifecycle errors pass through unchanged
- stale version / duplicate history sequence -> ConcurrentModificationError
- any other SQLAlchemy error -> logged with stack, StorageFailureError
"""
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from core.exceptions import (
    AssetLifecycleError,
    ConcurrentModificationError,
    StorageFailureError,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def guarded_write(
    db: AsyncSession,
    asset_ref: str | int,
    operation: str,
) -> AsyncIterator[None]:
    try:
        yield
    except AssetLifecycleError:
        await db.rollback()
        raise
    except (StaleDataError, IntegrityError) as exc:
        await db.rollback()
        logger.warning(
            "conflicting write during %s asset=%s: %s", operation, asset_ref, exc.__class__.__name__
        )
        raise ConcurrentModificationError(asset_ref) from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.exception("storage failure during %s asset=%s", operation, asset_ref)
        raise StorageFailureError(operation) from exc
