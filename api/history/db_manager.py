# api/history/db_manager.py
"""
Audit trail writer and readers.

Rows are only ever appended. ``append_history`` flushes but never commits:
the caller owns the unit of work that also writes the asset's state.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import AssetNotFoundError
from db_models.asset import Asset
from db_models.asset_history import AssetHistory
from . import queries

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateMismatch:
    asset_id: int
    asset_number: str
    stored_state: str
    history_state: str | None


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def append_history(
    db: AsyncSession,
    asset: Asset,
    previous_state: str | None,
    new_state: str,
    actor_id: int | None,
    reason: str | None,
    details: dict[str, Any] | None = None,
) -> AssetHistory:
    """
    Append one history row for ``asset``.

    The row gets the next per-asset sequence number and a timestamp that is
    never earlier than the previous row's.
    """
    result = await db.execute(queries.select_last_entry(asset.id))
    last = result.first()

    now = datetime.now(timezone.utc)
    if last is None:
        sequence = 1
    else:
        sequence = last.sequence + 1
        if last.timestamp is not None:
            now = max(now, _as_utc(last.timestamp))

    entry = AssetHistory(
        asset_id=asset.id,
        sequence=sequence,
        previous_state=previous_state,
        new_state=new_state,
        changed_by=actor_id,
        change_reason=reason,
        timestamp=now,
        details=details,
    )
    db.add(entry)
    await db.flush()

    logger.debug(
        "history appended asset=%s seq=%d %s->%s actor=%s",
        asset.asset_number, sequence, previous_state, new_state, actor_id,
    )
    return entry


async def most_recent_state(db: AsyncSession, asset_id: int) -> str | None:
    """
    State recorded by the asset's latest history row, or None if it has none.

    Raises:
        AssetNotFoundError: no asset with this id
    """
    result = await db.execute(queries.select_asset_by_id(asset_id))
    if result.scalar_one_or_none() is None:
        raise AssetNotFoundError(asset_id)

    result = await db.execute(queries.select_last_entry(asset_id))
    last = result.first()
    return last.new_state if last is not None else None


async def get_asset_by_number(db: AsyncSession, asset_number: str) -> Asset:
    """Any asset, soft-deleted included. Raises AssetNotFoundError."""
    result = await db.execute(queries.select_asset_by_number(asset_number))
    asset = result.scalar_one_or_none()
    if asset is None:
        raise AssetNotFoundError(asset_number)
    return asset


async def entries_for(
    db: AsyncSession,
    asset_id: int,
    limit: int | None = None,
) -> list[AssetHistory]:
    """History rows for an asset, newest first, at most ``limit`` of them."""
    result = await db.execute(queries.select_entries_for_asset(asset_id, limit))
    return list(result.scalars().all())


async def recent_entries(db: AsyncSession, limit: int = 10) -> list[tuple[AssetHistory, str]]:
    """Latest rows across all assets as (entry, asset_number) pairs."""
    result = await db.execute(queries.select_recent_entries(limit))
    return [(row[0], row[1]) for row in result.all()]


# --- Consistency check / repair (out-of-band tooling) ---

async def find_state_mismatches(db: AsyncSession) -> list[StateMismatch]:
    """Active assets whose stored state disagrees with their history."""
    result = await db.execute(queries.select_state_mismatches())
    return [
        StateMismatch(
            asset_id=row[0],
            asset_number=row[1],
            stored_state=row[2],
            history_state=row[3],
        )
        for row in result.all()
    ]


async def repair_state_from_history(db: AsyncSession, asset_id: int) -> bool:
    """
    Overwrite an asset's stored state with its latest history state.

    Data-repair only; the transition engine is the normal writer.
    Returns True if the row was changed.
    """
    result = await db.execute(queries.select_asset_by_id(asset_id))
    asset = result.scalar_one_or_none()
    if asset is None:
        raise AssetNotFoundError(asset_id)

    history_state = await most_recent_state(db, asset_id)
    if history_state is None or history_state == asset.state:
        return False

    logger.warning(
        "repairing asset=%s stored=%s history=%s",
        asset.asset_number, asset.state, history_state,
    )
    asset.state = history_state
    asset.updated_at = datetime.now(timezone.utc)
    await db.commit()
    return True
