# api/history/queries.py
"""
SQLAlchemy query builders for the asset history (audit trail).
"""
from sqlalchemy import select, func, and_
from sqlalchemy.orm import selectinload

from db_models.asset import Asset
from db_models.asset_history import AssetHistory


def select_asset_by_id(asset_id: int):
    """Select an asset by ID, deleted or not (history outlives soft delete)."""
    return select(Asset).where(Asset.id == asset_id)


def select_last_entry(asset_id: int):
    """Latest (sequence, timestamp, new_state) for an asset."""
    return (
        select(AssetHistory.sequence, AssetHistory.timestamp, AssetHistory.new_state)
        .where(AssetHistory.asset_id == asset_id)
        .order_by(AssetHistory.sequence.desc())
        .limit(1)
    )


def select_entries_for_asset(asset_id: int, limit: int | None = None):
    """History for one asset, newest first, with the acting user loaded."""
    stmt = (
        select(AssetHistory)
        .where(AssetHistory.asset_id == asset_id)
        .options(selectinload(AssetHistory.actor))
        .order_by(AssetHistory.sequence.desc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return stmt


def select_recent_entries(limit: int = 10):
    """Most recent history rows across all assets."""
    return (
        select(AssetHistory, Asset.asset_number)
        .join(Asset, Asset.id == AssetHistory.asset_id)
        .options(selectinload(AssetHistory.actor))
        .order_by(AssetHistory.timestamp.desc(), AssetHistory.id.desc())
        .limit(limit)
    )


def select_state_mismatches():
    """
    Active assets whose stored state differs from their latest history entry.
    Assets with no history at all are reported with a NULL history state.
    """
    latest = (
        select(
            AssetHistory.asset_id.label("asset_id"),
            func.max(AssetHistory.sequence).label("max_sequence"),
        )
        .group_by(AssetHistory.asset_id)
        .subquery()
    )
    return (
        select(Asset.id, Asset.asset_number, Asset.state, AssetHistory.new_state)
        .outerjoin(latest, latest.c.asset_id == Asset.id)
        .outerjoin(
            AssetHistory,
            and_(
                AssetHistory.asset_id == latest.c.asset_id,
                AssetHistory.sequence == latest.c.max_sequence,
            ),
        )
        .where(Asset.deleted_at.is_(None))
        .where((AssetHistory.new_state.is_(None)) | (AssetHistory.new_state != Asset.state))
        .order_by(Asset.id)
    )


def select_asset_by_number(asset_number: str):
    """Select an asset by number, deleted or not."""
    return select(Asset).where(Asset.asset_number == asset_number)
