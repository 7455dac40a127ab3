# api/assets/queries.py
"""
SQLAlchemy query builders for the asset registry.
"""
from sqlalchemy import select

from db_models.asset import Asset
from db_models.asset_sequence import AssetSequence
from db_models.location import Location


def select_active_asset_by_number(asset_number: str):
    """Select a non-deleted asset by its asset number."""
    return select(Asset).where(
        Asset.asset_number == asset_number,
        Asset.deleted_at.is_(None),
    )


def select_asset_by_serial(serial_number: str):
    """Serial numbers stay reserved after soft delete."""
    return select(Asset).where(Asset.serial_number == serial_number)


def select_active_assets(
    asset_type: str | None = None,
    state: str | None = None,
    location_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
):
    """Active assets, optionally filtered, ordered by asset number."""
    stmt = select(Asset).where(Asset.deleted_at.is_(None))
    if asset_type:
        stmt = stmt.where(Asset.type == asset_type)
    if state:
        stmt = stmt.where(Asset.state == state)
    if location_id is not None:
        stmt = stmt.where(Asset.location_id == location_id)
    return stmt.order_by(Asset.asset_number).limit(limit).offset(offset)


def select_sequence_for_update(prefix: str):
    """Lock the asset-number counter row for a prefix."""
    return (
        select(AssetSequence)
        .where(AssetSequence.prefix == prefix)
        .with_for_update()
    )


def select_active_location(location_id: int):
    return select(Location).where(Location.id == location_id, Location.is_active.is_(True))
