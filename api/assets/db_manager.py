# api/assets/db_manager.py
"""
Business logic for the asset registry: registration, lookup, listing and
soft delete. State and history writes are delegated to the transition engine.
"""
import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from api.transitions.db_manager import TransitionEngine
from core.exceptions import (
    AssetNotFoundError,
    DuplicateAssetError,
    LocationNotFoundError,
    UnknownAssetTypeError,
)
from core.lifecycle import as_key
from core.unit_of_work import guarded_write
from db_models.asset import Asset, AssetType
from db_models.asset_sequence import AssetSequence
from db_models.location import Location
from . import queries

logger = logging.getLogger(__name__)


# Asset numbers look like "04-00017": type prefix, dash, 5-digit sequence
ASSET_NUMBER_PREFIXES: dict[str, str] = {
    AssetType.MOBILE_PHONE.value: "01",
    AssetType.TABLET.value: "02",
    AssetType.DESKTOP.value: "03",
    AssetType.LAPTOP.value: "04",
    AssetType.MONITOR.value: "05",
}
TENANT_TYPE_PREFIX = "99"


async def get_active_asset(db: AsyncSession, asset_number: str) -> Asset:
    """Get a non-deleted asset by number. Raises AssetNotFoundError."""
    result = await db.execute(queries.select_active_asset_by_number(asset_number))
    asset = result.scalar_one_or_none()
    if asset is None:
        raise AssetNotFoundError(asset_number)
    return asset


async def get_active_location(db: AsyncSession, location_id: int) -> Location:
    """Get an active location. Raises LocationNotFoundError."""
    result = await db.execute(queries.select_active_location(location_id))
    location = result.scalar_one_or_none()
    if location is None:
        raise LocationNotFoundError(location_id)
    return location


async def list_assets(
    db: AsyncSession,
    asset_type: str | None = None,
    state: str | None = None,
    location_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Asset]:
    """Active assets, newest rows read straight from the database."""
    stmt = queries.select_active_assets(asset_type, state, location_id, limit, offset)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def generate_asset_number(db: AsyncSession, asset_type: str) -> str:
    """
    Take the next number from the prefix's counter row (locked while held).
    The counter row is created on first use.
    """
    prefix = ASSET_NUMBER_PREFIXES.get(asset_type, TENANT_TYPE_PREFIX)

    result = await db.execute(queries.select_sequence_for_update(prefix))
    counter = result.scalar_one_or_none()
    if counter is None:
        counter = AssetSequence(prefix=prefix, next_sequence=1)
        db.add(counter)
        await db.flush()

    number = counter.next_sequence
    counter.next_sequence = number + 1

    # Keep total length within the 10-character column
    return f"{prefix}-{number % 100000:05d}"


async def create_asset(
    db: AsyncSession,
    engine: TransitionEngine,
    *,
    serial_number: str,
    description: str,
    asset_type,
    actor_id: int,
    initial_state=None,
    location_id: int | None = None,
    assignment_type=None,
    assigned_to: str | None = None,
    employee_id: str | None = None,
    department: str | None = None,
) -> Asset:
    """
    Register a new asset with a generated asset number and its creation
    history row, atomically.

    Raises:
        DuplicateAssetError: serial number already registered
        LocationNotFoundError: location_id does not resolve
        UnknownActorError: actor_id does not resolve
        UnknownAssetTypeError: type has no lifecycle in the rule table
        InvalidTransitionError: initial state not in the type's lifecycle
        ConcurrentModificationError: asset number or serial taken by a
            concurrent or wrapped-around registration
    """
    asset_type = as_key(asset_type)
    if not engine.rules.lifecycle_order(asset_type):
        raise UnknownAssetTypeError(asset_type)

    async with guarded_write(db, serial_number, "create asset"):
        await engine.resolve_actor(db, actor_id)

        result = await db.execute(queries.select_asset_by_serial(serial_number))
        existing = result.scalar_one_or_none()
        if existing is not None:
            raise DuplicateAssetError(
                f"Asset with serial number {serial_number} already exists "
                f"({existing.asset_number})"
            )

        if location_id is not None:
            await get_active_location(db, location_id)

        asset = Asset(
            asset_number=await generate_asset_number(db, asset_type),
            serial_number=serial_number,
            description=description,
            type=asset_type,
            location_id=location_id,
            assignment_type=as_key(assignment_type) if assignment_type is not None else None,
            assigned_to=assigned_to,
            employee_id=employee_id,
            department=department,
        )
        await engine.record_creation(db, asset, initial_state, actor_id)
        await db.commit()
        # load server defaults (created_at)
        await db.refresh(asset)

    logger.info(
        "asset registered asset=%s type=%s state=%s actor=%s",
        asset.asset_number, asset.type, asset.state, actor_id,
    )
    return asset


async def soft_delete_asset(
    db: AsyncSession,
    engine: TransitionEngine,
    asset_number: str,
    actor_id: int,
    reason: str | None = None,
) -> Asset:
    """
    Mark an asset deleted. The row and its history stay for audit.

    Raises:
        AssetNotFoundError: missing or already deleted
        ConcurrentModificationError: the asset changed while being deleted
    """
    async with guarded_write(db, asset_number, "soft delete"):
        asset = await engine.load_asset(db, asset_number)
        await engine.resolve_actor(db, actor_id)

        now = datetime.now(timezone.utc)
        asset.deleted_at = now
        await engine.record_event(
            db,
            asset,
            actor_id,
            reason or "Asset soft deleted",
            details={"deleted_at": now.isoformat()},
        )
        await db.commit()

    logger.info("asset soft deleted asset=%s actor=%s", asset_number, actor_id)
    return asset
