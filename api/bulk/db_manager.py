# api/bulk/db_manager.py
"""
Bulk operation coordinator.

A batch moves through Received -> Validated -> Applying and ends Completed,
PartiallyFailed or Rejected. Identifier validation is all-or-nothing: if any
asset number does not resolve, nothing is touched. After that, assets are
processed one at a time in request order and each one is committed on its
own, so a failure on one asset does not undo the others.

``execute_all_or_nothing`` is the stricter variant used by maintenance
tooling: every asset is advanced inside one transaction and the first
failure rolls the whole batch back.
"""
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from api.assets import db_manager as assets_db
from api.assets.models import AssetRead
from api.transitions.db_manager import TransitionEngine
from core.exceptions import (
    AssetLifecycleError,
    AssetNotFoundError,
    BulkOperationAbortedError,
    ConcurrentModificationError,
    InvalidAssetIdentifiersError,
    InvalidTransitionError,
    LocationNotFoundError,
    UnknownStateError,
)
from core.lifecycle import as_key
from core.unit_of_work import guarded_write
from db_models.asset import Asset
from .models import (
    BulkFailure,
    BulkFieldUpdateOperation,
    BulkResult,
    BulkStatus,
    StateTransitionOperation,
)
from . import queries

logger = logging.getLogger(__name__)


UPDATABLE_FIELDS = ("location_id", "department")

# Per-asset errors that are recorded and skipped; anything else ends the batch
_SKIPPABLE = (InvalidTransitionError, ConcurrentModificationError, AssetNotFoundError)


class BulkOperationCoordinator:
    def __init__(self, engine: TransitionEngine):
        self.engine = engine

    async def resolve_identifiers(
        self,
        db: AsyncSession,
        asset_numbers: list[str],
    ) -> list[tuple[int, str]]:
        """
        Deduplicate (keeping first occurrence order) and resolve every asset
        number to an active asset id.

        Raises:
            InvalidAssetIdentifiersError: lists the numbers that did not resolve
        """
        unique_numbers = list(dict.fromkeys(asset_numbers))
        result = await db.execute(queries.select_active_ids_by_number(unique_numbers))
        found = {number: asset_id for asset_id, number in result.all()}

        missing = [n for n in unique_numbers if n not in found]
        if missing:
            raise InvalidAssetIdentifiersError(missing)

        return [(found[n], n) for n in unique_numbers]

    async def _clean_fields(self, db: AsyncSession, fields: dict[str, Any]) -> dict[str, Any]:
        """Apply the allow-list and check the target location exists."""
        cleaned = {k: fields[k] for k in UPDATABLE_FIELDS if k in fields}

        location_id = cleaned.get("location_id")
        if location_id is not None:
            try:
                location_id = int(location_id)
            except (TypeError, ValueError):
                raise LocationNotFoundError(location_id)
            await assets_db.get_active_location(db, location_id)
            cleaned["location_id"] = location_id

        if cleaned.get("department") is not None:
            cleaned["department"] = str(cleaned["department"])

        return cleaned

    async def _apply_one(
        self,
        db: AsyncSession,
        asset_id: int,
        asset_number: str,
        operation: StateTransitionOperation | BulkFieldUpdateOperation,
        fields: dict[str, Any],
        actor_id: int,
    ) -> Asset | None:
        """One asset, one commit. Returns None when nothing changed."""
        async with guarded_write(db, asset_number, "bulk " + operation.kind):
            asset = await self.engine.load_asset_by_id(db, asset_id)

            if isinstance(operation, StateTransitionOperation):
                await self.engine.step_transition(
                    db,
                    asset,
                    operation.new_state,
                    actor_id,
                    operation.reason,
                    details={"transition_method": "bulk"},
                )
            else:
                changes = {}
                for name, value in fields.items():
                    old = getattr(asset, name)
                    if old != value:
                        setattr(asset, name, value)
                        changes[name] = {"from": old, "to": value}

                if not changes:
                    await db.commit()
                    return None

                await self.engine.record_event(
                    db,
                    asset,
                    actor_id,
                    "Bulk field update: " + ", ".join(sorted(changes)),
                    details={"transition_method": "bulk", "changes": changes},
                )

            await db.commit()
        return asset

    async def execute(
        self,
        db: AsyncSession,
        asset_numbers: list[str],
        operation: StateTransitionOperation | BulkFieldUpdateOperation,
        actor_id: int,
    ) -> BulkResult:
        """
        Apply ``operation`` to every asset, skipping (and reporting) the ones
        that fail.

        Raises:
            InvalidAssetIdentifiersError: some numbers do not resolve (no changes made)
            LocationNotFoundError: field update names an unknown location (no changes made)
            UnknownStateError: target state is in no lifecycle (no changes made)
            UnknownActorError: actor does not resolve (no changes made)
        """
        logger.info(
            "bulk %s status=%s assets=%d actor=%s",
            operation.kind, BulkStatus.RECEIVED.value, len(asset_numbers), actor_id,
        )

        try:
            if (
                isinstance(operation, StateTransitionOperation)
                and operation.new_state not in self.engine.rules.known_states()
            ):
                raise UnknownStateError(operation.new_state)
            await self.engine.resolve_actor(db, actor_id)
            resolved = await self.resolve_identifiers(db, asset_numbers)
            fields = {}
            if isinstance(operation, BulkFieldUpdateOperation):
                fields = await self._clean_fields(db, operation.fields)
        except AssetLifecycleError as exc:
            logger.warning(
                "bulk %s status=%s: %s", operation.kind, BulkStatus.REJECTED.value, exc
            )
            raise

        logger.info(
            "bulk %s status=%s assets=%d",
            operation.kind, BulkStatus.VALIDATED.value, len(resolved),
        )

        # Nothing allowed to update; the request is valid but a no-op
        if isinstance(operation, BulkFieldUpdateOperation) and not fields:
            return BulkResult(
                affected_count=0,
                operation=operation.kind,
                status=BulkStatus.COMPLETED,
            )

        logger.info("bulk %s status=%s", operation.kind, BulkStatus.APPLYING.value)

        updated: list[AssetRead] = []
        failures: list[BulkFailure] = []
        for asset_id, asset_number in resolved:
            try:
                asset = await self._apply_one(
                    db, asset_id, asset_number, operation, fields, actor_id
                )
            except _SKIPPABLE as exc:
                failures.append(
                    BulkFailure(asset_number=asset_number, code=exc.code, message=str(exc))
                )
                continue

            if asset is not None:
                # Snapshot now; a later rollback expires every loaded object
                updated.append(AssetRead.model_validate(asset))

        status = BulkStatus.PARTIALLY_FAILED if failures else BulkStatus.COMPLETED
        logger.info(
            "bulk %s status=%s affected=%d failed=%d",
            operation.kind, status.value, len(updated), len(failures),
        )
        return BulkResult(
            affected_count=len(updated),
            operation=operation.kind,
            status=status,
            updated_assets=updated,
            failures=failures,
        )

    async def execute_all_or_nothing(
        self,
        db: AsyncSession,
        asset_numbers: list[str],
        target_state,
        actor_id: int | None = None,
        reason: str | None = None,
    ) -> BulkResult:
        """
        Advance every asset to ``target_state`` (multi-hop) in a single
        transaction. Assets already in the target state are left alone.

        Raises:
            InvalidAssetIdentifiersError: some numbers do not resolve
            BulkOperationAbortedError: an asset could not be advanced; nothing was committed
        """
        target = as_key(target_state)
        resolved = await self.resolve_identifiers(db, asset_numbers)

        advanced: list[Asset] = []
        async with guarded_write(db, "batch", "bulk advance"):
            await self.engine.resolve_actor(db, actor_id, allow_system=True)

            for asset_id, asset_number in resolved:
                try:
                    asset = await self.engine.load_asset_by_id(db, asset_id)
                    if asset.state == target:
                        continue
                    await self.engine.advance_steps(db, asset, target, actor_id, reason)
                except AssetLifecycleError as exc:
                    logger.warning(
                        "bulk advance status=%s asset=%s: %s",
                        BulkStatus.REJECTED.value, asset_number, exc,
                    )
                    raise BulkOperationAbortedError(asset_number, exc) from exc
                advanced.append(asset)

            await db.commit()

        logger.info(
            "bulk advance status=%s target=%s affected=%d",
            BulkStatus.COMPLETED.value, target, len(advanced),
        )
        return BulkResult(
            affected_count=len(advanced),
            operation="advance",
            status=BulkStatus.COMPLETED,
            updated_assets=[AssetRead.model_validate(a) for a in advanced],
        )
