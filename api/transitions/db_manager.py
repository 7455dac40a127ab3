# api/transitions/db_manager.py
"""
Transition engine: the only writer of ``Asset.state`` and of transition
history rows.

Two explicit operations:

- ``request_transition`` moves an asset exactly one hop and writes exactly
  one history row. Interactive API and bulk transitions use this.
- ``advance_to_state`` walks the rule table to a farther state, one history
  row per hop, in a single commit. Maintenance tooling uses this.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from api.history import db_manager as history_db
from core.exceptions import (
    AssetNotFoundError,
    ConcurrentModificationError,
    InvalidTransitionError,
    UnknownActorError,
)
from core.lifecycle import TransitionRules, as_key
from core.unit_of_work import guarded_write
from db_models.asset import Asset
from db_models.asset_history import AssetHistory
from db_models.user import User
from . import queries

logger = logging.getLogger(__name__)


@dataclass
class AppliedTransition:
    asset: Asset
    previous_state: str
    entries: list[AssetHistory] = field(default_factory=list)

    @property
    def new_state(self) -> str:
        return self.asset.state


class TransitionEngine:
    """Validates and applies state changes against one rule table."""

    def __init__(self, rules: TransitionRules):
        self.rules = rules

    # --- Reads ---

    async def load_asset(self, db: AsyncSession, asset_number: str) -> Asset:
        """Fresh, locked read of an active asset."""
        result = await db.execute(queries.select_active_asset_for_update(asset_number))
        asset = result.scalar_one_or_none()
        if asset is None:
            raise AssetNotFoundError(asset_number)
        return asset

    async def load_asset_by_id(self, db: AsyncSession, asset_id: int) -> Asset:
        result = await db.execute(queries.select_active_asset_by_id_for_update(asset_id))
        asset = result.scalar_one_or_none()
        if asset is None:
            raise AssetNotFoundError(asset_id)
        return asset

    async def resolve_actor(
        self,
        db: AsyncSession,
        actor_id: int | None,
        *,
        allow_system: bool = False,
    ) -> User | None:
        """
        Resolve an actor id to an active user. ``None`` is the system actor
        and is only accepted when ``allow_system`` is set.
        """
        if actor_id is None:
            if allow_system:
                return None
            raise UnknownActorError(actor_id)

        result = await db.execute(queries.select_active_user(actor_id))
        user = result.scalar_one_or_none()
        if user is None:
            raise UnknownActorError(actor_id)
        return user

    # --- Non-transition history rows ---

    async def record_creation(
        self,
        db: AsyncSession,
        asset: Asset,
        initial_state,
        actor_id: int | None,
        reason: str | None = None,
    ) -> AssetHistory:
        """
        Give a new asset its first state and the matching creation row
        (no previous state). Defaults to the first state of the type's
        lifecycle.

        Raises:
            InvalidTransitionError: type unknown or state not in its lifecycle
        """
        order = self.rules.lifecycle_order(asset.type)
        state = as_key(initial_state) if initial_state is not None else self.rules.initial_state(asset.type)
        if state is None or state not in order:
            raise InvalidTransitionError(asset.type, "NEW", str(state), frozenset(order))

        asset.state = state
        db.add(asset)
        await db.flush()

        return await history_db.append_history(
            db,
            asset,
            previous_state=None,
            new_state=state,
            actor_id=actor_id,
            reason=reason or "Asset created",
        )

    async def record_event(
        self,
        db: AsyncSession,
        asset: Asset,
        actor_id: int | None,
        reason: str,
        details: dict[str, Any] | None = None,
    ) -> AssetHistory:
        """
        Audit row for a change that keeps the state (field update, soft
        delete). previous_state == new_state, so the latest row still names
        the current state.
        """
        asset.updated_at = datetime.now(timezone.utc)
        return await history_db.append_history(
            db,
            asset,
            previous_state=asset.state,
            new_state=asset.state,
            actor_id=actor_id,
            reason=reason,
            details=details,
        )

    # --- Single hop ---

    async def step_transition(
        self,
        db: AsyncSession,
        asset: Asset,
        target_state,
        actor_id: int | None,
        reason: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AssetHistory:
        """
        Validate one hop and write it: new state on the asset plus one history
        row. Flushes, does not commit.

        Raises:
            InvalidTransitionError: target is not a legal next state
        """
        target = as_key(target_state)
        current = asset.state
        allowed = self.rules.valid_next_states(asset.type, current)

        if target not in allowed:
            logger.warning(
                "asset transition asset=%s type=%s from=%s to=%s actor=%s result=denied",
                asset.asset_number, asset.type, current, target, actor_id,
            )
            raise InvalidTransitionError(asset.type, current, target, allowed)

        asset.state = target
        asset.updated_at = datetime.now(timezone.utc)
        entry = await history_db.append_history(
            db,
            asset,
            previous_state=current,
            new_state=target,
            actor_id=actor_id,
            reason=reason or f"State transition from {current} to {target}",
            details=details,
        )

        logger.info(
            "asset transition asset=%s type=%s from=%s to=%s actor=%s result=allowed",
            asset.asset_number, asset.type, current, target, actor_id,
        )
        return entry

    async def apply(
        self,
        db: AsyncSession,
        asset: Asset,
        target_state,
        actor_id: int | None,
        reason: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> AppliedTransition:
        """One hop on an already loaded asset, committed on success."""
        asset_number = asset.asset_number
        async with guarded_write(db, asset_number, "transition"):
            previous = asset.state
            entry = await self.step_transition(db, asset, target_state, actor_id, reason, details)
            await db.commit()

        return AppliedTransition(asset=asset, previous_state=previous, entries=[entry])

    async def request_transition(
        self,
        db: AsyncSession,
        asset_number: str,
        target_state,
        actor_id: int | None,
        reason: str | None = None,
        *,
        expected_version: int | None = None,
    ) -> AppliedTransition:
        """
        Move an asset one hop to ``target_state`` on behalf of ``actor_id``.

        ``expected_version`` is the version the caller last saw; when given,
        a different stored version rejects the request.

        Raises:
            AssetNotFoundError, UnknownActorError, InvalidTransitionError,
            ConcurrentModificationError, StorageFailureError
        """
        async with guarded_write(db, asset_number, "transition"):
            asset = await self.load_asset(db, asset_number)
            await self.resolve_actor(db, actor_id)

            if expected_version is not None and asset.version != expected_version:
                raise ConcurrentModificationError(
                    asset_number,
                    f"expected version {expected_version}, found {asset.version}",
                )

            return await self.apply(db, asset, target_state, actor_id, reason)

    # --- Multi hop ---

    async def advance_steps(
        self,
        db: AsyncSession,
        asset: Asset,
        target_state,
        actor_id: int | None,
        reason: str | None = None,
    ) -> list[AssetHistory]:
        """
        Walk ``asset`` along the shortest legal path to ``target_state``.
        One history row per hop. Flushes, does not commit.
        """
        path = self.rules.find_path(asset.type, asset.state, target_state)
        target = as_key(target_state)

        entries = []
        for hop_number, hop in enumerate(path, start=1):
            entry = await self.step_transition(
                db,
                asset,
                hop,
                actor_id,
                reason,
                details={
                    "transition_method": "advance",
                    "target_state": target,
                    "hop": hop_number,
                    "hops": len(path),
                    "asset_type": asset.type,
                },
            )
            entries.append(entry)
        return entries

    async def advance_to_state(
        self,
        db: AsyncSession,
        asset_number: str,
        target_state,
        actor_id: int | None = None,
        reason: str | None = None,
    ) -> AppliedTransition:
        """
        Multi-hop transition committed as one unit. ``actor_id=None`` records
        the system actor.
        """
        async with guarded_write(db, asset_number, "advance"):
            asset = await self.load_asset(db, asset_number)
            await self.resolve_actor(db, actor_id, allow_system=True)
            previous = asset.state

            entries = await self.advance_steps(db, asset, target_state, actor_id, reason)
            await db.commit()

        logger.info(
            "asset advanced asset=%s from=%s to=%s hops=%d",
            asset_number, previous, asset.state, len(entries),
        )
        return AppliedTransition(asset=asset, previous_state=previous, entries=entries)
