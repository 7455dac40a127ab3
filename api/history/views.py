# api/history/views.py
"""
Audit trail endpoints.
"""
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from core.deps import AdminUser, CurrentUser
from core.exceptions import AssetNotFoundError
from db_models.asset_history import AssetHistory
from .models import (
    AssetHistoryResponse,
    ConsistencyReport,
    HistoryEntryRead,
    StateMismatchRead,
)
from . import db_manager

SYSTEM_ACTOR_NAME = "System"

router = APIRouter(tags=["history"])


def to_entry_read(entry: AssetHistory) -> HistoryEntryRead:
    """Entry with its actor already loaded."""
    return HistoryEntryRead(
        id=entry.id,
        sequence=entry.sequence,
        previous_state=entry.previous_state,
        new_state=entry.new_state,
        changed_by=entry.changed_by,
        actor_name=SYSTEM_ACTOR_NAME if entry.changed_by is None else entry.actor.full_name,
        reason=entry.change_reason,
        timestamp=entry.timestamp,
        details=entry.details,
    )


@router.get(
    "/assets/{asset_number}/history",
    response_model=AssetHistoryResponse,
    summary="Get an asset's history",
)
async def get_asset_history_endpoint(
    asset_number: str,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_session),
    limit: int | None = Query(None, ge=1, le=1000, description="Newest entries only"),
) -> AssetHistoryResponse:
    """
    History entries, newest first. Soft-deleted assets keep their history.
    """
    try:
        asset = await db_manager.get_asset_by_number(db, asset_number)
    except AssetNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc

    entries = await db_manager.entries_for(db, asset.id, limit)

    return AssetHistoryResponse(
        asset_number=asset.asset_number,
        current_state=asset.state,
        is_deleted=asset.is_deleted,
        entries=[to_entry_read(e) for e in entries],
    )


@router.get(
    "/history/consistency",
    response_model=ConsistencyReport,
    summary="Compare stored states with history",
)
async def consistency_endpoint(
    admin: AdminUser,
    db: AsyncSession = Depends(get_session),
) -> ConsistencyReport:
    """
    Report active assets whose stored state differs from their latest
    history entry. Read only; repairs go through ``check_history.py``.
    Admin only.
    """
    mismatches = await db_manager.find_state_mismatches(db)
    return ConsistencyReport(
        consistent=not mismatches,
        mismatches=[StateMismatchRead(**asdict(m)) for m in mismatches],
    )
