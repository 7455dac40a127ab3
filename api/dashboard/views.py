# api/dashboard/views.py
"""
Dashboard and aggregate statistics endpoints.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from core.deps import CurrentUser, Rules
from api.history.views import SYSTEM_ACTOR_NAME
from .models import DashboardOverview, RecentTransition
from . import db_manager

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get(
    "/overview",
    response_model=DashboardOverview,
    summary="Get high-level overview statistics",
)
async def get_overview_endpoint(
    current_user: CurrentUser,
    rules: Rules,
    db: AsyncSession = Depends(get_session),
    recent: int = Query(10, ge=0, le=100, description="Number of recent transitions"),
) -> DashboardOverview:
    """
    Active assets counted by state and by type, and the latest history
    entries across all assets.
    """
    stats = await db_manager.get_overview_stats(db, rules, recent_limit=recent)

    recent_transitions = [
        RecentTransition(
            asset_number=asset_number,
            previous_state=entry.previous_state,
            new_state=entry.new_state,
            actor_name=SYSTEM_ACTOR_NAME if entry.changed_by is None else entry.actor.full_name,
            reason=entry.change_reason,
            timestamp=entry.timestamp,
        )
        for entry, asset_number in stats["recent_transitions"]
    ]

    return DashboardOverview(
        total_assets=stats["total_assets"],
        active_assets=stats["active_assets"],
        deleted_assets=stats["deleted_assets"],
        by_state=stats["by_state"],
        by_type=stats["by_type"],
        recent_transitions=recent_transitions,
    )
