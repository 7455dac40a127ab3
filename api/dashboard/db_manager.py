# api/dashboard/db_manager.py
"""
Business logic for dashboard statistics.
"""
from sqlalchemy.ext.asyncio import AsyncSession

from api.history import db_manager as history_db
from core.lifecycle import TransitionRules
from . import queries


async def get_overview_stats(
    db: AsyncSession,
    rules: TransitionRules,
    recent_limit: int = 10,
) -> dict:
    """
    Asset counts by state and type, plus the latest history entries.
    Every known state is listed, zero counts included.
    """
    # Totals
    result = await db.execute(queries.count_active_assets())
    active_assets = result.scalar() or 0

    result = await db.execute(queries.count_deleted_assets())
    deleted_assets = result.scalar() or 0

    # By state, in lifecycle order where possible
    result = await db.execute(queries.count_assets_by_state())
    state_counts = dict(result.all())
    ordered_states: list[str] = []
    for order in rules.lifecycles.values():
        for state in order:
            if state not in ordered_states:
                ordered_states.append(state)
    for state in state_counts:
        if state not in ordered_states:
            ordered_states.append(state)
    by_state = {state: state_counts.get(state, 0) for state in ordered_states}

    # By type
    result = await db.execute(queries.count_assets_by_type())
    type_counts = dict(result.all())
    by_type = {t: type_counts.get(t, 0) for t in rules.lifecycles}
    for t, count in type_counts.items():
        by_type.setdefault(t, count)

    # Recent activity
    recent = await history_db.recent_entries(db, limit=recent_limit)

    return {
        "total_assets": active_assets + deleted_assets,
        "active_assets": active_assets,
        "deleted_assets": deleted_assets,
        "by_state": by_state,
        "by_type": by_type,
        "recent_transitions": recent,
    }
