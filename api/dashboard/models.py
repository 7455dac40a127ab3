# api/dashboard/models.py
"""
Pydantic models for dashboard responses.
"""
from datetime import datetime

from pydantic import BaseModel


class RecentTransition(BaseModel):
    """One history entry in the activity feed."""
    asset_number: str
    previous_state: str | None = None
    new_state: str
    actor_name: str
    reason: str | None = None
    timestamp: datetime


class DashboardOverview(BaseModel):
    """High-level asset statistics."""
    total_assets: int
    active_assets: int
    deleted_assets: int
    by_state: dict[str, int]
    by_type: dict[str, int]
    recent_transitions: list[RecentTransition]
