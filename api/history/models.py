# api/history/models.py
from datetime import datetime
from typing import Any

from pydantic import BaseModel


class HistoryEntryRead(BaseModel):
    id: int
    sequence: int
    previous_state: str | None = None
    new_state: str
    changed_by: int | None = None
    actor_name: str
    reason: str | None = None
    timestamp: datetime
    details: dict[str, Any] | None = None


class AssetHistoryResponse(BaseModel):
    asset_number: str
    current_state: str
    is_deleted: bool
    entries: list[HistoryEntryRead]


class StateMismatchRead(BaseModel):
    asset_id: int
    asset_number: str
    stored_state: str
    history_state: str | None = None


class ConsistencyReport(BaseModel):
    consistent: bool
    mismatches: list[StateMismatchRead]
