# api/assets/models.py
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from core.lifecycle import MAX_NAME_LENGTH
from db_models.asset import AssignmentType


class AssetCreate(BaseModel):
    serial_number: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    # Built-in or tenant-defined type from the active rule table
    type: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)

    # Defaults to the first state of the type's lifecycle
    initial_state: str | None = Field(None, min_length=1, max_length=MAX_NAME_LENGTH)

    location_id: int | None = None
    assignment_type: AssignmentType | None = None
    assigned_to: str | None = Field(None, max_length=255)
    employee_id: str | None = Field(None, max_length=50)
    department: str | None = Field(None, max_length=255)


class AssetRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    asset_number: str
    serial_number: str
    description: str
    type: str
    state: str
    location_id: int | None = None
    assignment_type: str | None = None
    assigned_to: str | None = None
    employee_id: str | None = None
    department: str | None = None
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class NextStatesResponse(BaseModel):
    asset_number: str
    type: str
    current_state: str
    next_states: list[str]
    # Full ordered lifecycle for the type, for display
    lifecycle: list[str]
