from datetime import datetime

from pydantic import BaseModel, Field

from api.assets.models import AssetRead
from core.lifecycle import MAX_NAME_LENGTH


class TransitionRequest(BaseModel):
    # Any state the active rule table knows; checked by the engine
    target_state: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    reason: str | None = Field(None, max_length=1000)

    # Version the client last read; stale values are rejected with 409
    expected_version: int | None = Field(None, ge=1)


class AdvanceRequest(BaseModel):
    target_state: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    reason: str | None = Field(None, max_length=1000)


class TransitionStep(BaseModel):
    sequence: int
    previous_state: str | None = None
    new_state: str
    reason: str | None = None
    timestamp: datetime


class TransitionResponse(BaseModel):
    asset: AssetRead
    previous_state: str
    new_state: str
    steps: list[TransitionStep]
