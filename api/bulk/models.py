# api/bulk/models.py
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field

from api.assets.models import AssetRead
from core.lifecycle import MAX_NAME_LENGTH


class BulkStatus(str, Enum):
    RECEIVED = "Received"
    VALIDATED = "Validated"
    APPLYING = "Applying"
    COMPLETED = "Completed"
    PARTIALLY_FAILED = "PartiallyFailed"
    REJECTED = "Rejected"


class StateTransitionOperation(BaseModel):
    kind: Literal["stateTransition"]
    new_state: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    reason: str | None = Field(None, max_length=1000)


class BulkFieldUpdateOperation(BaseModel):
    kind: Literal["bulkFieldUpdate"]
    # Only location_id and department are applied; other keys are ignored
    fields: dict[str, Any]


BulkOperation = Annotated[
    Union[StateTransitionOperation, BulkFieldUpdateOperation],
    Field(discriminator="kind"),
]


class BulkOperationRequest(BaseModel):
    asset_identifiers: list[str] = Field(..., min_length=1)
    operation: BulkOperation


class BulkFailure(BaseModel):
    asset_number: str
    code: str
    message: str


class BulkResult(BaseModel):
    affected_count: int
    operation: str
    status: BulkStatus
    updated_assets: list[AssetRead] = Field(default_factory=list)
    failures: list[BulkFailure] = Field(default_factory=list)
