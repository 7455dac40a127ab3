# api/bulk/views.py
"""
Bulk operation endpoint.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from core.deps import CurrentUser, Engine
from core.exceptions import (
    InvalidAssetIdentifiersError,
    LocationNotFoundError,
    UnknownActorError,
    UnknownStateError,
)
from .db_manager import BulkOperationCoordinator
from .models import BulkOperationRequest, BulkResult

router = APIRouter(prefix="/assets", tags=["bulk"])


@router.post(
    "/bulk",
    response_model=BulkResult,
    summary="Apply one operation to many assets",
)
async def bulk_operation_endpoint(
    payload: BulkOperationRequest,
    current_user: CurrentUser,
    engine: Engine,
    db: AsyncSession = Depends(get_session),
) -> BulkResult:
    """
    Run a state transition or a field update over a list of asset numbers.

    Every number must resolve to an active asset, otherwise the request is
    rejected with 400 and nothing changes. Per-asset failures (illegal
    transition, concurrent change) are reported in ``failures`` while the
    remaining assets are still processed.
    """
    coordinator = BulkOperationCoordinator(engine)
    try:
        return await coordinator.execute(
            db,
            payload.asset_identifiers,
            payload.operation,
            current_user.id,
        )
    except InvalidAssetIdentifiersError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid asset identifiers", "missing": exc.missing},
        ) from exc
    except (LocationNotFoundError, UnknownStateError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except UnknownActorError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
