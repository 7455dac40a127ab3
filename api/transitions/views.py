# api/transitions/views.py
"""
State transition endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from core.deps import AdminUser, CurrentUser, Engine
from core.exceptions import (
    AssetNotFoundError,
    ConcurrentModificationError,
    InvalidTransitionError,
    UnknownActorError,
)
from api.assets.models import AssetRead
from .db_manager import AppliedTransition
from .models import AdvanceRequest, TransitionRequest, TransitionResponse, TransitionStep

router = APIRouter(prefix="/assets", tags=["transitions"])


def _to_response(applied: AppliedTransition) -> TransitionResponse:
    return TransitionResponse(
        asset=AssetRead.model_validate(applied.asset),
        previous_state=applied.previous_state,
        new_state=applied.new_state,
        steps=[
            TransitionStep(
                sequence=entry.sequence,
                previous_state=entry.previous_state,
                new_state=entry.new_state,
                reason=entry.change_reason,
                timestamp=entry.timestamp,
            )
            for entry in applied.entries
        ],
    )


@router.post(
    "/{asset_number}/transition",
    response_model=TransitionResponse,
    summary="Move an asset to its next state",
)
async def transition_asset_endpoint(
    asset_number: str,
    payload: TransitionRequest,
    current_user: CurrentUser,
    engine: Engine,
    db: AsyncSession = Depends(get_session),
) -> TransitionResponse:
    """
    Single-step transition. The target must be a legal next state for the
    asset's type; anything else is rejected with 409 and the allowed states.
    """
    try:
        applied = await engine.request_transition(
            db,
            asset_number,
            payload.target_state,
            current_user.id,
            payload.reason,
            expected_version=payload.expected_version,
        )
    except AssetNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except (InvalidTransitionError, ConcurrentModificationError) as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except UnknownActorError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc

    return _to_response(applied)


@router.post(
    "/{asset_number}/advance",
    response_model=TransitionResponse,
    summary="Walk an asset through several states",
)
async def advance_asset_endpoint(
    asset_number: str,
    payload: AdvanceRequest,
    admin: AdminUser,  # Multi-step moves are a maintenance operation
    engine: Engine,
    db: AsyncSession = Depends(get_session),
) -> TransitionResponse:
    """
    Follow the shortest legal path to the target state, writing one history
    entry per step, all committed together. Admin only.
    """
    try:
        applied = await engine.advance_to_state(
            db,
            asset_number,
            payload.target_state,
            admin.id,
            payload.reason,
        )
    except AssetNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except (InvalidTransitionError, ConcurrentModificationError) as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except UnknownActorError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc

    return _to_response(applied)
