# api/assets/views.py
"""
Asset registry endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from core.deps import AdminUser, CurrentUser, Engine
from core.exceptions import (
    AssetNotFoundError,
    ConcurrentModificationError,
    DuplicateAssetError,
    InvalidTransitionError,
    LocationNotFoundError,
    UnknownActorError,
    UnknownAssetTypeError,
)
from .models import AssetCreate, AssetRead, NextStatesResponse
from . import db_manager

router = APIRouter(prefix="/assets", tags=["assets"])


@router.post(
    "",
    response_model=AssetRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register an asset",
)
async def create_asset_endpoint(
    payload: AssetCreate,
    current_user: CurrentUser,
    engine: Engine,
    db: AsyncSession = Depends(get_session),
) -> AssetRead:
    """
    Register a new asset. The asset number is generated from the type and
    a creation entry is written to its history.
    """
    try:
        asset = await db_manager.create_asset(
            db,
            engine,
            serial_number=payload.serial_number,
            description=payload.description,
            asset_type=payload.type,
            actor_id=current_user.id,
            initial_state=payload.initial_state,
            location_id=payload.location_id,
            assignment_type=payload.assignment_type,
            assigned_to=payload.assigned_to,
            employee_id=payload.employee_id,
            department=payload.department,
        )
    except (DuplicateAssetError, ConcurrentModificationError) as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc
    except (LocationNotFoundError, InvalidTransitionError, UnknownAssetTypeError) as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except UnknownActorError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc

    return AssetRead.model_validate(asset)


@router.get(
    "",
    response_model=list[AssetRead],
    summary="List active assets",
)
async def list_assets_endpoint(
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_session),
    type: str | None = Query(None, description="Filter by asset type"),
    state: str | None = Query(None, description="Filter by current state"),
    location_id: int | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> list[AssetRead]:
    assets = await db_manager.list_assets(
        db,
        asset_type=type,
        state=state,
        location_id=location_id,
        limit=limit,
        offset=offset,
    )
    return [AssetRead.model_validate(a) for a in assets]


@router.get(
    "/{asset_number}",
    response_model=AssetRead,
    summary="Get asset by number",
)
async def get_asset_endpoint(
    asset_number: str,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_session),
) -> AssetRead:
    try:
        asset = await db_manager.get_active_asset(db, asset_number)
    except AssetNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc

    return AssetRead.model_validate(asset)


@router.delete(
    "/{asset_number}",
    response_model=AssetRead,
    summary="Soft delete an asset",
)
async def delete_asset_endpoint(
    asset_number: str,
    admin: AdminUser,  # Only admins can retire assets
    engine: Engine,
    db: AsyncSession = Depends(get_session),
) -> AssetRead:
    """
    Mark an asset deleted. It disappears from listings and cannot be
    transitioned, but its history is kept. Admin only.
    """
    try:
        asset = await db_manager.soft_delete_asset(db, engine, asset_number, admin.id)
    except AssetNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except ConcurrentModificationError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(exc),
        ) from exc

    return AssetRead.model_validate(asset)


@router.get(
    "/{asset_number}/next-states",
    response_model=NextStatesResponse,
    summary="List legal next states",
)
async def next_states_endpoint(
    asset_number: str,
    current_user: CurrentUser,
    engine: Engine,
    db: AsyncSession = Depends(get_session),
) -> NextStatesResponse:
    """
    States the asset may move to in one step, in lifecycle order.
    """
    try:
        asset = await db_manager.get_active_asset(db, asset_number)
    except AssetNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc

    order = engine.rules.lifecycle_order(asset.type)
    allowed = engine.rules.valid_next_states(asset.type, asset.state)

    return NextStatesResponse(
        asset_number=asset.asset_number,
        type=asset.type,
        current_state=asset.state,
        next_states=[s for s in order if s in allowed],
        lifecycle=list(order),
    )
