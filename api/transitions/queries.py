# api/transitions/queries.py
"""
Query builders used by the transition engine. Every read here goes to the
database: the engine never decides on cached state.
"""
from sqlalchemy import select

from db_models.asset import Asset
from db_models.user import User


def select_active_asset_for_update(asset_number: str):
    """Lock the asset row (where supported) and reload its attributes."""
    return (
        select(Asset)
        .where(Asset.asset_number == asset_number, Asset.deleted_at.is_(None))
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def select_active_asset_by_id_for_update(asset_id: int):
    return (
        select(Asset)
        .where(Asset.id == asset_id, Asset.deleted_at.is_(None))
        .with_for_update()
        .execution_options(populate_existing=True)
    )


def select_active_user(user_id: int):
    return select(User).where(User.id == user_id, User.is_active.is_(True))
