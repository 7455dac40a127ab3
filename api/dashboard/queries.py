# api/dashboard/queries.py
"""
SQLAlchemy query builders for dashboard statistics.
"""
from sqlalchemy import select, func

from db_models.asset import Asset


def count_active_assets():
    """Count assets that are not soft-deleted."""
    return select(func.count(Asset.id)).where(Asset.deleted_at.is_(None))


def count_deleted_assets():
    """Count soft-deleted assets."""
    return select(func.count(Asset.id)).where(Asset.deleted_at.is_not(None))


def count_assets_by_state():
    """Active asset counts grouped by current state."""
    return (
        select(Asset.state, func.count(Asset.id))
        .where(Asset.deleted_at.is_(None))
        .group_by(Asset.state)
    )


def count_assets_by_type():
    """Active asset counts grouped by type."""
    return (
        select(Asset.type, func.count(Asset.id))
        .where(Asset.deleted_at.is_(None))
        .group_by(Asset.type)
    )
