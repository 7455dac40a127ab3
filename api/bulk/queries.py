# api/bulk/queries.py
"""
SQLAlchemy query builders for bulk operations.
"""
from sqlalchemy import select

from db_models.asset import Asset


def select_active_ids_by_number(asset_numbers: list[str]):
    """(id, asset_number) for every active asset among ``asset_numbers``."""
    return select(Asset.id, Asset.asset_number).where(
        Asset.asset_number.in_(asset_numbers),
        Asset.deleted_at.is_(None),
    )
