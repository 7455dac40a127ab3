# Importing the package registers every model on Base.metadata
from db_models.user import User, UserRole
from db_models.location import Location
from db_models.asset import Asset, AssetType, AssetState, AssignmentType
from db_models.asset_history import AssetHistory
from db_models.asset_sequence import AssetSequence

__all__ = [
    "User",
    "UserRole",
    "Location",
    "Asset",
    "AssetType",
    "AssetState",
    "AssignmentType",
    "AssetHistory",
    "AssetSequence",
]
