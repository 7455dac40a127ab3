# core/exceptions.py
"""
Typed errors raised by the lifecycle core.

Every error carries a machine-readable ``code``. Views map validation errors
to HTTP responses with their message; ``StorageFailureError`` is turned into a
generic 500 by the handler registered in ``main.py``.
"""


class AssetLifecycleError(Exception):
    """Base class for all lifecycle errors."""
    code = "LIFECYCLE_ERROR"


class AssetNotFoundError(AssetLifecycleError):
    """Asset does not exist or is soft-deleted."""
    code = "ASSET_NOT_FOUND"

    def __init__(self, asset_ref: str | int):
        self.asset_ref = asset_ref
        super().__init__(f"Asset {asset_ref} not found")


class InvalidTransitionError(AssetLifecycleError):
    """Target state is not reachable from the current state for this type."""
    code = "INVALID_TRANSITION"

    def __init__(
        self,
        asset_type: str,
        from_state: str,
        to_state: str,
        allowed: frozenset[str] | set[str] = frozenset(),
    ):
        self.asset_type = asset_type
        self.from_state = from_state
        self.to_state = to_state
        self.allowed = sorted(allowed)
        super().__init__(
            f"Cannot transition {asset_type} from '{from_state}' to '{to_state}'. "
            f"Allowed transitions: {', '.join(self.allowed) or 'none'}."
        )


class UnknownAssetTypeError(AssetLifecycleError):
    """Asset type has no lifecycle in the active rule table."""
    code = "UNKNOWN_ASSET_TYPE"

    def __init__(self, asset_type: str):
        self.asset_type = asset_type
        super().__init__(f"Asset type '{asset_type}' is not defined by the rule table")


class UnknownStateError(AssetLifecycleError):
    """State appears in no lifecycle of the active rule table."""
    code = "UNKNOWN_STATE"

    def __init__(self, state: str):
        self.state = state
        super().__init__(f"State '{state}' is not defined by the rule table")


class InvalidAssetIdentifiersError(AssetLifecycleError):
    """A bulk request references assets that do not resolve."""
    code = "INVALID_ASSET_IDENTIFIERS"

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(f"Some assets do not exist: {', '.join(missing)}")


class ConcurrentModificationError(AssetLifecycleError):
    """The asset row changed between read and write. Retry the operation."""
    code = "CONCURRENT_MODIFICATION"

    def __init__(self, asset_ref: str | int, detail: str | None = None):
        self.asset_ref = asset_ref
        message = f"Asset {asset_ref} was modified concurrently"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class UnknownActorError(AssetLifecycleError):
    """Actor reference does not resolve to an active user."""
    code = "UNKNOWN_ACTOR"

    def __init__(self, actor_id):
        self.actor_id = actor_id
        super().__init__(f"Actor {actor_id} could not be resolved")


class LocationNotFoundError(AssetLifecycleError):
    code = "LOCATION_NOT_FOUND"

    def __init__(self, location_id: int):
        self.location_id = location_id
        super().__init__(f"Location {location_id} not found")


class DuplicateAssetError(AssetLifecycleError):
    """Serial number or asset number already registered."""
    code = "DUPLICATE_ASSET"


class InvalidRuleTableError(AssetLifecycleError):
    """A tenant-supplied rule table failed validation."""
    code = "INVALID_RULE_TABLE"


class BulkOperationAbortedError(AssetLifecycleError):
    """An all-or-nothing batch hit a per-asset failure and was rolled back."""
    code = "BULK_OPERATION_ABORTED"

    def __init__(self, asset_number: str, cause: AssetLifecycleError):
        self.asset_number = asset_number
        self.cause = cause
        super().__init__(f"Batch aborted at asset {asset_number}: {cause}")


class StorageFailureError(AssetLifecycleError):
    """Underlying read/write failed. Details are logged, not returned."""
    code = "STORAGE_FAILURE"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Storage failure during {operation}")
