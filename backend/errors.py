"""
Domain errors raised by the lifecycle engine and the record store.

Each error knows the HTTP status it maps to; main.py turns them into
JSON responses. Anything else raised by the store is an internal failure.
"""

from typing import Any, Dict, Optional


class AssetError(Exception):
    """Base class for every recoverable domain failure."""

    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message}
        if self.field:
            body["field"] = self.field
        return body


class ValidationFailed(AssetError):
    """A required field is missing or malformed for the target status."""

    status_code = 400

    def __init__(self, field: str, reason: str):
        super().__init__(f"{field}: {reason}", field=field)
        self.reason = reason


class DuplicateKey(AssetError):
    """Uniqueness violation on assetId or serialNumber."""

    status_code = 409

    _MESSAGES = {
        "assetId": "Asset ID already exists. Please use a unique asset ID.",
        "serialNumber": "Serial Number already exists. Please use a unique serial number.",
        "email": "Email already in use.",
    }

    def __init__(self, field: str):
        super().__init__(
            self._MESSAGES.get(field, "Duplicate value. Please check your input."),
            field=field,
        )


class NotFound(AssetError):
    """The referenced record does not exist (or was purged)."""

    status_code = 404

    def __init__(self, entity: str, key: Any):
        super().__init__(f"{entity} '{key}' not found")
        self.entity = entity
        self.key = key


class Conflict(AssetError):
    """A write carried a stale version and was rejected."""

    status_code = 409

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Record was modified concurrently (expected version {expected}, found {actual})",
            field="version",
        )
        self.expected = expected
        self.actual = actual
