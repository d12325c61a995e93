"""Exception hierarchy for the giro module.

Each error carries the context the caller needs to build an actionable
message (giro id, requested amount, remaining balance) and the HTTP status
the API layer answers with.
"""

from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID


class GiroError(Exception):
    """Base exception for all giro errors."""

    status_code = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_detail(self) -> Dict[str, Any]:
        detail = {"error": type(self).__name__, "message": self.message}
        for key, value in self.context.items():
            detail[key] = str(value) if isinstance(value, (Decimal, UUID)) else value
        return detail


class ValidationError(GiroError):
    """Raised when an input field is missing or malformed."""

    status_code = 422

    def __init__(self, field: str, reason: str):
        super().__init__(f"Invalid {field}: {reason}", field=field, reason=reason)
        self.field = field
        self.reason = reason


class InsufficientRemainingAmount(GiroError):
    """Raised when a cleared amount would exceed the giro's remaining balance."""

    status_code = 409

    def __init__(self, giro_id, requested: Decimal, remaining: Decimal):
        super().__init__(
            f"Clearing amount {requested} exceeds the remaining amount {remaining} of giro {giro_id}",
            giro_id=giro_id,
            requested=requested,
            remaining=remaining,
        )
        self.giro_id = giro_id
        self.requested = requested
        self.remaining = remaining


class InvalidGiroStateError(GiroError):
    """Raised when the giro's state does not allow the operation."""

    status_code = 409

    def __init__(self, giro_id, status: str, reason: str):
        super().__init__(
            f"Giro {giro_id} ({status}): {reason}",
            giro_id=giro_id,
            status=status,
            reason=reason,
        )
        self.giro_id = giro_id
        self.status = status
        self.reason = reason


class NotFoundError(GiroError):
    """Raised when a referenced giro or clearing record does not exist."""

    status_code = 404

    def __init__(self, entity_type: str, entity_id):
        super().__init__(
            f"{entity_type} {entity_id} not found",
            entity_type=entity_type,
            entity_id=entity_id,
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class StoreError(GiroError):
    """Raised when the underlying storage fails."""

    status_code = 503

    def __init__(self, operation: str, reason: Optional[str] = None):
        super().__init__(
            f"Storage failure during {operation}" + (f": {reason}" if reason else ""),
            operation=operation,
        )
        self.operation = operation
        self.reason = reason
