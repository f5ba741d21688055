"""
Domain Exceptions

Typed failures raised by the lifecycle engine, the access code binder and
the table service. Each carries a machine-readable `code` and the HTTP
status the API layer answers with, so one exception handler in
`tableside.main` covers the whole taxonomy.

Nothing here retries. Callers decide whether a failure is worth another
attempt (see `retryable`).
"""

from typing import Optional


class TablesideError(Exception):
    """Base class for every error raised by the ordering core."""

    code: str = "error"
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str, *, detail: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        """Convert to the API error payload."""
        return {
            "success": False,
            "error": self.code,
            "detail": self.message,
        }


class NotFound(TablesideError):
    """Referenced table, order or access code does not exist."""
    code = "not_found"
    status_code = 404
    retryable = True

    def __init__(self, entity: str, entity_id: str):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InvalidTable(TablesideError):
    code = "invalid_table"
    status_code = 400


class EmptyOrder(TablesideError):
    code = "empty_order"
    status_code = 400


class InvalidTransition(TablesideError):
    """Requested status is not reachable from the current one."""
    code = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, requested: str):
        super().__init__(f"Cannot move order from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


class Locked(TablesideError):
    """Order is completed, paid and past its grace window."""
    code = "locked"
    status_code = 409

    def __init__(self, order_id: str):
        super().__init__(f"Order {order_id} is locked; no further changes allowed")
        self.order_id = order_id


class StaffRequired(TablesideError):
    code = "staff_required"
    status_code = 403


class ConcurrentModification(TablesideError):
    """Order changed between read and write."""
    code = "concurrent_modification"
    status_code = 409
    retryable = True

    def __init__(self, order_id: str, expected_version: int):
        super().__init__(
            f"Order {order_id} was modified concurrently "
            f"(expected version {expected_version})"
        )
        self.order_id = order_id
        self.expected_version = expected_version


class DuplicateTable(TablesideError):
    code = "duplicate_table"
    status_code = 409


class BindingConflict(TablesideError):
    """Another request bound the same table or the global menu first."""
    code = "binding_conflict"
    status_code = 409
    retryable = True


class InvalidAccessCode(TablesideError):
    code = "invalid_access_code"
    status_code = 400


class ArtifactGenerationFailed(TablesideError):
    """QR rendering or artifact storage failed."""
    code = "artifact_generation_failed"
    status_code = 502
    retryable = True


__all__ = [
    "TablesideError",
    "NotFound",
    "InvalidTable",
    "EmptyOrder",
    "InvalidTransition",
    "Locked",
    "StaffRequired",
    "ConcurrentModification",
    "DuplicateTable",
    "BindingConflict",
    "InvalidAccessCode",
    "ArtifactGenerationFailed",
]
