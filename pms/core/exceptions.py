"""
Service-layer exception hierarchy.

Every service raises one of these types; blueprints register handlers
against them once (see pms.utils.errors.register_error_handlers) and get
consistent HTTP status codes everywhere.

    NotFoundError    → 404   referenced record does not exist
    ValidationError  → 422   well-formed input that breaks a business rule
    WeightError      → 422   weight allocation rule violated (ValidationError)
    ConflictError    → 409   duplicate unique key
    StateError       → 409   operation not allowed at this workflow stage
    ForbiddenError   → 403   actor's role does not permit the operation
    TransportError   → 503   storage collaborator unreachable / commit failed

ForbiddenError means "wrong role", StateError means "wrong stage".

Usage:
    from pms.core.exceptions import NotFoundError, StateError

    raise NotFoundError(resource="Ipp", resource_id="IPP-001")
    raise StateError("Ipp", "approve", "verify=PENDING", "IPP must be verified first")
"""


class NotFoundError(Exception):
    """Raised when a referenced record does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Ipp", "Evidence").
        resource_id: The key that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails business-rule validation.

    Args:
        message: Human-readable explanation of the violated rule.
        details: Optional field-level breakdown for structured responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class WeightError(ValidationError):
    """Raised when an IPP's activity weights break the allocation rule.

    Args:
        kind: CATEGORY_EXCEEDED | TOTAL_NOT_100
        details: Per-category totals and limits that produced the failure.
    """

    CATEGORY_EXCEEDED = "CATEGORY_EXCEEDED"
    TOTAL_NOT_100 = "TOTAL_NOT_100"

    def __init__(self, kind: str, message: str, details: dict | None = None) -> None:
        self.kind = kind
        details = dict(details or {})
        details.setdefault("kind", kind)
        super().__init__(message, details)


class ConflictError(Exception):
    """Raised when an operation would duplicate a unique key.

    Args:
        resource: Model name.
        field: The unique field that would be duplicated.
        value: The conflicting value.
    """

    def __init__(self, resource: str, field: str, value: str | None = None) -> None:
        self.resource = resource
        self.field = field
        self.value = value
        super().__init__(f"{resource} with {field}={value!r} already exists")


class StateError(Exception):
    """Raised when a transition or edit is not allowed at the current stage.

    Args:
        entity: What was acted on, e.g. "Ipp IPP-001".
        action: The attempted operation ("submit", "approve", "edit_activity").
        current: Description of the current state.
        reason: Optional explanation shown to the actor.
    """

    def __init__(self, entity: str, action: str, current: str, reason: str | None = None) -> None:
        msg = f"Cannot '{action}' {entity} ({current})"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.entity = entity
        self.action = action
        self.current = current
        self.reason = reason


class ForbiddenError(Exception):
    """Raised when the actor's role or ownership does not permit an action."""

    def __init__(self, npk: str | None, action: str, required: str | None = None) -> None:
        msg = f"User {npk} is not allowed to '{action}'"
        if required:
            msg += f" (requires {required})"
        super().__init__(msg)
        self.npk = npk
        self.action = action
        self.required = required


class TransportError(Exception):
    """Raised when the storage collaborator is unreachable or rejects a write.

    Never retried here; the caller owns retry/backoff policy.
    """

    def __init__(self, operation: str, reason: str | None = None) -> None:
        msg = f"Storage operation '{operation}' failed"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.operation = operation
        self.reason = reason
