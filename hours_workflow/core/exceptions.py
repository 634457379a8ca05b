"""
Workflow-wide exception hierarchy.

Every service raises one of these four types and never an ad-hoc class of
its own. Blueprints register a handler per type once and get the same
HTTP status codes everywhere:

    ValidationError    → 422  (bad hours, empty rejection reason, inconsistent path)
    UnauthorizedError  → 403  (role / department / ownership mismatch)
    ConflictError      → 409  (optimistic-concurrency version mismatch)
    NotFoundError      → 404  (unknown id)

Usage:
    from hours_workflow.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Declaration", resource_id="d-1")
    raise ValidationError("Total hours exceed the daily cap", details={"hours": "..."})
"""


class NotFoundError(Exception):
    """Raised when a requested record does not resolve in the store.

    Args:
        resource: Human-readable entity name (e.g. "Declaration", "Semester").
        resource_id: The id that was looked up.
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
    """Raised when input to a workflow operation violates a business rule.

    The message is meant to be surfaced to the caller verbatim.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class UnauthorizedError(Exception):
    """Raised when the acting user may not perform the requested action.

    Never retried. Covers both "wrong role for this stage" and "not the
    author of this declaration".
    """

    def __init__(self, actor_id: str | None, action: str, reason: str | None = None) -> None:
        msg = f"Actor {actor_id} is not allowed to '{action}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.actor_id = actor_id
        self.action = action
        self.reason = reason


class ConflictError(Exception):
    """Raised when a compare-and-set write finds a newer version in the store.

    The caller should re-fetch the record and may retry its decision
    against the fresh state. Nothing retries automatically.

    Args:
        resource: Model name.
        resource_id: The id whose write lost the race.
        expected_version: Version the caller based its decision on.
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str,
        expected_version: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.expected_version = expected_version
        msg = f"{resource} id={resource_id} was modified concurrently"
        if expected_version is not None:
            msg += f" (expected version {expected_version})"
        super().__init__(msg)
