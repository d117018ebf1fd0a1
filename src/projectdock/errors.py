"""Error taxonomy for lifecycle operations.

Every engine operation fails with one of these exceptions. None of them is
raised after a transaction commits, so a raised error always means no state
changed. The web layer maps each class to an HTTP status code.
"""

from __future__ import annotations

from typing import Any


class LifecycleError(Exception):
    """Base class for all errors surfaced to callers."""

    status_code: int = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(LifecycleError):
    """A project, phase, sub-step, question or attachment does not exist."""

    status_code = 404

    def __init__(self, kind: str, key: Any):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key} not found")


class ForbiddenError(LifecycleError):
    """The caller's capabilities do not satisfy the operation's gate."""

    status_code = 403


class InvalidTransitionError(LifecycleError):
    """A status precondition is not met.

    Attributes:
        current: Status the record was in, when the error concerns a status.
        target: Status the operation tried to reach, if any.
        reason: Human-readable explanation.
    """

    status_code = 409

    def __init__(
        self,
        reason: str,
        current: str | None = None,
        target: str | None = None,
    ):
        self.reason = reason
        self.current = current
        self.target = target
        super().__init__(reason)


class PayloadValidationError(LifecycleError):
    """Request content is missing, malformed or oversized."""

    status_code = 422
