"""Exception hierarchy for rule reconciliation."""

from __future__ import annotations


class ReconcileError(Exception):
    """Base class for errors raised while reconciling load balancer state."""

    pass


class InputError(ReconcileError):
    """Raised when a caller passes inconsistent input.

    No remote call is attempted when this is raised.
    """

    pass


class TargetGroupResolutionError(InputError):
    """Raised when a load balancer has no target group to forward to."""

    pass


class PriorityExhaustedError(ReconcileError):
    """Raised when a listener has no free rule priority left."""

    pass


class RemoteCallError(ReconcileError):
    """Raised when an ELBv2 or EC2 call is rejected or fails in transit.

    Attributes:
        operation: AWS operation name (e.g. "CreateRule").
        code: AWS error code when the service returned one.
    """

    def __init__(self, operation: str, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation
        self.code = code

    def __str__(self) -> str:
        message = super().__str__()
        if self.code:
            return f"{self.operation} failed ({self.code}): {message}"
        return f"{self.operation} failed: {message}"
