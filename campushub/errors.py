"""
Domain error kinds shared by the workflow, consensus and thread services.

Each error carries an HTTP status so the API layer can translate it without
inspecting the message.
"""
from typing import Any, Dict, Optional


class DomainError(Exception):
    status_code = 400

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"error": type(self).__name__, "detail": self.message}
        if self.details:
            data["context"] = self.details
        return data


class ValidationError(DomainError):
    """Missing or malformed input (empty remarks on hold, from > to, ...)."""

    status_code = 400


class PermissionDeniedError(DomainError):
    """Actor lacks the role or ownership for the attempted action."""

    status_code = 403


class PreconditionError(PermissionDeniedError):
    """Workflow ordering or state precondition violated."""

    status_code = 409


class NotFoundError(DomainError):
    status_code = 404


class StoreError(DomainError):
    """The record store call failed. Not the caller's fault."""

    status_code = 503


class PartialWriteError(StoreError):
    """A later step of a multi-step write failed after earlier steps committed."""

    def __init__(self, message: str, *, step: str, committed: Optional[Dict[str, Any]] = None, **details: Any) -> None:
        super().__init__(message, step=step, committed=committed or {}, **details)
        self.step = step
        self.committed = committed or {}
