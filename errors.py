# errors.py
from typing import Dict, Optional


class PlanError(Exception):
    """Base class for failures that are reported back to the caller as JSON."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict:
        body = {"success": False, "error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class PlanValidationError(PlanError):
    status_code = 400


class PlanNotFound(PlanError):
    status_code = 404


class StateConflict(PlanError):
    status_code = 409


class GenerationFailure(PlanError):
    """The text-generation backend failed for one week.

    ``kind`` is either ``timeout`` or ``backend-error``.
    """

    TIMEOUT = "timeout"
    BACKEND_ERROR = "backend-error"

    def __init__(self, message: str, kind: str = BACKEND_ERROR, details: Optional[Dict] = None):
        super().__init__(message, details)
        self.kind = kind

    @property
    def status_code(self) -> int:  # type: ignore[override]
        return 408 if self.kind == self.TIMEOUT else 500


class NotificationFailure(PlanError):
    """The completion email could not be delivered. Logged, never surfaced."""
