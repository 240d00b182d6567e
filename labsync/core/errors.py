"""Caller-facing error kinds raised by the services layer.

Routers never catch these; the handlers registered in ``labsync.main``
turn them into JSON responses with a status code per kind.
"""
from typing import Optional


class LabSyncError(Exception):
    code = "error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class ValidationError(LabSyncError):
    """Malformed input: bad score, bad schedule, contradictory audience."""

    code = "validation_error"


class InvalidScoreError(ValidationError):
    code = "invalid_score"


class LockedError(LabSyncError):
    """Mutation attempted on a locked submission."""

    code = "locked"


class UploadWindowError(LabSyncError):
    """Upload attempted before the scheduled date or on a cancelled distribution."""

    code = "upload_window_closed"

    def __init__(self, message: str, reason: str, field: Optional[str] = None):
        super().__init__(message, field)
        self.reason = reason


class NotFoundError(LabSyncError):
    code = "not_found"


class InfrastructureError(LabSyncError):
    """Storage or database failure. Not retried here."""

    code = "infrastructure_error"
