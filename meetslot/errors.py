"""
Scheduling error taxonomy.

Hard failures subclass HTTPException so the service layer can raise them the
same way it raises any other HTTP error, while callers and tests can still
tell them apart by type. Soft failures of the external calendar never leave
the core.
"""

from fastapi import HTTPException


class SchedulingError(HTTPException):
    status_code = 400
    default_detail = "Scheduling request failed"

    def __init__(self, detail: str | None = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)


class NotFound(SchedulingError):
    status_code = 404
    default_detail = "Not found"


class Unauthorized(SchedulingError):
    status_code = 401
    default_detail = "Unauthorized"


class QuotaExceeded(SchedulingError):
    status_code = 403
    default_detail = "Host has reached their monthly booking limit"


class SlotUnavailable(SchedulingError):
    status_code = 409
    default_detail = "This time slot is no longer available"


class ExternalServiceDegraded(Exception):
    """A Google Calendar read, write or lookup failed. Always caught inside the core."""
