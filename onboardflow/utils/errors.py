from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ApiError(Exception):
    code: str
    message: str
    status: int = 400
    details: Any | None = None


class MissingBaseDate(ApiError):
    CODE = "MISSING_BASE_DATE"

    def __init__(self, message: str = "Candidate has no expected joining date; schedule with an exact time", details: Any | None = None):
        super().__init__(self.CODE, message, 422, details)


class MissingPrerequisite(ApiError):
    CODE = "MISSING_PREREQUISITE"

    def __init__(self, message: str = "Required document must be uploaded first", details: Any | None = None):
        super().__init__(self.CODE, message, 422, details)


class ConflictingEvent(ApiError):
    CODE = "CONFLICTING_EVENT"

    def __init__(self, message: str = "Step already has a scheduled event", details: Any | None = None):
        super().__init__(self.CODE, message, 409, details)


class AutoScheduleBestEffort(ApiError):
    """Raised inside the offer-reminder side effect; logged by the caller, never returned."""

    CODE = "AUTO_SCHEDULE_BEST_EFFORT"

    def __init__(self, message: str, details: Any | None = None):
        super().__init__(self.CODE, message, 500, details)


class TransportError(ApiError):
    CODE = "TRANSPORT_ERROR"

    def __init__(self, message: str, details: Any | None = None):
        super().__init__(self.CODE, message, 502, details)
