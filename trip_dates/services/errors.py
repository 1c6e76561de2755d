# trip_dates/services/errors.py
from typing import Any, Dict, Optional


class SchedulingError(Exception):
    """
    Base error for the scheduling engine.

    Routers translate these into HTTPException(status_code, detail=...),
    so every subclass carries an HTTP status, a machine-readable code and
    optional structured data the caller can use to self-correct.
    """

    status_code: int = 400
    default_code: str = "SCHEDULING_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.data = data or {}

    def to_detail(self) -> Dict[str, Any]:
        detail: Dict[str, Any] = {"error": self.message, "code": self.code}
        detail.update(self.data)
        return detail


class SchedulingValidationError(SchedulingError):
    status_code = 400
    default_code = "VALIDATION_ERROR"


class SchedulingForbiddenError(SchedulingError):
    status_code = 403
    default_code = "FORBIDDEN"


class SchedulingNotFoundError(SchedulingError):
    status_code = 404
    default_code = "NOT_FOUND"


class SchedulingStateError(SchedulingError):
    """Wrong phase, quota exceeded, duplicate support, missing approvals..."""

    status_code = 400
    default_code = "INVALID_STATE"


class StaleScheduleError(SchedulingError):
    """A concurrent write changed the trip's schedule state first."""

    status_code = 409
    default_code = "STALE_STATE"


# Machine-readable codes
PROPOSAL_ACTIVE = "PROPOSAL_ACTIVE"
USER_WINDOW_CAP_REACHED = "USER_WINDOW_CAP_REACHED"
REQUIRES_CONCRETE_DATES = "REQUIRES_CONCRETE_DATES"
INSUFFICIENT_APPROVALS = "INSUFFICIENT_APPROVALS"
DATES_LOCKED = "DATES_LOCKED"
TRIP_CANCELED = "TRIP_CANCELED"
DUPLICATE_SUPPORT = "DUPLICATE_SUPPORT"
NOT_PROPOSED = "NOT_PROPOSED"
THRESHOLD_NOT_MET = "THRESHOLD_NOT_MET"
