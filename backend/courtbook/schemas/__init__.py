"""Public schema exports shared across API route modules."""

from courtbook.schemas.approval_requests import ApprovalRequestRead, DecisionPayload, DecisionRead
from courtbook.schemas.common import OkResponse
from courtbook.schemas.errors import ErrorResponse
from courtbook.schemas.health import HealthStatusResponse
from courtbook.schemas.reservations import ReservationRead, ReservationSubmit, ReservationSubmitted
from courtbook.schemas.resources import AvailabilityRead, BlockedWindowRead

__all__ = [
    "ApprovalRequestRead",
    "AvailabilityRead",
    "BlockedWindowRead",
    "DecisionPayload",
    "DecisionRead",
    "ErrorResponse",
    "HealthStatusResponse",
    "OkResponse",
    "ReservationRead",
    "ReservationSubmit",
    "ReservationSubmitted",
]
