"""Model exports for SQLAlchemy/SQLModel metadata discovery."""

from courtbook.models.approval_requests import ApprovalRequest, RequestStatus
from courtbook.models.blocked_windows import BlockedWindow
from courtbook.models.reservations import Reservation, ReservationStatus
from courtbook.models.slot_locks import SlotLock

__all__ = [
    "ApprovalRequest",
    "BlockedWindow",
    "RequestStatus",
    "Reservation",
    "ReservationStatus",
    "SlotLock",
]
