"""Business logic services for the FreeSeat booking engine."""

from .contact_policy import ContactPolicy, ContactValidator
from .reservation_service import ReservationEngine
from .receipt_renderer import ReceiptArtifact, ReceiptRenderer
from .notification_service import NotificationService, Notifier, OutboxNotifier, SmtpNotifier
from .seat_service import SeatService

__all__ = [
    "ContactPolicy",
    "ContactValidator",
    "ReservationEngine",
    "ReceiptArtifact",
    "ReceiptRenderer",
    "NotificationService",
    "Notifier",
    "OutboxNotifier",
    "SmtpNotifier",
    "SeatService",
]
