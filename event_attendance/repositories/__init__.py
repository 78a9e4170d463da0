from .event_repository import EventRepository
from .checkin_repository import CheckinRepository
from .checkout_repository import CheckoutRepository
from .used_qr_token_repository import UsedQrTokenRepository
from .employee_face_repository import EmployeeFaceRepository

__all__ = [
    "EventRepository",
    "CheckinRepository",
    "CheckoutRepository",
    "UsedQrTokenRepository",
    "EmployeeFaceRepository"
]
