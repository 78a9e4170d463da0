from .event import Event
from .checkin import Checkin
from .checkout import Checkout
from .used_qr_token import UsedQrToken
from .employee_face import EmployeeFace

__all__ = [
    "Event",
    "Checkin",
    "Checkout",
    "UsedQrToken",
    "EmployeeFace"
]
