from .geo import GeoPoint, GeoFence, haversine_distance
from .event import (
    Event,
    EventCreate,
    EventUpdate,
    EventQrToken,
    EventStatus,
    EventWindow,
    EventWindowState
)
from .attendance import (
    CheckinMethod,
    ConfidenceTier,
    QrToken,
    FacialVerification,
    QrCodeVerification,
    ManualVerification,
    ValidationPolicy,
    CheckinRequest,
    CheckoutRequest,
    Checkin,
    Checkout,
    ValidationResult,
    CheckinCreate,
    CheckoutCreate,
    CheckinResponse,
    CheckoutResponse,
    NoteCreate
)
from .work_session import WorkSession, WorkSessionSummary
from .stats import CheckinStats, CheckoutStats, EventStats
from .maintenance import CleanupResult
from .common import DataResponse, PaginationResponse

__all__ = [
    # Geo schemas
    "GeoPoint",
    "GeoFence",
    "haversine_distance",
    # Event schemas
    "Event",
    "EventCreate",
    "EventUpdate",
    "EventQrToken",
    "EventStatus",
    "EventWindow",
    "EventWindowState",
    # Attendance schemas
    "CheckinMethod",
    "ConfidenceTier",
    "QrToken",
    "FacialVerification",
    "QrCodeVerification",
    "ManualVerification",
    "ValidationPolicy",
    "CheckinRequest",
    "CheckoutRequest",
    "Checkin",
    "Checkout",
    "ValidationResult",
    "CheckinCreate",
    "CheckoutCreate",
    "CheckinResponse",
    "CheckoutResponse",
    "NoteCreate",
    # Work session schemas
    "WorkSession",
    "WorkSessionSummary",
    # Stats schemas
    "CheckinStats",
    "CheckoutStats",
    "EventStats",
    # Maintenance schemas
    "CleanupResult",
    # Common schemas
    "DataResponse",
    "PaginationResponse"
]
