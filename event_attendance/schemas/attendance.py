"""
Attendance Schemas for check-ins, check-outs, verification and validation results
"""
from datetime import datetime, timedelta
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from event_attendance.schemas.common import as_utc, fix_datetime_timezone, utc_now
from event_attendance.schemas.geo import GeoPoint

MAX_NOTES_LENGTH = 1000


class CheckinMethod(str, Enum):
    FACIAL_RECOGNITION = "facial_recognition"
    QR_CODE = "qr_code"
    MANUAL = "manual"


class ConfidenceTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CheckinStatus(str, Enum):
    PENDING = "pending"
    VALID = "valid"
    INVALID = "invalid"


# ==================== VERIFICATION ====================

class QrToken(BaseModel):
    """Decoded QR token together with its observed usage count"""
    model_config = ConfigDict(frozen=True)

    token_id: str
    event_id: str
    issued_at: datetime
    usage_count: int = Field(default=0, ge=0)
    max_usage: int = Field(default=1, ge=1)

    @field_validator('issued_at', mode='after')
    @classmethod
    def ensure_aware(cls, v):
        return as_utc(v)


class FacialVerification(BaseModel):
    method: Literal["facial_recognition"] = "facial_recognition"
    face_embedding: List[float] = Field(min_length=1)
    reference_embedding: Optional[List[float]] = None
    confidence_tier: Optional[ConfidenceTier] = None


class QrCodeVerification(BaseModel):
    method: Literal["qr_code"] = "qr_code"
    token: QrToken


class ManualVerification(BaseModel):
    method: Literal["manual"] = "manual"
    reason: Optional[str] = None


Verification = Annotated[
    Union[FacialVerification, QrCodeVerification, ManualVerification],
    Field(discriminator="method"),
]


# ==================== ENGINE INPUTS ====================

class ValidationPolicy(BaseModel):
    """Thresholds and windows the validator applies"""
    model_config = ConfigDict(frozen=True)

    facial_similarity_threshold: float = Field(default=0.80, gt=0, le=1)
    confidence_thresholds: Dict[ConfidenceTier, float] = Field(default_factory=lambda: {
        ConfidenceTier.LOW: 0.80,
        ConfidenceTier.MEDIUM: 0.85,
        ConfidenceTier.HIGH: 0.95,
    })
    face_embedding_dimension: Optional[int] = None
    qr_token_validity: timedelta = timedelta(seconds=60)
    qr_clock_skew: timedelta = timedelta(seconds=5)

    @classmethod
    def from_settings(cls, settings) -> "ValidationPolicy":
        return cls(
            facial_similarity_threshold=settings.FACIAL_SIMILARITY_THRESHOLD,
            face_embedding_dimension=settings.FACE_EMBEDDING_DIMENSION,
            qr_token_validity=timedelta(seconds=settings.QR_TOKEN_VALIDITY_SECONDS),
            qr_clock_skew=timedelta(seconds=settings.QR_CLOCK_SKEW_SECONDS),
        )

    def threshold_for(self, tier: Optional[ConfidenceTier]) -> float:
        if tier is None:
            return self.facial_similarity_threshold
        return self.confidence_thresholds.get(tier, self.facial_similarity_threshold)


class CheckinRequest(BaseModel):
    tenant_id: str
    event_id: str
    employee_id: str
    partner_id: str
    verification: Verification
    location: Optional[GeoPoint] = None
    photo_url: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=MAX_NOTES_LENGTH)
    created_by: Optional[str] = None

    @property
    def method(self) -> CheckinMethod:
        return CheckinMethod(self.verification.method)


class CheckoutRequest(CheckinRequest):
    checkin_id: str


# ==================== RECORDS ====================

class AttendanceRecordBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    event_id: str
    employee_id: str
    partner_id: str
    method: CheckinMethod
    location: Optional[GeoPoint] = None
    photo_url: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=MAX_NOTES_LENGTH)
    is_valid: bool = False
    validation_details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    created_by: Optional[str] = None
    updated_by: Optional[str] = None

    @field_validator('validation_details', mode='before')
    @classmethod
    def empty_details(cls, v):
        return {} if v is None else v

    @property
    def status(self) -> CheckinStatus:
        if self.is_valid:
            return CheckinStatus.VALID
        if self.validation_details:
            return CheckinStatus.INVALID
        return CheckinStatus.PENDING

    def get_validation_detail(self, key: str, default: Any = None) -> Any:
        return self.validation_details.get(key, default)


class Checkin(AttendanceRecordBase):
    checkin_time: datetime

    @field_validator('checkin_time', 'created_at', 'updated_at', mode='before')
    @classmethod
    def fix_timezone(cls, v):
        return fix_datetime_timezone(v)

    @field_validator('checkin_time', 'created_at', 'updated_at', mode='after')
    @classmethod
    def ensure_aware(cls, v):
        return as_utc(v)


class Checkout(AttendanceRecordBase):
    checkin_id: str
    checkout_time: datetime
    work_duration: timedelta = timedelta(0)

    @field_validator('work_duration', mode='before')
    @classmethod
    def zero_duration(cls, v):
        return timedelta(0) if v is None else v

    @field_validator('checkout_time', 'created_at', 'updated_at', mode='before')
    @classmethod
    def fix_timezone(cls, v):
        return fix_datetime_timezone(v)

    @field_validator('checkout_time', 'created_at', 'updated_at', mode='after')
    @classmethod
    def ensure_aware(cls, v):
        return as_utc(v)

    @property
    def work_duration_minutes(self) -> float:
        return self.work_duration.total_seconds() / 60


# ==================== VALIDATION RESULT ====================

class ValidationResult(BaseModel):
    """
    Outcome of a check-in or check-out validation

    Rejections are ordinary results with is_valid=False. The typed fields
    are mirrored into `details`, which is what gets persisted.
    """
    is_valid: bool = True
    reason: str = ""
    details: Dict[str, Any] = Field(default_factory=dict)
    distance_from_event: Optional[float] = None
    facial_similarity: Optional[float] = None
    within_bounds: Optional[bool] = None
    work_duration: Optional[timedelta] = None
    timestamp: datetime = Field(default_factory=utc_now)

    def reject(self, reason: str) -> "ValidationResult":
        self.is_valid = False
        self.reason = reason
        return self

    def set_distance(self, distance: float) -> "ValidationResult":
        self.distance_from_event = distance
        self.details["distance_from_event"] = distance
        return self

    def set_facial_similarity(self, similarity: float) -> "ValidationResult":
        self.facial_similarity = similarity
        self.details["facial_similarity"] = similarity
        return self

    def set_within_bounds(self, within_bounds: bool) -> "ValidationResult":
        self.within_bounds = within_bounds
        self.details["within_event_bounds"] = within_bounds
        return self

    def set_work_duration(self, duration: timedelta) -> "ValidationResult":
        self.work_duration = duration
        self.details["work_duration_hours"] = duration.total_seconds() / 3600
        self.details["work_duration_minutes"] = duration.total_seconds() / 60
        return self

    def clear_work_duration(self) -> "ValidationResult":
        self.work_duration = None
        self.details.pop("work_duration_hours", None)
        self.details.pop("work_duration_minutes", None)
        return self

    def add_detail(self, key: str, value: Any) -> "ValidationResult":
        self.details[key] = value
        return self

    def to_details(self) -> Dict[str, Any]:
        """JSON-safe form stored as the record's validation_details"""
        return self.model_dump(mode="json", exclude_none=True)


# Request/Response schemas for API endpoints
class CheckinCreate(BaseModel):
    """Request schema for the check-in endpoint"""
    tenant_id: str
    event_id: str
    employee_id: str
    partner_id: str
    method: CheckinMethod
    location: Optional[GeoPoint] = None
    photo_url: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=MAX_NOTES_LENGTH)
    face_embedding: Optional[List[float]] = None
    confidence_tier: Optional[ConfidenceTier] = None
    qr_code_data: Optional[str] = None


class CheckoutCreate(CheckinCreate):
    """Request schema for the check-out endpoint"""
    checkin_id: str


class CheckinResponse(BaseModel):
    checkin: Checkin
    validation: ValidationResult


class CheckoutResponse(BaseModel):
    checkout: Checkout
    validation: ValidationResult


class NoteCreate(BaseModel):
    """Request schema for appending a note to a check-in or checkout"""
    note: str = Field(min_length=1, max_length=MAX_NOTES_LENGTH)
