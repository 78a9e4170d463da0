"""
Attendance Validator - decides whether a check-in or check-out is valid

Pure computation: every input (event, fence, prior records, stored face
embedding, QR usage count) is fetched by the caller beforehand. Business-rule
failures come back as a ValidationResult with is_valid=False; only malformed
inputs raise.
"""
from datetime import datetime
from typing import Callable, Optional

from atams.logging import get_logger

from event_attendance.core.exceptions import ContractViolationException, EventUnavailableException
from event_attendance.schemas.attendance import (
    Checkin,
    CheckinRequest,
    Checkout,
    CheckoutRequest,
    FacialVerification,
    ManualVerification,
    QrCodeVerification,
    ValidationPolicy,
    ValidationResult,
)
from event_attendance.schemas.common import as_utc, utc_now
from event_attendance.schemas.event import Event
from event_attendance.schemas.geo import GeoFence, GeoPoint
from event_attendance.services.face_service import FaceMatcher

logger = get_logger(__name__)

REASON_OUTSIDE_FENCE = "location is outside event fence"
REASON_FACE_MISMATCH = "facial similarity below threshold"
REASON_NO_REFERENCE_FACE = "employee has no registered face embedding"
REASON_FACE_DIMENSION = "registered face embedding has a different dimension"
REASON_QR_WRONG_EVENT = "QR token was issued for another event"
REASON_QR_NOT_YET_VALID = "QR token issued in the future"
REASON_QR_EXPIRED = "QR token has expired"
REASON_QR_USED = "QR token has already been used"
REASON_OPEN_SESSION = "employee already has an open check-in for this event"
REASON_NO_OPEN_CHECKIN = "no matching open check-in for this checkout"
REASON_DUPLICATE_CHECKOUT = "checkout already exists for this check-in"
REASON_NEGATIVE_DURATION = "checkout time precedes check-in time"


class AttendanceValidator:
    def __init__(self, policy: Optional[ValidationPolicy] = None) -> None:
        self.policy = policy or ValidationPolicy()
        self.face_matcher = FaceMatcher(self.policy)

    def validate_checkin(
        self,
        event: Event,
        fence: Optional[GeoFence],
        request: CheckinRequest,
        *,
        open_checkin: Optional[Checkin] = None,
        now: Optional[datetime] = None
    ) -> ValidationResult:
        """
        Validate a check-in attempt

        Steps run in order and stop at the first failure: event window,
        fence, method verification, open-session uniqueness.

        Args:
            event: Event the employee is checking in to
            fence: Fence to test against (defaults to the event's own fence)
            request: Check-in request
            open_checkin: The employee's latest check-in for the event that
                has no checkout yet, if any
            now: Time of the attempt (defaults to current UTC time)

        Raises:
            ContractViolationException: If event or request is missing or
                they do not refer to each other
        """
        now = self._resolve_now(now)
        self._check_contract(event, request)

        result = ValidationResult(timestamp=now)
        result.add_detail("validation_type", "checkin")
        result.add_detail("method", request.method.value)

        if not self._check_window(result, event, event.ensure_can_check_in, now):
            return self._rejected(result, request)
        if not self._check_fence(result, fence if fence is not None else event.fence, request.location):
            return self._rejected(result, request)
        if not self._verify_method(result, request, now):
            return self._rejected(result, request)

        if (
            open_checkin is not None
            and open_checkin.is_valid
            and open_checkin.employee_id == request.employee_id
            and open_checkin.event_id == request.event_id
        ):
            result.add_detail("open_checkin_id", open_checkin.id)
            result.reject(REASON_OPEN_SESSION)
            return self._rejected(result, request)

        return result

    def validate_checkout(
        self,
        event: Event,
        fence: Optional[GeoFence],
        checkin: Checkin,
        request: CheckoutRequest,
        *,
        existing_checkout: Optional[Checkout] = None,
        now: Optional[datetime] = None
    ) -> ValidationResult:
        """
        Validate a check-out attempt against its check-in

        On success the work duration (now - checkin_time) is included.

        Raises:
            ContractViolationException: If event, checkin or request is
                missing or they do not refer to each other
        """
        now = self._resolve_now(now)
        self._check_contract(event, request)
        if checkin is None:
            raise ContractViolationException("checkin is required for checkout validation")

        result = ValidationResult(timestamp=now)
        result.add_detail("validation_type", "checkout")
        result.add_detail("method", request.method.value)
        result.add_detail("checkin_id", request.checkin_id)

        if not self._check_window(result, event, event.ensure_can_check_out, now):
            return self._rejected(result, request)
        if not self._check_fence(result, fence if fence is not None else event.fence, request.location):
            return self._rejected(result, request)
        if not self._verify_method(result, request, now):
            return self._rejected(result, request)

        if (
            checkin.id != request.checkin_id
            or checkin.employee_id != request.employee_id
            or checkin.event_id != request.event_id
            or not checkin.is_valid
        ):
            result.reject(REASON_NO_OPEN_CHECKIN)
            return self._rejected(result, request)
        if existing_checkout is not None:
            result.add_detail("existing_checkout_id", existing_checkout.id)
            result.reject(REASON_DUPLICATE_CHECKOUT)
            return self._rejected(result, request)

        work_duration = now - checkin.checkin_time
        if work_duration.total_seconds() < 0:
            result.reject(REASON_NEGATIVE_DURATION)
            return self._rejected(result, request)
        result.set_work_duration(work_duration)

        return result

    # ==================== STEPS ====================

    @staticmethod
    def _resolve_now(now: Optional[datetime]) -> datetime:
        return as_utc(now) if now is not None else utc_now()

    @staticmethod
    def _check_contract(event: Optional[Event], request: Optional[CheckinRequest]) -> None:
        if event is None:
            raise ContractViolationException("event is required for validation")
        if request is None:
            raise ContractViolationException("request is required for validation")
        if request.event_id != event.id:
            raise ContractViolationException(
                "request does not refer to the supplied event",
                {"request_event_id": request.event_id, "event_id": event.id}
            )
        if not event.belongs_to_tenant(request.tenant_id):
            raise ContractViolationException(
                "event belongs to another tenant",
                {"tenant_id": request.tenant_id}
            )

    @staticmethod
    def _check_window(
        result: ValidationResult,
        event: Event,
        ensure: Callable[[datetime], None],
        now: datetime
    ) -> bool:
        result.add_detail("event_state", event.state(now).value)
        result.add_detail("event_status", event.status.value)
        try:
            ensure(now)
        except EventUnavailableException as exc:
            result.reject(exc.message)
            return False
        return True

    @staticmethod
    def _check_fence(result: ValidationResult, fence: GeoFence, location: Optional[GeoPoint]) -> bool:
        if location is None:
            result.add_detail("location_check", "skipped")
            return True

        result.add_detail("location_check", "performed")
        result.add_detail("fence_defined", fence.is_defined)

        centroid = fence.centroid()
        if centroid is not None:
            result.set_distance(location.distance_to(centroid))

        within_bounds = fence.contains(location)
        result.set_within_bounds(within_bounds)
        if not within_bounds:
            result.reject(REASON_OUTSIDE_FENCE)
            return False
        return True

    def _verify_method(self, result: ValidationResult, request: CheckinRequest, now: datetime) -> bool:
        verification = request.verification

        if isinstance(verification, FacialVerification):
            return self._verify_face(result, verification)
        if isinstance(verification, QrCodeVerification):
            return self._verify_qr_token(result, verification, request.event_id, now)
        if isinstance(verification, ManualVerification):
            result.add_detail("manual_override", True)
            if verification.reason:
                result.add_detail("manual_reason", verification.reason)
            return True

        raise ContractViolationException(f"unsupported verification method: {request.method}")

    def _verify_face(self, result: ValidationResult, verification: FacialVerification) -> bool:
        if not verification.reference_embedding:
            result.reject(REASON_NO_REFERENCE_FACE)
            return False

        self.face_matcher.ensure_probe_dimension(verification.face_embedding)
        if len(verification.reference_embedding) != len(verification.face_embedding):
            result.add_detail("reference_dimension", len(verification.reference_embedding))
            result.reject(REASON_FACE_DIMENSION)
            return False

        match = self.face_matcher.compare(
            verification.face_embedding,
            verification.reference_embedding,
            verification.confidence_tier
        )
        result.set_facial_similarity(match.similarity)
        result.add_detail("facial_threshold", match.threshold)
        result.add_detail("confidence_level", match.confidence_level.value)

        if not match.matched:
            result.reject(REASON_FACE_MISMATCH)
            return False
        return True

    def _verify_qr_token(
        self,
        result: ValidationResult,
        verification: QrCodeVerification,
        event_id: str,
        now: datetime
    ) -> bool:
        token = verification.token
        age = now - token.issued_at
        result.add_detail("qr_token_id", token.token_id)
        result.add_detail("qr_token_age_seconds", age.total_seconds())
        result.add_detail("qr_token_usage_count", token.usage_count)

        if token.event_id != event_id:
            result.reject(REASON_QR_WRONG_EVENT)
            return False
        if -age > self.policy.qr_clock_skew:
            result.reject(REASON_QR_NOT_YET_VALID)
            return False
        if age > self.policy.qr_token_validity:
            result.reject(REASON_QR_EXPIRED)
            return False
        if token.usage_count >= token.max_usage:
            result.reject(REASON_QR_USED)
            return False
        return True

    @staticmethod
    def _rejected(result: ValidationResult, request: CheckinRequest) -> ValidationResult:
        logger.info(
            f"Attendance rejected: {result.reason}",
            extra={"extra_data": {
                "event_id": request.event_id,
                "employee_id": request.employee_id,
                "method": request.method.value,
                "validation_type": result.details.get("validation_type"),
            }}
        )
        return result
