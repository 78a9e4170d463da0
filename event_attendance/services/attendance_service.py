"""
Attendance Service - Main business logic for attendance operations

Fetches everything the validator needs, runs it, and persists every attempt
(valid or rejected) together with its validation details.
"""
import uuid
from typing import List, Optional, Tuple
from datetime import datetime
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from event_attendance.repositories.event_repository import EventRepository
from event_attendance.repositories.checkin_repository import CheckinRepository
from event_attendance.repositories.checkout_repository import CheckoutRepository
from event_attendance.repositories.used_qr_token_repository import UsedQrTokenRepository
from event_attendance.repositories.employee_face_repository import EmployeeFaceRepository
from event_attendance.services.jwt_service import JwtService
from event_attendance.services.attendance_validator import AttendanceValidator, REASON_QR_USED
from event_attendance.services.work_session_service import WorkSessionDeriver
from event_attendance.schemas.attendance import (
    MAX_NOTES_LENGTH,
    Checkin,
    CheckinCreate,
    CheckinMethod,
    CheckinRequest,
    CheckinResponse,
    Checkout,
    CheckoutCreate,
    CheckoutRequest,
    CheckoutResponse,
    FacialVerification,
    ManualVerification,
    QrCodeVerification,
    QrToken,
    ValidationPolicy,
    ValidationResult,
    Verification,
)
from event_attendance.schemas.common import as_utc, utc_now
from event_attendance.schemas.event import Event, EventStatus
from event_attendance.schemas.stats import CheckinStats, CheckoutStats, EventStats, StatsPeriods
from event_attendance.schemas.work_session import WorkSession, WorkSessionSummary
from event_attendance.core.config import settings
from atams.exceptions import (
    NotFoundException,
    BadRequestException,
    ConflictException
)
from atams.logging import get_logger

logger = get_logger(__name__)


class AttendanceService:
    def __init__(
        self,
        validator: Optional[AttendanceValidator] = None,
        deriver: Optional[WorkSessionDeriver] = None,
        jwt_service: Optional[JwtService] = None
    ) -> None:
        self.event_repo = EventRepository()
        self.checkin_repo = CheckinRepository()
        self.checkout_repo = CheckoutRepository()
        self.qr_token_repo = UsedQrTokenRepository()
        self.face_repo = EmployeeFaceRepository()
        self.jwt_service = jwt_service or JwtService()
        self.validator = validator or AttendanceValidator(ValidationPolicy.from_settings(settings))
        self.deriver = deriver or WorkSessionDeriver.from_settings(settings)

    def perform_checkin(
        self,
        db: Session,
        payload: CheckinCreate,
        created_by: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> CheckinResponse:
        """
        Validate and record a check-in attempt

        Rejected attempts are stored with is_valid=False and returned with
        the reason; they are not errors.

        Raises:
            NotFoundException: If event not found
            BadRequestException: If the method's verification data is missing or the QR token is invalid
            ConflictException: If a concurrent request opened a session first
        """
        now = as_utc(now) if now is not None else utc_now()
        event = self._get_event(db, payload.event_id)
        verification, qr_token = self._build_verification(db, payload)

        request = CheckinRequest(
            tenant_id=payload.tenant_id,
            event_id=payload.event_id,
            employee_id=payload.employee_id,
            partner_id=payload.partner_id,
            verification=verification,
            location=payload.location,
            photo_url=payload.photo_url,
            notes=payload.notes,
            created_by=created_by
        )

        open_checkin = self.checkin_repo.get_open_checkin(db, event.id, payload.employee_id)
        result = self.validator.validate_checkin(
            event,
            None,
            request,
            open_checkin=Checkin.model_validate(open_checkin) if open_checkin else None,
            now=now
        )

        if result.is_valid and qr_token is not None:
            self._consume_qr_token(db, qr_token, payload.employee_id, result)

        try:
            obj = self.checkin_repo.add_checkin(db, {
                "id": str(uuid.uuid4()),
                "tenant_id": request.tenant_id,
                "event_id": request.event_id,
                "employee_id": request.employee_id,
                "partner_id": request.partner_id,
                "method": request.method.value,
                "latitude": request.location.latitude if request.location else None,
                "longitude": request.location.longitude if request.location else None,
                "checkin_time": now,
                "photo_url": request.photo_url,
                "notes": request.notes,
                "is_valid": result.is_valid,
                "is_open": result.is_valid,
                "validation_details": result.to_details(),
                "created_by": created_by,
                "updated_by": created_by
            })
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictException("Employee already has an open check-in for this event")
        db.refresh(obj)

        self._log_recorded("Check-in", obj.id, request, result)
        return CheckinResponse(checkin=Checkin.model_validate(obj), validation=result)

    def perform_checkout(
        self,
        db: Session,
        payload: CheckoutCreate,
        created_by: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> CheckoutResponse:
        """
        Validate and record a check-out attempt against its check-in

        A valid checkout closes the check-in and carries the work duration.

        Raises:
            NotFoundException: If event or check-in not found
            BadRequestException: If the method's verification data is missing or the QR token is invalid
            ConflictException: If a concurrent request already checked out this check-in
        """
        now = as_utc(now) if now is not None else utc_now()
        event = self._get_event(db, payload.event_id)

        checkin_obj = self.checkin_repo.get_by_id(db, payload.checkin_id)
        if not checkin_obj:
            raise NotFoundException("Check-in not found")
        checkin = Checkin.model_validate(checkin_obj)

        verification, qr_token = self._build_verification(db, payload)
        request = CheckoutRequest(
            tenant_id=payload.tenant_id,
            event_id=payload.event_id,
            employee_id=payload.employee_id,
            partner_id=payload.partner_id,
            checkin_id=payload.checkin_id,
            verification=verification,
            location=payload.location,
            photo_url=payload.photo_url,
            notes=payload.notes,
            created_by=created_by
        )

        existing = self.checkout_repo.get_by_checkin_id(db, checkin.id)
        result = self.validator.validate_checkout(
            event,
            None,
            checkin,
            request,
            existing_checkout=Checkout.model_validate(existing) if existing else None,
            now=now
        )

        if result.is_valid and qr_token is not None:
            self._consume_qr_token(db, qr_token, payload.employee_id, result)

        try:
            obj = self.checkout_repo.add_closing(
                db,
                {
                    "id": str(uuid.uuid4()),
                    "tenant_id": request.tenant_id,
                    "event_id": request.event_id,
                    "checkin_id": request.checkin_id,
                    "employee_id": request.employee_id,
                    "partner_id": request.partner_id,
                    "method": request.method.value,
                    "latitude": request.location.latitude if request.location else None,
                    "longitude": request.location.longitude if request.location else None,
                    "checkout_time": now,
                    "work_duration": result.work_duration,
                    "photo_url": request.photo_url,
                    "notes": request.notes,
                    "is_valid": result.is_valid,
                    "validation_details": result.to_details(),
                    "created_by": created_by,
                    "updated_by": created_by
                },
                checkin=checkin_obj if result.is_valid else None
            )
            db.commit()
        except IntegrityError:
            db.rollback()
            raise ConflictException("Check-in has already been checked out")
        db.refresh(obj)

        self._log_recorded("Checkout", obj.id, request, result)
        return CheckoutResponse(checkout=Checkout.model_validate(obj), validation=result)

    def list_checkins(
        self,
        db: Session,
        skip: int = 0,
        limit: int = 100,
        **filters
    ) -> List[Checkin]:
        checkins = self.checkin_repo.get_checkins_with_filters(db, skip=skip, limit=limit, **filters)
        return [Checkin.model_validate(c) for c in checkins]

    def count_checkins(self, db: Session, **filters) -> int:
        return self.checkin_repo.count_checkins_with_filters(db, **filters)

    def get_checkin(self, db: Session, checkin_id: str) -> Checkin:
        checkin = self.checkin_repo.get_by_id(db, checkin_id)
        if not checkin:
            raise NotFoundException("Check-in not found")
        return Checkin.model_validate(checkin)

    def get_recent_checkins(self, db: Session, tenant_id: Optional[str] = None, limit: int = 10) -> List[Checkin]:
        return self.list_checkins(db, skip=0, limit=limit, sort="desc", tenant_id=tenant_id)

    def add_checkin_note(self, db: Session, checkin_id: str, note: str, updated_by: Optional[str] = None) -> Checkin:
        """
        Append a note to a check-in, one line per note

        Raises:
            NotFoundException: If check-in not found
            BadRequestException: If the note is blank or the notes grow past the limit
        """
        checkin = self.checkin_repo.get_by_id(db, checkin_id)
        if not checkin:
            raise NotFoundException("Check-in not found")

        updated = self.checkin_repo.update(db, checkin, {
            "notes": self._append_note(checkin.notes, note),
            "updated_by": updated_by
        })
        logger.info("Note added to check-in", extra={"extra_data": {"checkin_id": checkin_id}})
        return Checkin.model_validate(updated)

    def get_checkin_stats(
        self,
        db: Session,
        tenant_id: Optional[str] = None,
        event_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> CheckinStats:
        periods = StatsPeriods.starting(as_utc(now) if now is not None else utc_now())
        row = self.checkin_repo.get_checkin_stats(db, periods, tenant_id=tenant_id, event_id=event_id)
        return CheckinStats(**row)

    # ==================== CHECKOUTS ====================

    def get_checkout(self, db: Session, checkout_id: str) -> Checkout:
        checkout = self.checkout_repo.get_by_id(db, checkout_id)
        if not checkout:
            raise NotFoundException("Checkout not found")
        return Checkout.model_validate(checkout)

    def list_checkouts(
        self,
        db: Session,
        skip: int = 0,
        limit: int = 100,
        **filters
    ) -> List[Checkout]:
        checkouts = self.checkout_repo.get_checkouts_with_filters(db, skip=skip, limit=limit, **filters)
        return [Checkout.model_validate(c) for c in checkouts]

    def count_checkouts(self, db: Session, **filters) -> int:
        return self.checkout_repo.count_checkouts_with_filters(db, **filters)

    def get_recent_checkouts(self, db: Session, tenant_id: Optional[str] = None, limit: int = 10) -> List[Checkout]:
        return self.list_checkouts(db, skip=0, limit=limit, sort="desc", tenant_id=tenant_id)

    def add_checkout_note(self, db: Session, checkout_id: str, note: str, updated_by: Optional[str] = None) -> Checkout:
        checkout = self.checkout_repo.get_by_id(db, checkout_id)
        if not checkout:
            raise NotFoundException("Checkout not found")

        updated = self.checkout_repo.update(db, checkout, {
            "notes": self._append_note(checkout.notes, note),
            "updated_by": updated_by
        })
        logger.info("Note added to checkout", extra={"extra_data": {"checkout_id": checkout_id}})
        return Checkout.model_validate(updated)

    def get_checkout_stats(
        self,
        db: Session,
        tenant_id: Optional[str] = None,
        event_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> CheckoutStats:
        periods = StatsPeriods.starting(as_utc(now) if now is not None else utc_now())
        row = self.checkout_repo.get_checkout_stats(db, periods, tenant_id=tenant_id, event_id=event_id)
        return CheckoutStats(**row)

    def get_event_stats(self, db: Session, event_id: str, now: Optional[datetime] = None) -> EventStats:
        """
        Check-in, checkout and work session figures for one event

        Raises:
            NotFoundException: If event not found
        """
        self._get_event(db, event_id)
        return EventStats(
            event_id=event_id,
            checkins=self.get_checkin_stats(db, event_id=event_id, now=now),
            checkouts=self.get_checkout_stats(db, event_id=event_id, now=now),
            work_sessions=self.get_work_session_summary(db, event_id=event_id)
        )

    # ==================== WORK SESSIONS ====================

    def get_work_sessions(
        self,
        db: Session,
        skip: int = 0,
        limit: Optional[int] = 100,
        **filters
    ) -> List[WorkSession]:
        """
        Derive work sessions from valid check-ins and their valid checkouts

        Sessions are never stored; they are paired on every read.
        """
        filters.setdefault("is_valid", True)
        checkins = self.checkin_repo.get_checkins_with_filters(db, skip=skip, limit=limit, **filters)
        checkouts = self.checkout_repo.get_for_checkins(db, [c.id for c in checkins])

        return self.deriver.derive_many(
            [Checkin.model_validate(c) for c in checkins],
            [Checkout.model_validate(c) for c in checkouts]
        )

    def count_work_sessions(self, db: Session, **filters) -> int:
        filters.setdefault("is_valid", True)
        return self.checkin_repo.count_checkins_with_filters(db, **filters)

    def get_work_session_summary(self, db: Session, **filters) -> WorkSessionSummary:
        sessions = self.get_work_sessions(db, skip=0, limit=None, **filters)
        return self.deriver.summarize(sessions)

    # ==================== HELPERS ====================

    def _get_event(self, db: Session, event_id: str) -> Event:
        event = self.event_repo.get_by_id(db, event_id)
        if not event or event.status == EventStatus.DELETED.value:
            raise NotFoundException("Event not found")
        return Event.model_validate(event)

    def _build_verification(
        self,
        db: Session,
        payload: CheckinCreate
    ) -> Tuple[Verification, Optional[QrToken]]:
        """
        Turn the request's method fields into a verification variant

        Returns the verification and, for QR scans, the decoded token so it
        can be consumed once the attempt is accepted.
        """
        if payload.method == CheckinMethod.FACIAL_RECOGNITION:
            if not payload.face_embedding:
                raise BadRequestException("face_embedding is required for facial recognition")
            reference = self.face_repo.get_embedding(db, payload.tenant_id, payload.employee_id)
            return FacialVerification(
                face_embedding=payload.face_embedding,
                reference_embedding=reference,
                confidence_tier=payload.confidence_tier
            ), None

        if payload.method == CheckinMethod.QR_CODE:
            if not payload.qr_code_data:
                raise BadRequestException("qr_code_data is required for QR code check-in")
            token = self.jwt_service.decode_qr_token(payload.qr_code_data)
            usage_count = self.qr_token_repo.count_usage(db, token.token_id)
            token = token.model_copy(update={"usage_count": usage_count})
            return QrCodeVerification(token=token), token

        return ManualVerification(reason=payload.notes), None

    def _consume_qr_token(self, db: Session, token: QrToken, employee_id: str, result: ValidationResult) -> None:
        """
        Record the token use in the pending transaction

        Losing the race to a concurrent scan of the same token turns the
        attempt into a rejection, which is still recorded.
        """
        if self.qr_token_repo.mark_token_as_used(
            db,
            token.token_id,
            token.event_id,
            employee_id,
            usage_no=token.usage_count + 1
        ):
            return

        logger.warning(
            "QR token replay detected",
            extra={"extra_data": {"token_id": token.token_id, "employee_id": employee_id}}
        )
        result.add_detail("qr_replay_detected", True)
        result.clear_work_duration()
        result.reject(REASON_QR_USED)

    @staticmethod
    def _append_note(existing: Optional[str], note: str) -> str:
        note = (note or "").strip()
        if not note:
            raise BadRequestException("Note cannot be empty")

        notes = f"{existing}\n{note}" if existing else note
        if len(notes) > MAX_NOTES_LENGTH:
            raise BadRequestException(f"Notes must be at most {MAX_NOTES_LENGTH} characters")
        return notes

    @staticmethod
    def _log_recorded(kind: str, record_id: str, request: CheckinRequest, result: ValidationResult) -> None:
        logger.info(
            f"{kind} recorded ({'valid' if result.is_valid else 'rejected'})",
            extra={"extra_data": {
                "id": record_id,
                "event_id": request.event_id,
                "employee_id": request.employee_id,
                "method": request.method.value,
                "reason": result.reason or None,
            }}
        )
