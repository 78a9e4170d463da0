from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from atams.exceptions import BadRequestException, ConflictException, NotFoundException
from event_attendance.schemas.attendance import CheckinCreate, CheckinMethod, CheckoutCreate
from event_attendance.schemas.geo import GeoPoint
from event_attendance.services.attendance_service import AttendanceService
from event_attendance.services.attendance_validator import REASON_OUTSIDE_FENCE, REASON_QR_USED
from event_attendance.services.jwt_service import JwtService

from .conftest import EMPLOYEE_ID, EVENT_ID, PARTNER_ID, TENANT_ID

FACE = [1.0] + [0.0] * 511


def event_row(t0, **overrides):
    data = dict(
        id=EVENT_ID,
        tenant_id=TENANT_ID,
        name="Harbour Cleanup",
        location="North Pier",
        fence=[[10, 10], [10, 11], [11, 11], [11, 10]],
        initial_date=t0,
        final_date=t0 + timedelta(hours=8),
        status="active",
        created_at=t0 - timedelta(days=1),
        updated_at=t0 - timedelta(days=1),
        created_by=None,
        updated_by=None,
    )
    data.update(overrides)
    return SimpleNamespace(**data)


def record_row(data, now):
    """Stand-in for the ORM row a repository returns"""
    row = dict(data)
    latitude, longitude = row.get("latitude"), row.get("longitude")
    row["location"] = None if latitude is None else {"latitude": latitude, "longitude": longitude}
    row.setdefault("created_at", now)
    row.setdefault("updated_at", now)
    return SimpleNamespace(**row)


@pytest.fixture
def now(t0):
    return t0 + timedelta(hours=1)


@pytest.fixture
def service(t0, now):
    svc = AttendanceService(jwt_service=JwtService(secret="service-test-secret-with-enough-length"))
    svc.event_repo = MagicMock()
    svc.checkin_repo = MagicMock()
    svc.checkout_repo = MagicMock()
    svc.qr_token_repo = MagicMock()
    svc.face_repo = MagicMock()

    svc.event_repo.get_by_id.return_value = event_row(t0)
    svc.checkin_repo.get_open_checkin.return_value = None
    svc.checkin_repo.add_checkin.side_effect = lambda db, data: record_row(data, now)
    svc.checkout_repo.get_by_checkin_id.return_value = None
    svc.checkout_repo.add_closing.side_effect = lambda db, data, checkin=None: record_row(data, now)
    svc.qr_token_repo.count_usage.return_value = 0
    svc.qr_token_repo.mark_token_as_used.return_value = True
    return svc


def checkin_payload(method=CheckinMethod.MANUAL, location=(10.5, 10.5), **overrides):
    data = dict(
        tenant_id=TENANT_ID,
        event_id=EVENT_ID,
        employee_id=EMPLOYEE_ID,
        partner_id=PARTNER_ID,
        method=method,
        location=GeoPoint(latitude=location[0], longitude=location[1]) if location else None,
    )
    data.update(overrides)
    return CheckinCreate(**data)


def test_valid_manual_checkin_is_recorded_open(service, now):
    db = MagicMock()
    response = service.perform_checkin(db, checkin_payload(), created_by="42", now=now)

    db.commit.assert_called_once()

    data = service.checkin_repo.add_checkin.call_args[0][1]
    assert data["is_valid"] is True
    assert data["is_open"] is True
    assert data["method"] == "manual"
    assert data["checkin_time"] == now
    assert data["latitude"] == 10.5
    assert data["created_by"] == "42"
    assert data["validation_details"]["is_valid"] is True

    assert response.validation.is_valid
    assert response.checkin.is_valid
    assert response.checkin.location == GeoPoint(latitude=10.5, longitude=10.5)


def test_rejected_checkin_is_still_recorded(service, now):
    response = service.perform_checkin(MagicMock(), checkin_payload(location=(20, 20)), now=now)

    data = service.checkin_repo.add_checkin.call_args[0][1]
    assert data["is_valid"] is False
    assert data["is_open"] is False
    assert data["validation_details"]["reason"] == REASON_OUTSIDE_FENCE
    assert response.validation.reason == REASON_OUTSIDE_FENCE


def test_checkin_unknown_event(service, now):
    service.event_repo.get_by_id.return_value = None
    with pytest.raises(NotFoundException):
        service.perform_checkin(MagicMock(), checkin_payload(), now=now)


def test_checkin_deleted_event_is_not_found(service, t0, now):
    service.event_repo.get_by_id.return_value = event_row(t0, status="deleted")
    with pytest.raises(NotFoundException):
        service.perform_checkin(MagicMock(), checkin_payload(), now=now)


def test_open_session_rejects_second_checkin(service, now):
    service.checkin_repo.get_open_checkin.return_value = record_row({
        "id": "checkin-0",
        "tenant_id": TENANT_ID,
        "event_id": EVENT_ID,
        "employee_id": EMPLOYEE_ID,
        "partner_id": PARTNER_ID,
        "method": "manual",
        "checkin_time": now - timedelta(minutes=30),
        "is_valid": True,
        "validation_details": {},
    }, now)

    response = service.perform_checkin(MagicMock(), checkin_payload(), now=now)
    assert not response.validation.is_valid
    assert response.validation.details["open_checkin_id"] == "checkin-0"


def test_concurrent_open_session_surfaces_as_conflict(service, now):
    service.checkin_repo.add_checkin.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))
    db = MagicMock()
    with pytest.raises(ConflictException):
        service.perform_checkin(db, checkin_payload(), now=now)
    db.rollback.assert_called_once()
    db.commit.assert_not_called()


def test_facial_checkin_uses_registered_embedding(service, now):
    service.face_repo.get_embedding.return_value = FACE
    response = service.perform_checkin(
        MagicMock(),
        checkin_payload(CheckinMethod.FACIAL_RECOGNITION, face_embedding=FACE),
        now=now
    )

    service.face_repo.get_embedding.assert_called_once()
    assert response.validation.is_valid
    assert response.validation.facial_similarity == pytest.approx(1.0)


def test_facial_checkin_requires_embedding(service, now):
    with pytest.raises(BadRequestException):
        service.perform_checkin(MagicMock(), checkin_payload(CheckinMethod.FACIAL_RECOGNITION), now=now)


def test_qr_checkin_consumes_token(service, now):
    issued = service.jwt_service.generate_qr_token(EVENT_ID, now=now - timedelta(seconds=10))
    response = service.perform_checkin(
        MagicMock(), checkin_payload(CheckinMethod.QR_CODE, qr_code_data=issued["token"]), now=now
    )

    assert response.validation.is_valid
    args, kwargs = service.qr_token_repo.mark_token_as_used.call_args
    assert args[1] == issued["token_id"]
    assert kwargs["usage_no"] == 1


def test_used_qr_token_is_rejected_without_consuming(service, now):
    service.qr_token_repo.count_usage.return_value = 1
    issued = service.jwt_service.generate_qr_token(EVENT_ID, now=now - timedelta(seconds=10))
    response = service.perform_checkin(
        MagicMock(), checkin_payload(CheckinMethod.QR_CODE, qr_code_data=issued["token"]), now=now
    )

    assert response.validation.reason == REASON_QR_USED
    service.qr_token_repo.mark_token_as_used.assert_not_called()
    assert service.checkin_repo.add_checkin.call_args[0][1]["is_valid"] is False


def test_qr_replay_race_is_recorded_as_rejection(service, now):
    service.qr_token_repo.mark_token_as_used.return_value = False
    issued = service.jwt_service.generate_qr_token(EVENT_ID, now=now - timedelta(seconds=10))
    db = MagicMock()

    response = service.perform_checkin(
        db, checkin_payload(CheckinMethod.QR_CODE, qr_code_data=issued["token"]), now=now
    )

    data = service.checkin_repo.add_checkin.call_args[0][1]
    assert data["is_valid"] is False
    assert data["is_open"] is False
    assert data["validation_details"]["reason"] == REASON_QR_USED
    assert data["validation_details"]["details"]["qr_replay_detected"] is True
    assert response.validation.reason == REASON_QR_USED
    db.commit.assert_called_once()


def test_open_session_race_does_not_burn_qr_token(service, now):
    service.checkin_repo.add_checkin.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))
    issued = service.jwt_service.generate_qr_token(EVENT_ID, now=now - timedelta(seconds=10))
    db = MagicMock()

    with pytest.raises(ConflictException):
        service.perform_checkin(
            db, checkin_payload(CheckinMethod.QR_CODE, qr_code_data=issued["token"]), now=now
        )

    # the token use was only staged; the rollback discards it with the check-in
    service.qr_token_repo.mark_token_as_used.assert_called_once()
    db.rollback.assert_called_once()
    db.commit.assert_not_called()


def test_qr_checkin_requires_token(service, now):
    with pytest.raises(BadRequestException):
        service.perform_checkin(MagicMock(), checkin_payload(CheckinMethod.QR_CODE), now=now)


# ==================== CHECKOUT ====================

def checkin_row(t0, now, **overrides):
    data = {
        "id": "checkin-1",
        "tenant_id": TENANT_ID,
        "event_id": EVENT_ID,
        "employee_id": EMPLOYEE_ID,
        "partner_id": PARTNER_ID,
        "method": "manual",
        "latitude": 10.5,
        "longitude": 10.5,
        "checkin_time": t0 + timedelta(hours=1),
        "is_valid": True,
        "is_open": True,
        "validation_details": {"is_valid": True},
    }
    data.update(overrides)
    return record_row(data, now)


def checkout_payload(**overrides):
    data = dict(
        tenant_id=TENANT_ID,
        event_id=EVENT_ID,
        employee_id=EMPLOYEE_ID,
        partner_id=PARTNER_ID,
        checkin_id="checkin-1",
        method=CheckinMethod.MANUAL,
        location=GeoPoint(latitude=10.5, longitude=10.5),
    )
    data.update(overrides)
    return CheckoutCreate(**data)


def test_valid_checkout_closes_checkin(service, t0):
    now = t0 + timedelta(hours=5)
    stored_checkin = checkin_row(t0, now)
    service.checkin_repo.get_by_id.return_value = stored_checkin

    response = service.perform_checkout(MagicMock(), checkout_payload(), now=now)

    args, kwargs = service.checkout_repo.add_closing.call_args
    assert kwargs["checkin"] is stored_checkin
    assert args[1]["work_duration"] == timedelta(hours=4)
    assert args[1]["is_valid"] is True
    assert response.checkout.work_duration == timedelta(hours=4)
    assert response.validation.is_valid


def test_duplicate_checkout_is_recorded_as_rejection(service, t0):
    now = t0 + timedelta(hours=5)
    service.checkin_repo.get_by_id.return_value = checkin_row(t0, now, is_open=False)
    service.checkout_repo.get_by_checkin_id.return_value = record_row({
        "id": "checkout-1",
        "tenant_id": TENANT_ID,
        "event_id": EVENT_ID,
        "checkin_id": "checkin-1",
        "employee_id": EMPLOYEE_ID,
        "partner_id": PARTNER_ID,
        "method": "manual",
        "checkout_time": t0 + timedelta(hours=3),
        "work_duration": timedelta(hours=2),
        "is_valid": True,
        "validation_details": {},
    }, now)

    response = service.perform_checkout(MagicMock(), checkout_payload(), now=now)

    args, kwargs = service.checkout_repo.add_closing.call_args
    assert kwargs["checkin"] is None
    assert args[1]["is_valid"] is False
    assert args[1]["work_duration"] is None
    assert not response.validation.is_valid
    assert response.checkout.work_duration == timedelta(0)


def test_checkout_unknown_checkin(service, t0):
    service.checkin_repo.get_by_id.return_value = None
    with pytest.raises(NotFoundException, match="Check-in not found"):
        service.perform_checkout(MagicMock(), checkout_payload(), now=t0 + timedelta(hours=2))


def test_checkout_replay_race_keeps_checkin_open(service, t0):
    now = t0 + timedelta(hours=3)
    service.checkin_repo.get_by_id.return_value = checkin_row(t0, now)
    service.qr_token_repo.mark_token_as_used.return_value = False
    issued = service.jwt_service.generate_qr_token(EVENT_ID, now=now - timedelta(seconds=5))

    response = service.perform_checkout(
        MagicMock(), checkout_payload(method=CheckinMethod.QR_CODE, qr_code_data=issued["token"]), now=now
    )

    args, kwargs = service.checkout_repo.add_closing.call_args
    assert kwargs["checkin"] is None
    assert args[1]["is_valid"] is False
    assert args[1]["work_duration"] is None
    assert "work_duration_minutes" not in args[1]["validation_details"]["details"]
    assert response.validation.reason == REASON_QR_USED


def test_concurrent_checkout_is_a_conflict(service, t0):
    now = t0 + timedelta(hours=2)
    service.checkin_repo.get_by_id.return_value = checkin_row(t0, now)
    db = MagicMock()
    service.checkout_repo.add_closing.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))

    with pytest.raises(ConflictException):
        service.perform_checkout(db, checkout_payload(), now=now)
    db.rollback.assert_called_once()


# ==================== WORK SESSIONS ====================

def test_work_sessions_pair_valid_checkins_with_checkouts(service, t0):
    now = t0 + timedelta(hours=6)
    first = checkin_row(t0, now, id="checkin-1")
    second = checkin_row(t0, now, id="checkin-2", checkin_time=t0 + timedelta(hours=2))
    service.checkin_repo.get_checkins_with_filters.return_value = [first, second]
    service.checkout_repo.get_for_checkins.return_value = [record_row({
        "id": "checkout-1",
        "tenant_id": TENANT_ID,
        "event_id": EVENT_ID,
        "checkin_id": "checkin-1",
        "employee_id": EMPLOYEE_ID,
        "partner_id": PARTNER_ID,
        "method": "manual",
        "checkout_time": t0 + timedelta(hours=2, minutes=30),
        "work_duration": timedelta(minutes=90),
        "is_valid": True,
        "validation_details": {},
    }, now)]

    sessions = service.get_work_sessions(MagicMock(), event_id=EVENT_ID)

    assert service.checkin_repo.get_checkins_with_filters.call_args.kwargs["is_valid"] is True
    service.checkout_repo.get_for_checkins.assert_called_once()
    assert sessions[0].duration == timedelta(minutes=90)
    assert not sessions[1].is_complete

    summary = service.get_work_session_summary(MagicMock(), event_id=EVENT_ID)
    assert summary.total_sessions == 2
    assert summary.open_sessions == 1


# ==================== READS, NOTES AND STATS ====================

def test_get_checkin_not_found(service):
    service.checkin_repo.get_by_id.return_value = None
    with pytest.raises(NotFoundException, match="Check-in not found"):
        service.get_checkin(MagicMock(), "missing")


def test_get_checkout_returns_record(service, t0):
    now = t0 + timedelta(hours=3)
    service.checkout_repo.get_by_id.return_value = record_row({
        "id": "checkout-1",
        "tenant_id": TENANT_ID,
        "event_id": EVENT_ID,
        "checkin_id": "checkin-1",
        "employee_id": EMPLOYEE_ID,
        "partner_id": PARTNER_ID,
        "method": "manual",
        "checkout_time": now,
        "work_duration": timedelta(hours=2),
        "is_valid": True,
        "validation_details": {},
    }, now)

    checkout = service.get_checkout(MagicMock(), "checkout-1")

    assert checkout.checkin_id == "checkin-1"
    assert checkout.work_duration_minutes == 120


def test_list_checkouts_passes_filters(service):
    service.checkout_repo.get_checkouts_with_filters.return_value = []
    service.checkout_repo.count_checkouts_with_filters.return_value = 0
    db = MagicMock()

    assert service.list_checkouts(db, skip=5, limit=10, employee_id=EMPLOYEE_ID) == []
    assert service.count_checkouts(db, employee_id=EMPLOYEE_ID) == 0
    service.checkout_repo.get_checkouts_with_filters.assert_called_once_with(
        db, skip=5, limit=10, employee_id=EMPLOYEE_ID
    )


def test_add_checkin_note_appends_and_stamps_updater(service, t0):
    now = t0 + timedelta(hours=2)
    stored = checkin_row(t0, now, notes="arrived by bus")
    service.checkin_repo.get_by_id.return_value = stored
    service.checkin_repo.update.side_effect = lambda db, obj, data: record_row({**vars(obj), **data}, now)

    checkin = service.add_checkin_note(MagicMock(), "checkin-1", "  left gate B open  ", updated_by="7")

    data = service.checkin_repo.update.call_args[0][2]
    assert data == {"notes": "arrived by bus\nleft gate B open", "updated_by": "7"}
    assert checkin.notes == "arrived by bus\nleft gate B open"


def test_first_note_is_stored_as_is(service, t0):
    now = t0 + timedelta(hours=2)
    service.checkin_repo.get_by_id.return_value = checkin_row(t0, now, notes=None)
    service.checkin_repo.update.side_effect = lambda db, obj, data: record_row({**vars(obj), **data}, now)

    checkin = service.add_checkin_note(MagicMock(), "checkin-1", "first")
    assert checkin.notes == "first"


def test_blank_note_is_refused(service, t0):
    service.checkin_repo.get_by_id.return_value = checkin_row(t0, t0)
    with pytest.raises(BadRequestException, match="empty"):
        service.add_checkin_note(MagicMock(), "checkin-1", "   ")
    service.checkin_repo.update.assert_not_called()


def test_notes_longer_than_limit_are_refused(service, t0):
    service.checkout_repo.get_by_id.return_value = SimpleNamespace(notes="x" * 995)
    with pytest.raises(BadRequestException, match="1000"):
        service.add_checkout_note(MagicMock(), "checkout-1", "more text")


def test_note_on_unknown_checkout(service):
    service.checkout_repo.get_by_id.return_value = None
    with pytest.raises(NotFoundException, match="Checkout not found"):
        service.add_checkout_note(MagicMock(), "missing", "note")


def test_checkin_stats_use_current_periods(service):
    now = datetime(2025, 3, 12, 15, 30, tzinfo=timezone.utc)
    service.checkin_repo.get_checkin_stats.return_value = {
        "total_checkins": 5,
        "valid_checkins": 4,
        "invalid_checkins": 1,
        "facial_checkins": 1,
        "qr_code_checkins": 3,
        "manual_checkins": 1,
        "checkins_today": 2,
        "checkins_this_week": 5,
        "checkins_this_month": 5,
        "last_checkin_time": now,
    }

    stats = service.get_checkin_stats(MagicMock(), tenant_id=TENANT_ID, now=now)

    args, kwargs = service.checkin_repo.get_checkin_stats.call_args
    periods = args[1]
    assert periods.today == datetime(2025, 3, 12, tzinfo=timezone.utc)
    assert periods.week == datetime(2025, 3, 10, tzinfo=timezone.utc)
    assert periods.month == datetime(2025, 3, 1, tzinfo=timezone.utc)
    assert kwargs == {"tenant_id": TENANT_ID, "event_id": None}
    assert stats.valid_checkins == 4
    assert stats.last_checkin_time == now


def test_checkout_stats_accept_decimal_hours(service):
    service.checkout_repo.get_checkout_stats.return_value = {
        "total_checkouts": 2,
        "valid_checkouts": 2,
        "total_work_hours": Decimal("7.5"),
        "average_work_hours": Decimal("3.75"),
    }

    stats = service.get_checkout_stats(MagicMock(), event_id=EVENT_ID)

    assert stats.total_work_hours == pytest.approx(7.5)
    assert stats.average_work_hours == pytest.approx(3.75)
    assert stats.invalid_checkouts == 0


def test_event_stats_combine_all_figures(service):
    service.checkin_repo.get_checkin_stats.return_value = {"total_checkins": 1}
    service.checkout_repo.get_checkout_stats.return_value = {"total_checkouts": 0}
    service.checkin_repo.get_checkins_with_filters.return_value = []
    service.checkout_repo.get_for_checkins.return_value = []

    stats = service.get_event_stats(MagicMock(), EVENT_ID)

    assert stats.event_id == EVENT_ID
    assert stats.checkins.total_checkins == 1
    assert stats.work_sessions.total_sessions == 0
    assert service.checkout_repo.get_checkout_stats.call_args.kwargs["event_id"] == EVENT_ID


def test_event_stats_unknown_event(service):
    service.event_repo.get_by_id.return_value = None
    with pytest.raises(NotFoundException):
        service.get_event_stats(MagicMock(), "missing")
