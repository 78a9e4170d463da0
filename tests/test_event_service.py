from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from atams.exceptions import BadRequestException, NotFoundException
from event_attendance.core.exceptions import EventLifecycleException
from event_attendance.schemas.event import EventCreate, EventStatus, EventUpdate
from event_attendance.schemas.geo import GeoPoint
from event_attendance.services.event_service import EventService
from event_attendance.services.jwt_service import JwtService

from .conftest import TENANT_ID

SQUARE = [[10, 10], [10, 11], [11, 11], [11, 10]]


def event_row(initial_date, final_date, **overrides):
    data = dict(
        id="event-1",
        tenant_id=TENANT_ID,
        name="Harbour Cleanup",
        location="North Pier",
        fence=SQUARE,
        initial_date=initial_date,
        final_date=final_date,
        status="active",
        created_at=initial_date - timedelta(days=1),
        updated_at=initial_date - timedelta(days=1),
        created_by=None,
        updated_by=None,
    )
    data.update(overrides)
    return SimpleNamespace(**data)


def apply_update(db, obj, data):
    for key, value in data.items():
        setattr(obj, key, value)
    return obj


@pytest.fixture
def current():
    return datetime.now(timezone.utc)


@pytest.fixture
def service():
    svc = EventService(jwt_service=JwtService(secret="event-service-secret-with-enough-length"))
    svc.repo = MagicMock()
    svc.repo.create.side_effect = lambda db, data: SimpleNamespace(**data)
    svc.repo.update.side_effect = apply_update
    return svc


def create_payload(current, fence=SQUARE, **overrides):
    data = dict(
        tenant_id=TENANT_ID,
        name="Harbour Cleanup",
        location="North Pier",
        fence=[GeoPoint(latitude=lat, longitude=lon) for lat, lon in fence],
        initial_date=current + timedelta(days=1),
        final_date=current + timedelta(days=1, hours=8),
    )
    data.update(overrides)
    return EventCreate(**data)


def test_create_event_stores_fence_as_pairs(service, current):
    event = service.create_event(MagicMock(), create_payload(current), created_by="7")

    data = service.repo.create.call_args[0][1]
    assert data["fence"] == SQUARE
    assert data["status"] == "active"
    assert data["created_by"] == "7"
    assert event.status == EventStatus.ACTIVE
    assert event.fence.is_defined


def test_create_requires_fence_when_enforced(service, current):
    with pytest.raises(BadRequestException, match="fence is required"):
        service.create_event(MagicMock(), create_payload(current, fence=[]))

    event = service.create_event(MagicMock(), create_payload(current, fence=[]), geofence_required=False)
    assert not event.fence.is_defined


def test_create_rejects_invalid_schedule(service, current):
    payload = create_payload(current, final_date=current + timedelta(days=40))
    with pytest.raises(BadRequestException, match="30 days"):
        service.create_event(MagicMock(), payload)
    service.repo.create.assert_not_called()


def test_get_deleted_event_is_not_found(service, current):
    service.repo.get_by_id.return_value = event_row(current, current + timedelta(hours=1), status="deleted")
    with pytest.raises(NotFoundException):
        service.get_event(MagicMock(), "event-1")


def test_deactivate_upcoming_event(service, current):
    service.repo.get_by_id.return_value = event_row(current + timedelta(days=1), current + timedelta(days=2))

    event = service.deactivate_event(MagicMock(), "event-1", updated_by="7")

    assert event.status == EventStatus.INACTIVE
    assert service.repo.update.call_args[0][2]["status"] == "inactive"
    assert service.repo.update.call_args[0][2]["updated_by"] == "7"


def test_deactivate_ongoing_event_is_refused(service, current):
    service.repo.get_by_id.return_value = event_row(current - timedelta(hours=1), current + timedelta(hours=1))

    with pytest.raises(EventLifecycleException):
        service.deactivate_event(MagicMock(), "event-1")
    service.repo.update.assert_not_called()


def test_delete_is_soft(service, current):
    service.repo.get_by_id.return_value = event_row(current - timedelta(days=3), current - timedelta(days=2))

    assert service.delete_event(MagicMock(), "event-1") is None
    assert service.repo.update.call_args[0][2]["status"] == "deleted"


def test_update_extends_ongoing_event(service, current):
    initial = current - timedelta(hours=1)
    service.repo.get_by_id.return_value = event_row(initial, current + timedelta(hours=1))

    event = service.update_event(
        MagicMock(), "event-1", EventUpdate(final_date=current + timedelta(hours=3), name="Harbour Cleanup II")
    )

    assert event.final_date == current + timedelta(hours=3)
    assert event.name == "Harbour Cleanup II"


def test_update_cannot_move_start_of_ongoing_event(service, current):
    service.repo.get_by_id.return_value = event_row(current - timedelta(hours=1), current + timedelta(hours=1))

    with pytest.raises(EventLifecycleException):
        service.update_event(MagicMock(), "event-1", EventUpdate(initial_date=current))


def test_update_with_invalid_name(service, current):
    service.repo.get_by_id.return_value = event_row(current + timedelta(days=1), current + timedelta(days=2))

    with pytest.raises(BadRequestException):
        service.update_event(MagicMock(), "event-1", EventUpdate(name="x"))


def test_qr_token_for_open_event(service, current):
    service.repo.get_by_id.return_value = event_row(current - timedelta(hours=1), current + timedelta(hours=1))

    token = service.generate_qr_token(MagicMock(), "event-1")

    decoded = service.jwt_service.decode_qr_token(token.token)
    assert decoded.event_id == "event-1"
    assert decoded.token_id == token.token_id


def test_qr_token_refused_for_finished_event(service, current):
    service.repo.get_by_id.return_value = event_row(current - timedelta(days=2), current - timedelta(days=1))

    with pytest.raises(BadRequestException):
        service.generate_qr_token(MagicMock(), "event-1")


def test_list_events_passes_status_value(service, current):
    service.repo.get_events_with_search.return_value = [
        event_row(current + timedelta(days=1), current + timedelta(days=2), status="inactive")
    ]

    events = service.list_events(MagicMock(), tenant_id=TENANT_ID, status=EventStatus.INACTIVE)

    assert service.repo.get_events_with_search.call_args.kwargs["status"] == "inactive"
    assert events[0].status == EventStatus.INACTIVE
