from datetime import timedelta

import pytest

from event_attendance.core.exceptions import ContractViolationException
from event_attendance.schemas.attendance import Checkin, CheckinMethod, Checkout
from event_attendance.services.work_session_service import WorkSessionDeriver

from .conftest import EMPLOYEE_ID, EVENT_ID, PARTNER_ID, TENANT_ID


def make_checkin(checkin_time, checkin_id="checkin-1", is_valid=True):
    return Checkin(
        id=checkin_id,
        tenant_id=TENANT_ID,
        event_id=EVENT_ID,
        employee_id=EMPLOYEE_ID,
        partner_id=PARTNER_ID,
        method=CheckinMethod.MANUAL,
        checkin_time=checkin_time,
        is_valid=is_valid,
    )


def make_checkout(checkin, checkout_time, is_valid=True):
    return Checkout(
        id=f"checkout-of-{checkin.id}",
        tenant_id=TENANT_ID,
        event_id=EVENT_ID,
        employee_id=EMPLOYEE_ID,
        partner_id=PARTNER_ID,
        method=CheckinMethod.MANUAL,
        checkin_id=checkin.id,
        checkout_time=checkout_time,
        work_duration=checkout_time - checkin.checkin_time,
        is_valid=is_valid,
    )


@pytest.fixture
def deriver():
    return WorkSessionDeriver()


def test_complete_session_duration(deriver, t0):
    checkin = make_checkin(t0)
    session = deriver.derive(checkin, make_checkout(checkin, t0 + timedelta(minutes=90)))

    assert session.is_complete
    assert session.is_valid
    assert session.duration == timedelta(minutes=90)
    assert session.duration_minutes == 90
    assert not session.is_short_session()
    assert not session.is_long_session()


def test_open_session(deriver, t0):
    session = deriver.derive(make_checkin(t0))

    assert not session.is_complete
    assert session.checkout_id is None
    assert session.duration == timedelta(0)
    assert session.is_valid
    # advisory flags only apply to complete sessions
    assert not session.is_short


def test_invalid_checkout_makes_session_invalid(deriver, t0):
    checkin = make_checkin(t0)
    session = deriver.derive(checkin, make_checkout(checkin, t0 + timedelta(hours=1), is_valid=False))
    assert not session.is_valid


def test_short_and_long_flags(deriver, t0):
    checkin = make_checkin(t0)
    short = deriver.derive(checkin, make_checkout(checkin, t0 + timedelta(minutes=10)))
    long = deriver.derive(checkin, make_checkout(checkin, t0 + timedelta(hours=13)))

    assert short.is_short_session()
    assert long.is_long_session()


def test_thresholds_are_configurable(t0):
    deriver = WorkSessionDeriver(short_threshold=timedelta(hours=1), long_threshold=timedelta(hours=2))
    checkin = make_checkin(t0)
    session = deriver.derive(checkin, make_checkout(checkin, t0 + timedelta(minutes=45)))
    assert session.is_short


def test_checkout_of_another_checkin_is_a_contract_violation(deriver, t0):
    checkin = make_checkin(t0)
    other = make_checkin(t0, checkin_id="checkin-2")
    with pytest.raises(ContractViolationException):
        deriver.derive(checkin, make_checkout(other, t0 + timedelta(hours=1)))


def test_derive_many_pairs_by_checkin_id(deriver, t0):
    first = make_checkin(t0, checkin_id="checkin-1")
    second = make_checkin(t0 + timedelta(hours=1), checkin_id="checkin-2")
    checkouts = [make_checkout(second, t0 + timedelta(hours=3))]

    sessions = deriver.derive_many([first, second], checkouts)

    assert [s.checkin_id for s in sessions] == ["checkin-1", "checkin-2"]
    assert not sessions[0].is_complete
    assert sessions[1].duration == timedelta(hours=2)


def test_summarize(deriver, t0):
    a = make_checkin(t0, checkin_id="a")
    b = make_checkin(t0, checkin_id="b")
    c = make_checkin(t0, checkin_id="c")
    sessions = deriver.derive_many(
        [a, b, c],
        [make_checkout(a, t0 + timedelta(hours=2)), make_checkout(b, t0 + timedelta(minutes=5))]
    )

    summary = deriver.summarize(sessions)

    assert summary.total_sessions == 3
    assert summary.completed_sessions == 2
    assert summary.open_sessions == 1
    assert summary.valid_sessions == 3
    assert summary.short_sessions == 1
    assert summary.total_duration == timedelta(hours=2, minutes=5)
    assert summary.average_duration == timedelta(minutes=62, seconds=30)


def test_from_settings():
    class FakeSettings:
        SHORT_SESSION_MINUTES = 30
        LONG_SESSION_HOURS = 10

    deriver = WorkSessionDeriver.from_settings(FakeSettings)
    assert deriver.short_threshold == timedelta(minutes=30)
    assert deriver.long_threshold == timedelta(hours=10)
