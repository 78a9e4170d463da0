"""
Work Session Service - derives work sessions from check-in/check-out pairs
"""
from datetime import timedelta
from typing import Dict, Iterable, List, Optional

from event_attendance.core.exceptions import ContractViolationException
from event_attendance.schemas.attendance import Checkin, Checkout
from event_attendance.schemas.work_session import WorkSession, WorkSessionSummary


class WorkSessionDeriver:
    def __init__(
        self,
        short_threshold: timedelta = timedelta(minutes=15),
        long_threshold: timedelta = timedelta(hours=12)
    ) -> None:
        self.short_threshold = short_threshold
        self.long_threshold = long_threshold

    @classmethod
    def from_settings(cls, settings) -> "WorkSessionDeriver":
        return cls(
            short_threshold=timedelta(minutes=settings.SHORT_SESSION_MINUTES),
            long_threshold=timedelta(hours=settings.LONG_SESSION_HOURS)
        )

    def derive(self, checkin: Checkin, checkout: Optional[Checkout] = None) -> WorkSession:
        """
        Pair a check-in with its optional check-out

        Short/long flags are advisory and only set for complete sessions.

        Raises:
            ContractViolationException: If checkin is missing or checkout
                belongs to a different check-in
        """
        if checkin is None:
            raise ContractViolationException("checkin is required to derive a work session")
        if checkout is not None and checkout.checkin_id != checkin.id:
            raise ContractViolationException(
                "checkout does not belong to the supplied check-in",
                {"checkin_id": checkin.id, "checkout_checkin_id": checkout.checkin_id}
            )

        is_complete = checkout is not None
        duration = checkout.checkout_time - checkin.checkin_time if is_complete else timedelta(0)

        return WorkSession(
            checkin_id=checkin.id,
            checkout_id=checkout.id if is_complete else None,
            event_id=checkin.event_id,
            employee_id=checkin.employee_id,
            partner_id=checkin.partner_id,
            checkin_time=checkin.checkin_time,
            checkout_time=checkout.checkout_time if is_complete else None,
            duration=duration,
            is_valid=checkin.is_valid and (checkout is None or checkout.is_valid),
            is_complete=is_complete,
            is_short=is_complete and duration < self.short_threshold,
            is_long=is_complete and duration > self.long_threshold
        )

    def derive_many(self, checkins: Iterable[Checkin], checkouts: Iterable[Checkout]) -> List[WorkSession]:
        """Derive sessions for many check-ins, pairing checkouts by checkin_id"""
        by_checkin: Dict[str, Checkout] = {c.checkin_id: c for c in checkouts}
        return [self.derive(checkin, by_checkin.get(checkin.id)) for checkin in checkins]

    @staticmethod
    def summarize(sessions: Iterable[WorkSession]) -> WorkSessionSummary:
        summary = WorkSessionSummary()
        for session in sessions:
            summary.total_sessions += 1
            if session.is_complete:
                summary.completed_sessions += 1
                summary.total_duration += session.duration
            else:
                summary.open_sessions += 1
            if session.is_valid:
                summary.valid_sessions += 1
            if session.is_short:
                summary.short_sessions += 1
            if session.is_long:
                summary.long_sessions += 1

        if summary.completed_sessions:
            summary.average_duration = summary.total_duration / summary.completed_sessions
        return summary
