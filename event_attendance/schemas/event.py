"""
Event Schemas: lifecycle status, time window and request/response models
"""
from datetime import datetime, timedelta
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from event_attendance.core.exceptions import EventLifecycleException, EventUnavailableException
from event_attendance.schemas.common import as_utc, fix_datetime_timezone, utc_now
from event_attendance.schemas.geo import MIN_FENCE_POINTS, GeoFence, GeoPoint

MAX_EVENT_DURATION = timedelta(days=30)


class EventStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DELETED = "deleted"


class EventWindowState(str, Enum):
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    FINISHED = "finished"


class EventWindow(BaseModel):
    """Time window of an event; bounds are inclusive for the ongoing state"""
    model_config = ConfigDict(frozen=True)

    initial_date: datetime
    final_date: datetime

    @field_validator('initial_date', 'final_date', mode='after')
    @classmethod
    def ensure_aware(cls, v):
        return as_utc(v)

    def state(self, now: Optional[datetime] = None) -> EventWindowState:
        now = as_utc(now) if now is not None else utc_now()
        if now < self.initial_date:
            return EventWindowState.UPCOMING
        if now > self.final_date:
            return EventWindowState.FINISHED
        return EventWindowState.ONGOING

    def is_upcoming(self, now: Optional[datetime] = None) -> bool:
        return self.state(now) == EventWindowState.UPCOMING

    def is_ongoing(self, now: Optional[datetime] = None) -> bool:
        return self.state(now) == EventWindowState.ONGOING

    def is_finished(self, now: Optional[datetime] = None) -> bool:
        return self.state(now) == EventWindowState.FINISHED

    @property
    def duration(self) -> timedelta:
        return self.final_date - self.initial_date


def _validate_schedule(initial_date: datetime, final_date: datetime) -> None:
    if final_date <= initial_date:
        raise ValueError("final date must be after initial date")
    if final_date - initial_date > MAX_EVENT_DURATION:
        raise ValueError("event duration cannot exceed 30 days")


def _validate_fence(fence: GeoFence) -> None:
    if fence.points and len(fence.points) < MIN_FENCE_POINTS:
        raise ValueError("fence must have at least 3 points to form a polygon")


class Event(BaseModel):
    """
    Event with its fence and schedule

    The fence is owned by the event. `status` replaces a bare active flag so
    that deactivation and deletion stay distinguishable.
    """
    model_config = ConfigDict(from_attributes=True)

    id: str
    tenant_id: str
    name: str = Field(min_length=3, max_length=255)
    location: str = Field(min_length=1, max_length=500)
    fence: GeoFence = Field(default_factory=GeoFence)
    initial_date: datetime
    final_date: datetime
    status: EventStatus = EventStatus.ACTIVE
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    created_by: Optional[str] = None
    updated_by: Optional[str] = None

    @field_validator('initial_date', 'final_date', 'created_at', 'updated_at', mode='before')
    @classmethod
    def fix_timezone(cls, v):
        return fix_datetime_timezone(v)

    @field_validator('initial_date', 'final_date', 'created_at', 'updated_at', mode='after')
    @classmethod
    def ensure_aware(cls, v):
        return as_utc(v)

    @field_validator('fence', mode='before')
    @classmethod
    def empty_fence(cls, v):
        return GeoFence() if v is None else v

    @model_validator(mode='after')
    def check_schedule(self) -> "Event":
        _validate_schedule(self.initial_date, self.final_date)
        _validate_fence(self.fence)
        return self

    # ==================== WINDOW ====================

    @property
    def window(self) -> EventWindow:
        return EventWindow(initial_date=self.initial_date, final_date=self.final_date)

    @property
    def is_active(self) -> bool:
        return self.status == EventStatus.ACTIVE

    @property
    def duration(self) -> timedelta:
        return self.window.duration

    def state(self, now: Optional[datetime] = None) -> EventWindowState:
        return self.window.state(now)

    def belongs_to_tenant(self, tenant_id: str) -> bool:
        return self.tenant_id == tenant_id

    def ensure_can_check_in(self, now: Optional[datetime] = None) -> None:
        """
        Raises:
            EventUnavailableException: If the event is not active, already
                finished, or otherwise unavailable for check-in
        """
        state = self.state(now)
        if not self.is_active:
            raise EventUnavailableException("event is not active", state.value)
        if state == EventWindowState.FINISHED:
            raise EventUnavailableException("event has already finished", state.value)
        if state not in (EventWindowState.ONGOING, EventWindowState.UPCOMING):
            raise EventUnavailableException("event is not available for check-in", state.value)

    def ensure_can_check_out(self, now: Optional[datetime] = None) -> None:
        """
        Raises:
            EventUnavailableException: If the event is not active or not ongoing
        """
        state = self.state(now)
        if not self.is_active:
            raise EventUnavailableException("event is not active", state.value)
        if state != EventWindowState.ONGOING:
            raise EventUnavailableException("event is not ongoing", state.value)

    def can_check_in(self, now: Optional[datetime] = None) -> bool:
        try:
            self.ensure_can_check_in(now)
        except EventUnavailableException:
            return False
        return True

    def can_check_out(self, now: Optional[datetime] = None) -> bool:
        try:
            self.ensure_can_check_out(now)
        except EventUnavailableException:
            return False
        return True

    # ==================== LIFECYCLE ====================

    def _stamp(self, updated_by: Optional[str], now: Optional[datetime]) -> None:
        self.updated_at = as_utc(now) if now is not None else utc_now()
        self.updated_by = updated_by

    def activate(self, updated_by: Optional[str], now: Optional[datetime] = None) -> None:
        if self.status == EventStatus.DELETED:
            raise EventLifecycleException("deleted event cannot be activated")
        self.status = EventStatus.ACTIVE
        self._stamp(updated_by, now)

    def deactivate(self, updated_by: Optional[str], now: Optional[datetime] = None) -> None:
        if self.status == EventStatus.DELETED:
            raise EventLifecycleException("deleted event cannot be deactivated")
        if self.window.is_ongoing(now):
            raise EventLifecycleException("ongoing event cannot be deactivated")
        self.status = EventStatus.INACTIVE
        self._stamp(updated_by, now)

    def delete(self, updated_by: Optional[str], now: Optional[datetime] = None) -> None:
        if self.window.is_ongoing(now):
            raise EventLifecycleException("ongoing event cannot be deleted")
        self.status = EventStatus.DELETED
        self._stamp(updated_by, now)

    def reschedule(
        self,
        initial_date: datetime,
        final_date: datetime,
        updated_by: Optional[str],
        now: Optional[datetime] = None
    ) -> None:
        """
        Change the event window

        While the event is ongoing the initial date is frozen and the final
        date may only move later.

        Raises:
            EventLifecycleException: If the change is not allowed while ongoing
            ValueError: If the new window is invalid
        """
        initial_date = as_utc(initial_date)
        final_date = as_utc(final_date)
        if self.window.is_ongoing(now):
            if initial_date != self.initial_date:
                raise EventLifecycleException("initial date cannot change once the event is ongoing")
            if final_date < self.final_date:
                raise EventLifecycleException("final date can only be extended while the event is ongoing")
        _validate_schedule(initial_date, final_date)
        self.initial_date = initial_date
        self.final_date = final_date
        self._stamp(updated_by, now)

    def update_details(
        self,
        updated_by: Optional[str],
        name: Optional[str] = None,
        location: Optional[str] = None,
        fence: Optional[GeoFence] = None,
        now: Optional[datetime] = None
    ) -> None:
        """Update descriptive fields, re-validating them through the model"""
        changes = {}
        if name is not None:
            changes["name"] = name
        if location is not None:
            changes["location"] = location
        if fence is not None:
            changes["fence"] = fence
        if not changes:
            return
        validated = Event.model_validate({**self.model_dump(), **changes})
        self.name = validated.name
        self.location = validated.location
        self.fence = validated.fence
        self._stamp(updated_by, now)


# Request/Response schemas for API endpoints
class EventCreate(BaseModel):
    tenant_id: str
    name: str = Field(min_length=3, max_length=255)
    location: str = Field(min_length=1, max_length=500)
    fence: List[GeoPoint] = Field(default_factory=list)
    initial_date: datetime
    final_date: datetime


class EventUpdate(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None
    fence: Optional[List[GeoPoint]] = None
    initial_date: Optional[datetime] = None
    final_date: Optional[datetime] = None


class EventQrToken(BaseModel):
    """Response schema for the event QR token endpoint"""
    token: str
    token_id: str
    expires_in: int
