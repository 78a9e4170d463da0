"""
Event Service - Business logic for event management and lifecycle
"""
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional
from pydantic import ValidationError
from sqlalchemy.orm import Session

from atams.exceptions import BadRequestException, NotFoundException
from atams.logging import get_logger

from event_attendance.repositories.event_repository import EventRepository
from event_attendance.schemas.event import Event, EventCreate, EventQrToken, EventStatus, EventUpdate
from event_attendance.schemas.geo import GeoFence
from event_attendance.services.jwt_service import JwtService

logger = get_logger(__name__)


def _validation_message(exc: ValidationError) -> str:
    return "; ".join(err["msg"] for err in exc.errors())


def _to_row(event: Event) -> Dict[str, Any]:
    """Column values for the event model"""
    return {
        "name": event.name,
        "location": event.location,
        "fence": event.fence.to_pairs(),
        "initial_date": event.initial_date,
        "final_date": event.final_date,
        "status": event.status.value,
        "updated_at": event.updated_at,
        "updated_by": event.updated_by,
    }


class EventService:
    def __init__(self, jwt_service: Optional[JwtService] = None) -> None:
        self.repo = EventRepository()
        self.jwt_service = jwt_service or JwtService()

    def list_events(
        self,
        db: Session,
        tenant_id: str = None,
        search: str = "",
        status: Optional[EventStatus] = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Event]:
        events = self.repo.get_events_with_search(
            db,
            tenant_id=tenant_id,
            search=search,
            status=status.value if status else None,
            skip=skip,
            limit=limit
        )
        return [Event.model_validate(e) for e in events]

    def count_events(
        self,
        db: Session,
        tenant_id: str = None,
        search: str = "",
        status: Optional[EventStatus] = None
    ) -> int:
        return self.repo.count_events_with_search(
            db,
            tenant_id=tenant_id,
            search=search,
            status=status.value if status else None
        )

    def get_event(self, db: Session, event_id: str) -> Event:
        event = self.repo.get_by_id(db, event_id)
        if not event or event.status == EventStatus.DELETED.value:
            raise NotFoundException("Event not found")
        return Event.model_validate(event)

    def create_event(
        self,
        db: Session,
        payload: EventCreate,
        created_by: Optional[str] = None,
        geofence_required: bool = True
    ) -> Event:
        if geofence_required and not payload.fence:
            raise BadRequestException("fence is required when geofence is enforced")

        try:
            event = Event(
                id=str(uuid.uuid4()),
                tenant_id=payload.tenant_id,
                name=payload.name,
                location=payload.location,
                fence=GeoFence(points=payload.fence),
                initial_date=payload.initial_date,
                final_date=payload.final_date,
                created_by=created_by,
                updated_by=created_by
            )
        except ValidationError as e:
            raise BadRequestException(_validation_message(e))

        obj = self.repo.create(db, {
            "id": event.id,
            "tenant_id": event.tenant_id,
            "created_at": event.created_at,
            "created_by": event.created_by,
            **_to_row(event)
        })

        logger.info(
            f"Event created: {event.name}",
            extra={"extra_data": {"event_id": event.id, "tenant_id": event.tenant_id}}
        )
        return Event.model_validate(obj)

    def update_event(
        self,
        db: Session,
        event_id: str,
        payload: EventUpdate,
        updated_by: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Event:
        """
        Update descriptive fields and/or the schedule

        Raises:
            NotFoundException: If event does not exist
            BadRequestException: If the new values are invalid
            EventLifecycleException: If the schedule change is refused while ongoing
        """
        obj = self._get_model(db, event_id)
        event = Event.model_validate(obj)
        update_data = payload.model_dump(exclude_unset=True)

        try:
            if "initial_date" in update_data or "final_date" in update_data:
                event.reschedule(
                    payload.initial_date or event.initial_date,
                    payload.final_date or event.final_date,
                    updated_by,
                    now
                )
            event.update_details(
                updated_by,
                name=payload.name,
                location=payload.location,
                fence=GeoFence(points=payload.fence) if payload.fence is not None else None,
                now=now
            )
        except ValidationError as e:
            raise BadRequestException(_validation_message(e))
        except ValueError as e:
            raise BadRequestException(str(e))

        obj = self.repo.update(db, obj, _to_row(event))
        return Event.model_validate(obj)

    def activate_event(self, db: Session, event_id: str, updated_by: Optional[str] = None) -> Event:
        return self._transition(db, event_id, "activate", updated_by)

    def deactivate_event(self, db: Session, event_id: str, updated_by: Optional[str] = None) -> Event:
        return self._transition(db, event_id, "deactivate", updated_by)

    def delete_event(self, db: Session, event_id: str, updated_by: Optional[str] = None) -> None:
        """Soft delete; refused while the event is ongoing"""
        self._transition(db, event_id, "delete", updated_by)
        return None

    def generate_qr_token(self, db: Session, event_id: str) -> EventQrToken:
        """
        Issue a short-lived QR token for an event that is still accepting check-ins

        Raises:
            NotFoundException: If event does not exist
            BadRequestException: If the event is inactive or finished
        """
        event = self.get_event(db, event_id)
        if not event.can_check_in():
            raise BadRequestException("Event is not accepting check-ins")
        return EventQrToken(**self.jwt_service.generate_qr_token(event.id))

    def _get_model(self, db: Session, event_id: str):
        obj = self.repo.get_by_id(db, event_id)
        if not obj or obj.status == EventStatus.DELETED.value:
            raise NotFoundException("Event not found")
        return obj

    def _transition(self, db: Session, event_id: str, action: str, updated_by: Optional[str]) -> Event:
        obj = self._get_model(db, event_id)
        event = Event.model_validate(obj)
        previous = event.status

        getattr(event, action)(updated_by)

        obj = self.repo.update(db, obj, _to_row(event))
        logger.info(
            f"Event {action}: {previous.value} -> {event.status.value}",
            extra={"extra_data": {"event_id": event.id, "updated_by": updated_by}}
        )
        return Event.model_validate(obj)
