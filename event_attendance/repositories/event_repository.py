"""
Event Repository - Data access layer for events
"""
from typing import Optional, List
from sqlalchemy.orm import Session

from atams.db import BaseRepository
from event_attendance.models.event import Event


class EventRepository(BaseRepository[Event]):
    def __init__(self):
        super().__init__(Event)

    def get_by_id(self, db: Session, event_id: str) -> Optional[Event]:
        """Get event by ID using ORM"""
        return db.query(Event).filter(Event.id == event_id).first()

    def get_events_with_search(
        self,
        db: Session,
        tenant_id: str = None,
        search: str = "",
        status: str = None,
        skip: int = 0,
        limit: int = 100
    ) -> List[Event]:
        """Get events with optional filters using ORM; deleted events only when asked for"""
        query = db.query(Event)

        if tenant_id:
            query = query.filter(Event.tenant_id == tenant_id)
        if search:
            query = query.filter(Event.name.ilike(f"%{search}%"))
        if status:
            query = query.filter(Event.status == status)
        else:
            query = query.filter(Event.status != "deleted")

        return query.order_by(Event.initial_date.desc()).offset(skip).limit(limit).all()

    def count_events_with_search(
        self,
        db: Session,
        tenant_id: str = None,
        search: str = "",
        status: str = None
    ) -> int:
        """Count events with filters using native SQL"""
        conditions = []
        params = {}

        if tenant_id:
            conditions.append("ev_tenant_id = :tenant_id")
            params["tenant_id"] = tenant_id
        if search:
            conditions.append("ev_name ILIKE :search")
            params["search"] = f"%{search}%"
        if status:
            conditions.append("ev_status = :status")
            params["status"] = status
        else:
            conditions.append("ev_status <> 'deleted'")

        where_clause = " AND ".join(conditions)

        query = f"""
            SELECT COUNT(*)
            FROM attendance.events
            WHERE {where_clause}
        """

        return self.execute_raw_sql_scalar(db, query, params)
