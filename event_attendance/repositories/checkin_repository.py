"""
Checkin Repository - Data access layer for check-ins
"""
from typing import Any, Dict, Optional, List
from datetime import date
from sqlalchemy.orm import Session
from sqlalchemy import and_, func

from atams.db import BaseRepository
from event_attendance.models.checkin import Checkin
from event_attendance.schemas.stats import StatsPeriods


class CheckinRepository(BaseRepository[Checkin]):
    def __init__(self):
        super().__init__(Checkin)

    def get_by_id(self, db: Session, checkin_id: str) -> Optional[Checkin]:
        """Get check-in by ID using ORM"""
        return db.query(Checkin).filter(Checkin.id == checkin_id).first()

    def get_open_checkin(self, db: Session, event_id: str, employee_id: str) -> Optional[Checkin]:
        """Get the employee's latest valid check-in for the event that has not been checked out"""
        return db.query(Checkin).filter(
            and_(
                Checkin.event_id == event_id,
                Checkin.employee_id == employee_id,
                Checkin.is_valid.is_(True),
                Checkin.is_open.is_(True)
            )
        ).order_by(Checkin.checkin_time.desc()).first()

    def _apply_filters(
        self,
        query,
        tenant_id: str = None,
        event_id: str = None,
        employee_id: str = None,
        partner_id: str = None,
        is_valid: bool = None,
        date_from: date = None,
        date_to: date = None
    ):
        if tenant_id:
            query = query.filter(Checkin.tenant_id == tenant_id)
        if event_id:
            query = query.filter(Checkin.event_id == event_id)
        if employee_id:
            query = query.filter(Checkin.employee_id == employee_id)
        if partner_id:
            query = query.filter(Checkin.partner_id == partner_id)
        if is_valid is not None:
            query = query.filter(Checkin.is_valid.is_(is_valid))
        if date_from:
            query = query.filter(func.date(Checkin.checkin_time) >= date_from)
        if date_to:
            query = query.filter(func.date(Checkin.checkin_time) <= date_to)
        return query

    def get_checkins_with_filters(
        self,
        db: Session,
        skip: int = 0,
        limit: int = 100,
        sort: str = "desc",
        **filters
    ) -> List[Checkin]:
        """Get check-ins with various filters using ORM"""
        query = self._apply_filters(db.query(Checkin), **filters)

        if sort.lower() == "asc":
            query = query.order_by(Checkin.checkin_time.asc())
        else:
            query = query.order_by(Checkin.checkin_time.desc())

        return query.offset(skip).limit(limit).all()

    def count_checkins_with_filters(self, db: Session, **filters) -> int:
        """Count check-ins with the same filters as get_checkins_with_filters"""
        return self._apply_filters(db.query(func.count(Checkin.id)), **filters).scalar()

    def add_checkin(self, db: Session, obj_in: Dict[str, Any]) -> Checkin:
        """Stage a check-in in the current transaction; the caller commits"""
        db_obj = Checkin(**obj_in)
        db.add(db_obj)
        db.flush()
        return db_obj

    def get_checkin_stats(
        self,
        db: Session,
        periods: StatsPeriods,
        tenant_id: str = None,
        event_id: str = None
    ) -> Dict[str, Any]:
        """Aggregate check-in counts using native SQL"""
        conditions = []
        params = {"today": periods.today, "week": periods.week, "month": periods.month}
        if tenant_id:
            conditions.append("ci_tenant_id = :tenant_id")
            params["tenant_id"] = tenant_id
        if event_id:
            conditions.append("ci_event_id = :event_id")
            params["event_id"] = event_id
        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        query = f"""
            SELECT
                COUNT(*) AS total_checkins,
                COUNT(*) FILTER (WHERE ci_is_valid) AS valid_checkins,
                COUNT(*) FILTER (WHERE NOT ci_is_valid) AS invalid_checkins,
                COUNT(*) FILTER (WHERE ci_method = 'facial_recognition') AS facial_checkins,
                COUNT(*) FILTER (WHERE ci_method = 'qr_code') AS qr_code_checkins,
                COUNT(*) FILTER (WHERE ci_method = 'manual') AS manual_checkins,
                COUNT(*) FILTER (WHERE ci_checkin_time >= :today) AS checkins_today,
                COUNT(*) FILTER (WHERE ci_checkin_time >= :week) AS checkins_this_week,
                COUNT(*) FILTER (WHERE ci_checkin_time >= :month) AS checkins_this_month,
                MAX(ci_checkin_time) AS last_checkin_time
            FROM attendance.checkins
            {where_clause}
        """
        rows = self.execute_raw_sql_dict(db, query, params)
        return rows[0] if rows else {}
