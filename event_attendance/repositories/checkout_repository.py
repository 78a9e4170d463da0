"""
Checkout Repository - Data access layer for check-outs
"""
from typing import Optional, List, Any, Dict
from datetime import date
from sqlalchemy.orm import Session
from sqlalchemy import func

from atams.db import BaseRepository
from event_attendance.models.checkin import Checkin
from event_attendance.models.checkout import Checkout
from event_attendance.schemas.stats import StatsPeriods


class CheckoutRepository(BaseRepository[Checkout]):
    def __init__(self):
        super().__init__(Checkout)

    def get_by_id(self, db: Session, checkout_id: str) -> Optional[Checkout]:
        """Get check-out by ID using ORM"""
        return db.query(Checkout).filter(Checkout.id == checkout_id).first()

    def get_by_checkin_id(self, db: Session, checkin_id: str) -> Optional[Checkout]:
        """Get the valid checkout recorded for a check-in, if any"""
        return db.query(Checkout).filter(
            Checkout.checkin_id == checkin_id,
            Checkout.is_valid.is_(True)
        ).first()

    def get_for_checkins(self, db: Session, checkin_ids: List[str]) -> List[Checkout]:
        """Get valid checkouts for a batch of check-ins using ORM"""
        if not checkin_ids:
            return []
        return db.query(Checkout).filter(
            Checkout.checkin_id.in_(checkin_ids),
            Checkout.is_valid.is_(True)
        ).all()

    def add_closing(self, db: Session, obj_in: Dict[str, Any], checkin: Optional[Checkin] = None) -> Checkout:
        """
        Stage a checkout and close its check-in in the current transaction

        The check-in is only closed when given, i.e. when the checkout is valid.
        The caller commits.
        """
        db_obj = Checkout(**obj_in)
        db.add(db_obj)
        if checkin is not None:
            checkin.is_open = False
            db.add(checkin)
        db.flush()
        return db_obj

    def _apply_filters(
        self,
        query,
        tenant_id: str = None,
        event_id: str = None,
        employee_id: str = None,
        partner_id: str = None,
        checkin_id: str = None,
        is_valid: bool = None,
        date_from: date = None,
        date_to: date = None
    ):
        if tenant_id:
            query = query.filter(Checkout.tenant_id == tenant_id)
        if event_id:
            query = query.filter(Checkout.event_id == event_id)
        if employee_id:
            query = query.filter(Checkout.employee_id == employee_id)
        if partner_id:
            query = query.filter(Checkout.partner_id == partner_id)
        if checkin_id:
            query = query.filter(Checkout.checkin_id == checkin_id)
        if is_valid is not None:
            query = query.filter(Checkout.is_valid.is_(is_valid))
        if date_from:
            query = query.filter(func.date(Checkout.checkout_time) >= date_from)
        if date_to:
            query = query.filter(func.date(Checkout.checkout_time) <= date_to)
        return query

    def get_checkouts_with_filters(
        self,
        db: Session,
        skip: int = 0,
        limit: int = 100,
        sort: str = "desc",
        **filters
    ) -> List[Checkout]:
        """Get check-outs with various filters using ORM"""
        query = self._apply_filters(db.query(Checkout), **filters)

        if sort.lower() == "asc":
            query = query.order_by(Checkout.checkout_time.asc())
        else:
            query = query.order_by(Checkout.checkout_time.desc())

        return query.offset(skip).limit(limit).all()

    def count_checkouts_with_filters(self, db: Session, **filters) -> int:
        return self._apply_filters(db.query(func.count(Checkout.id)), **filters).scalar()

    def get_checkout_stats(
        self,
        db: Session,
        periods: StatsPeriods,
        tenant_id: str = None,
        event_id: str = None
    ) -> Dict[str, Any]:
        """Aggregate check-out counts and worked hours using native SQL"""
        conditions = []
        params = {"today": periods.today, "week": periods.week, "month": periods.month}
        if tenant_id:
            conditions.append("co_tenant_id = :tenant_id")
            params["tenant_id"] = tenant_id
        if event_id:
            conditions.append("co_event_id = :event_id")
            params["event_id"] = event_id
        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        # Worked hours only count valid checkouts
        query = f"""
            SELECT
                COUNT(*) AS total_checkouts,
                COUNT(*) FILTER (WHERE co_is_valid) AS valid_checkouts,
                COUNT(*) FILTER (WHERE NOT co_is_valid) AS invalid_checkouts,
                COUNT(*) FILTER (WHERE co_method = 'facial_recognition') AS facial_checkouts,
                COUNT(*) FILTER (WHERE co_method = 'qr_code') AS qr_code_checkouts,
                COUNT(*) FILTER (WHERE co_method = 'manual') AS manual_checkouts,
                COUNT(*) FILTER (WHERE co_checkout_time >= :today) AS checkouts_today,
                COUNT(*) FILTER (WHERE co_checkout_time >= :week) AS checkouts_this_week,
                COUNT(*) FILTER (WHERE co_checkout_time >= :month) AS checkouts_this_month,
                COALESCE(SUM(EXTRACT(EPOCH FROM co_work_duration)) FILTER (WHERE co_is_valid), 0) / 3600.0
                    AS total_work_hours,
                COALESCE(AVG(EXTRACT(EPOCH FROM co_work_duration)) FILTER (WHERE co_is_valid), 0) / 3600.0
                    AS average_work_hours,
                MAX(co_checkout_time) AS last_checkout_time
            FROM attendance.checkouts
            {where_clause}
        """
        rows = self.execute_raw_sql_dict(db, query, params)
        return rows[0] if rows else {}
