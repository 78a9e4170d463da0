"""
Attendance Endpoints - Check-in, check-out, history and work sessions
"""
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from event_attendance.db.session import get_db
from event_attendance.services.attendance_service import AttendanceService
from event_attendance.schemas import (
    Checkin,
    CheckinCreate,
    CheckinStats,
    Checkout,
    CheckoutStats,
    NoteCreate,
    CheckinResponse,
    CheckoutCreate,
    CheckoutResponse,
    WorkSession,
    WorkSessionSummary,
    DataResponse,
    PaginationResponse
)
from event_attendance.api.deps import current_user_id, require_auth, require_min_role_level
from event_attendance.core.config import settings
from atams.encryption import encrypt_response_data
from atams.exceptions import BadRequestException

router = APIRouter()
attendance_service = AttendanceService()


def _parse_date(value: Optional[str], field: str) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise BadRequestException(f"Invalid {field} format. Use YYYY-MM-DD")


@router.post(
    "/checkins",
    response_model=DataResponse[CheckinResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_min_role_level(1))]
)
async def create_checkin(
    request: CheckinCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Check in to an event

    **Authentication:**
    - Requires valid user authentication (role level >= 1)

    **Process:**
    1. Event must be active and not finished
    2. Location must be inside the event fence (when given)
    3. Method verification: facial similarity, QR token, or manual
    4. No other open check-in for the same employee and event

    **Response:**
    - The recorded check-in; rejected attempts are recorded too
    - A QR token already taken by a concurrent scan is a rejection
    - validation.is_valid / validation.reason explain the decision

    **Errors:**
    - 400: Missing verification data or malformed QR token
    - 404: Event not found
    - 409: Concurrent check-in opened a session first
    """
    result = attendance_service.perform_checkin(db, request, created_by=current_user_id(current_user))

    return DataResponse(
        success=True,
        message="Check-in accepted" if result.validation.is_valid else f"Check-in rejected: {result.validation.reason}",
        data=result
    )


@router.post(
    "/checkouts",
    response_model=DataResponse[CheckoutResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_min_role_level(1))]
)
async def create_checkout(
    request: CheckoutCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Check out of an event

    **Authentication:**
    - Requires valid user authentication (role level >= 1)

    **Process:**
    1. Event must be active and ongoing
    2. Same location and method checks as check-in
    3. checkin_id must reference the employee's valid, not yet checked out check-in

    **Response:**
    - The recorded checkout with work_duration when valid

    **Errors:**
    - 404: Event or check-in not found
    - 409: Check-in already checked out concurrently
    """
    result = attendance_service.perform_checkout(db, request, created_by=current_user_id(current_user))

    return DataResponse(
        success=True,
        message="Checkout accepted" if result.validation.is_valid else f"Checkout rejected: {result.validation.reason}",
        data=result
    )


@router.get(
    "/checkins",
    response_model=PaginationResponse[Checkin],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(50))]
)
async def list_checkins(
    tenant_id: Optional[str] = Query(None, description="Filter by tenant ID"),
    event_id: Optional[str] = Query(None, description="Filter by event ID"),
    employee_id: Optional[str] = Query(None, description="Filter by employee ID"),
    partner_id: Optional[str] = Query(None, description="Filter by partner ID"),
    is_valid: Optional[bool] = Query(None, description="Filter by validation outcome"),
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    sort: str = Query("desc", pattern="^(asc|desc)$", description="Sort order by check-in time"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get check-in attempts (Admin only)

    **Authentication:**
    - Requires role level >= 50 (Admin or above)

    **Query Parameters:**
    - tenant_id / event_id / employee_id / partner_id: Filters
    - is_valid: true for accepted, false for rejected attempts
    - date_from/date_to: Date range filter (YYYY-MM-DD)
    """
    filters = dict(
        tenant_id=tenant_id,
        event_id=event_id,
        employee_id=employee_id,
        partner_id=partner_id,
        is_valid=is_valid,
        date_from=_parse_date(date_from, "date_from"),
        date_to=_parse_date(date_to, "date_to")
    )

    checkins = attendance_service.list_checkins(db, skip=offset, limit=limit, sort=sort, **filters)
    total = attendance_service.count_checkins(db, **filters)

    response = PaginationResponse(
        success=True,
        message="Check-ins retrieved successfully",
        data=checkins,
        total=total,
        page=offset // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/checkins/stats",
    response_model=DataResponse[CheckinStats],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(50))]
)
async def get_checkin_stats(
    tenant_id: Optional[str] = Query(None, description="Filter by tenant ID"),
    event_id: Optional[str] = Query(None, description="Filter by event ID"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get check-in counts by outcome, method and period (Admin only)

    **Authentication:**
    - Requires role level >= 50 (Admin or above)
    """
    stats = attendance_service.get_checkin_stats(db, tenant_id=tenant_id, event_id=event_id)

    response = DataResponse(
        success=True,
        message="Check-in stats retrieved successfully",
        data=stats
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/checkins/recent",
    response_model=DataResponse[List[Checkin]],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(50))]
)
async def get_recent_checkins(
    tenant_id: Optional[str] = Query(None, description="Filter by tenant ID"),
    limit: int = Query(10, ge=1, le=100, description="Number of check-ins to return"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """Get the latest check-in attempts (Admin only)"""
    checkins = attendance_service.get_recent_checkins(db, tenant_id=tenant_id, limit=limit)

    response = DataResponse(
        success=True,
        message="Recent check-ins retrieved successfully",
        data=checkins
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/checkins/{checkin_id}",
    response_model=DataResponse[Checkin],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(1))]
)
async def get_checkin(
    checkin_id: str,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get single check-in by ID

    **Authorization:**
    - Requires role level >= 1
    """
    checkin = attendance_service.get_checkin(db, checkin_id)

    response = DataResponse(
        success=True,
        message="Check-in retrieved successfully",
        data=checkin
    )

    return encrypt_response_data(response, settings)


@router.post(
    "/checkins/{checkin_id}/notes",
    response_model=DataResponse[Checkin],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(1))]
)
async def add_checkin_note(
    checkin_id: str,
    request: NoteCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Append a note to a check-in

    **Errors:**
    - 400: Blank note or notes longer than 1000 characters
    - 404: Check-in not found
    """
    checkin = attendance_service.add_checkin_note(
        db, checkin_id, request.note, updated_by=current_user_id(current_user)
    )

    return DataResponse(
        success=True,
        message="Note added successfully",
        data=checkin
    )


@router.get(
    "/checkouts",
    response_model=PaginationResponse[Checkout],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(50))]
)
async def list_checkouts(
    tenant_id: Optional[str] = Query(None, description="Filter by tenant ID"),
    event_id: Optional[str] = Query(None, description="Filter by event ID"),
    employee_id: Optional[str] = Query(None, description="Filter by employee ID"),
    partner_id: Optional[str] = Query(None, description="Filter by partner ID"),
    checkin_id: Optional[str] = Query(None, description="Filter by check-in ID"),
    is_valid: Optional[bool] = Query(None, description="Filter by validation outcome"),
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    sort: str = Query("desc", pattern="^(asc|desc)$", description="Sort order by checkout time"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get checkout attempts (Admin only)

    **Authentication:**
    - Requires role level >= 50 (Admin or above)

    **Query Parameters:**
    - employee_id / event_id: history of one employee or one event
    - is_valid: true for accepted, false for rejected attempts
    """
    filters = dict(
        tenant_id=tenant_id,
        event_id=event_id,
        employee_id=employee_id,
        partner_id=partner_id,
        checkin_id=checkin_id,
        is_valid=is_valid,
        date_from=_parse_date(date_from, "date_from"),
        date_to=_parse_date(date_to, "date_to")
    )

    checkouts = attendance_service.list_checkouts(db, skip=offset, limit=limit, sort=sort, **filters)
    total = attendance_service.count_checkouts(db, **filters)

    response = PaginationResponse(
        success=True,
        message="Checkouts retrieved successfully",
        data=checkouts,
        total=total,
        page=offset // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/checkouts/stats",
    response_model=DataResponse[CheckoutStats],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(50))]
)
async def get_checkout_stats(
    tenant_id: Optional[str] = Query(None, description="Filter by tenant ID"),
    event_id: Optional[str] = Query(None, description="Filter by event ID"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get checkout counts and worked hours (Admin only)

    **Response:**
    - total_work_hours / average_work_hours: over valid checkouts
    """
    stats = attendance_service.get_checkout_stats(db, tenant_id=tenant_id, event_id=event_id)

    response = DataResponse(
        success=True,
        message="Checkout stats retrieved successfully",
        data=stats
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/checkouts/recent",
    response_model=DataResponse[List[Checkout]],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(50))]
)
async def get_recent_checkouts(
    tenant_id: Optional[str] = Query(None, description="Filter by tenant ID"),
    limit: int = Query(10, ge=1, le=100, description="Number of checkouts to return"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """Get the latest checkout attempts (Admin only)"""
    checkouts = attendance_service.get_recent_checkouts(db, tenant_id=tenant_id, limit=limit)

    response = DataResponse(
        success=True,
        message="Recent checkouts retrieved successfully",
        data=checkouts
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/checkouts/{checkout_id}",
    response_model=DataResponse[Checkout],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(1))]
)
async def get_checkout(
    checkout_id: str,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """Get single checkout by ID"""
    checkout = attendance_service.get_checkout(db, checkout_id)

    response = DataResponse(
        success=True,
        message="Checkout retrieved successfully",
        data=checkout
    )

    return encrypt_response_data(response, settings)


@router.post(
    "/checkouts/{checkout_id}/notes",
    response_model=DataResponse[Checkout],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(1))]
)
async def add_checkout_note(
    checkout_id: str,
    request: NoteCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """Append a note to a checkout"""
    checkout = attendance_service.add_checkout_note(
        db, checkout_id, request.note, updated_by=current_user_id(current_user)
    )

    return DataResponse(
        success=True,
        message="Note added successfully",
        data=checkout
    )


@router.get(
    "/work-sessions",
    response_model=PaginationResponse[WorkSession],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(1))]
)
async def list_work_sessions(
    tenant_id: Optional[str] = Query(None, description="Filter by tenant ID"),
    event_id: Optional[str] = Query(None, description="Filter by event ID"),
    employee_id: Optional[str] = Query(None, description="Filter by employee ID"),
    partner_id: Optional[str] = Query(None, description="Filter by partner ID"),
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
    offset: int = Query(0, ge=0, description="Number of records to skip"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get work sessions derived from valid check-ins and their checkouts

    **Authentication:**
    - Requires valid user authentication (role level >= 1)

    **Response:**
    - is_complete: false while the check-in is still open
    - is_short / is_long: advisory flags for complete sessions
    """
    filters = dict(
        tenant_id=tenant_id,
        event_id=event_id,
        employee_id=employee_id,
        partner_id=partner_id,
        date_from=_parse_date(date_from, "date_from"),
        date_to=_parse_date(date_to, "date_to")
    )

    sessions = attendance_service.get_work_sessions(db, skip=offset, limit=limit, **filters)
    total = attendance_service.count_work_sessions(db, **filters)

    response = PaginationResponse(
        success=True,
        message="Work sessions retrieved successfully",
        data=sessions,
        total=total,
        page=offset // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/work-sessions/summary",
    response_model=DataResponse[WorkSessionSummary],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(50))]
)
async def get_work_session_summary(
    tenant_id: Optional[str] = Query(None, description="Filter by tenant ID"),
    event_id: Optional[str] = Query(None, description="Filter by event ID"),
    employee_id: Optional[str] = Query(None, description="Filter by employee ID"),
    partner_id: Optional[str] = Query(None, description="Filter by partner ID"),
    date_from: Optional[str] = Query(None, description="Start date (YYYY-MM-DD)"),
    date_to: Optional[str] = Query(None, description="End date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get totals over work sessions (Admin only)

    **Authentication:**
    - Requires role level >= 50 (Admin or above)
    """
    summary = attendance_service.get_work_session_summary(
        db,
        tenant_id=tenant_id,
        event_id=event_id,
        employee_id=employee_id,
        partner_id=partner_id,
        date_from=_parse_date(date_from, "date_from"),
        date_to=_parse_date(date_to, "date_to")
    )

    response = DataResponse(
        success=True,
        message="Work session summary retrieved successfully",
        data=summary
    )

    return encrypt_response_data(response, settings)
