"""
Events Endpoints - CRUD, lifecycle and QR tokens for events
"""
from typing import Optional
from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session

from event_attendance.db.session import get_db
from event_attendance.services.attendance_service import AttendanceService
from event_attendance.services.event_service import EventService
from event_attendance.schemas import (
    Event,
    EventCreate,
    EventUpdate,
    EventQrToken,
    EventStats,
    EventStatus,
    DataResponse,
    PaginationResponse
)
from event_attendance.api.deps import current_user_id, require_auth, require_min_role_level
from event_attendance.core.config import settings
from atams.encryption import encrypt_response_data
from atams.exceptions import ForbiddenException

router = APIRouter()
event_service = EventService()
attendance_service = AttendanceService()


@router.get(
    "/",
    response_model=PaginationResponse[Event],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(1))]
)
async def list_events(
    tenant_id: Optional[str] = Query(None, description="Filter by tenant ID"),
    search: str = Query("", description="Search events by name"),
    event_status: Optional[EventStatus] = Query(None, alias="status", description="Filter by status (active/inactive/deleted)"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get list of events with pagination and search

    **Authorization:**
    - Requires role level >= 1
    """
    events = event_service.list_events(
        db, tenant_id=tenant_id, search=search, status=event_status, skip=skip, limit=limit
    )
    total = event_service.count_events(db, tenant_id=tenant_id, search=search, status=event_status)

    response = PaginationResponse(
        success=True,
        message="Events retrieved successfully",
        data=events,
        total=total,
        page=skip // limit + 1,
        size=limit,
        pages=(total + limit - 1) // limit
    )

    return encrypt_response_data(response, settings)


@router.get(
    "/{event_id}",
    response_model=DataResponse[Event],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(1))]
)
async def get_event(
    event_id: str,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get single event by ID

    **Authorization:**
    - Requires role level >= 1
    """
    event = event_service.get_event(db, event_id)

    response = DataResponse(
        success=True,
        message="Event retrieved successfully",
        data=event
    )

    return encrypt_response_data(response, settings)


@router.post(
    "/",
    response_model=DataResponse[Event],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_min_role_level(50))]
)
async def create_event(
    event: EventCreate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Create new event

    **Authorization:**
    - Requires role level >= 50 (Admin or above)

    **Validation:**
    - name: 3-255 characters
    - location: 1-500 characters
    - final_date after initial_date, at most 30 days apart
    - fence: 3-100 points, required if GEOFENCE_ENFORCED=true
    """
    new_event = event_service.create_event(
        db,
        event,
        created_by=current_user_id(current_user),
        geofence_required=settings.GEOFENCE_ENFORCED
    )

    return DataResponse(
        success=True,
        message="Event created successfully",
        data=new_event
    )


@router.put(
    "/{event_id}",
    response_model=DataResponse[Event],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(50))]
)
async def update_event(
    event_id: str,
    event: EventUpdate,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Update existing event

    **Authorization:**
    - Requires role level >= 50 (Admin or above)

    **Rules while the event is ongoing:**
    - initial_date cannot change
    - final_date can only be extended
    """
    updated_event = event_service.update_event(db, event_id, event, updated_by=current_user_id(current_user))

    return DataResponse(
        success=True,
        message="Event updated successfully",
        data=updated_event
    )


@router.post(
    "/{event_id}/activate",
    response_model=DataResponse[Event],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(50))]
)
async def activate_event(
    event_id: str,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Activate event

    **Authorization:**
    - Requires role level >= 50 (Admin or above)
    """
    event = event_service.activate_event(db, event_id, updated_by=current_user_id(current_user))

    return DataResponse(
        success=True,
        message="Event activated successfully",
        data=event
    )


@router.post(
    "/{event_id}/deactivate",
    response_model=DataResponse[Event],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(50))]
)
async def deactivate_event(
    event_id: str,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Deactivate event

    **Authorization:**
    - Requires role level >= 50 (Admin or above)

    **Errors:**
    - 409: Event is ongoing
    """
    event = event_service.deactivate_event(db, event_id, updated_by=current_user_id(current_user))

    return DataResponse(
        success=True,
        message="Event deactivated successfully",
        data=event
    )


@router.delete(
    "/{event_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(require_min_role_level(50))]
)
async def delete_event(
    event_id: str,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Delete event (soft delete)

    **Authorization:**
    - Requires role level >= 50 (Admin or above)

    **Errors:**
    - 409: Event is ongoing
    """
    event_service.delete_event(db, event_id, updated_by=current_user_id(current_user))

    # 204 returns no content
    return None


@router.get(
    "/{event_id}/qr-token",
    response_model=DataResponse[EventQrToken],
    status_code=status.HTTP_200_OK
)
async def get_qr_token(
    event_id: str,
    x_display_key: str = Header(..., alias="X-Display-Key"),
    db: Session = Depends(get_db)
):
    """
    Generate short-lived JWT token for QR display

    **Authentication:**
    - Requires X-Display-Key header matching DISPLAY_API_KEY

    **Response:**
    - JWT token valid for QR_TOKEN_VALIDITY_SECONDS
    - Token id used for single-use tracking
    """
    if x_display_key != settings.DISPLAY_API_KEY:
        raise ForbiddenException("Invalid display API key")

    token = event_service.generate_qr_token(db, event_id)

    return DataResponse(
        success=True,
        message="QR token generated successfully",
        data=token
    )


@router.get(
    "/{event_id}/stats",
    response_model=DataResponse[EventStats],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(50))]
)
async def get_event_stats(
    event_id: str,
    db: Session = Depends(get_db),
    current_user: dict = Depends(require_auth)
):
    """
    Get check-in, checkout and work session figures for an event

    **Authorization:**
    - Requires role level >= 50 (Admin or above)

    **Errors:**
    - 404: Event not found
    """
    stats = attendance_service.get_event_stats(db, event_id)

    response = DataResponse(
        success=True,
        message="Event stats retrieved successfully",
        data=stats
    )

    return encrypt_response_data(response, settings)
