"""
Maintenance Endpoints - housekeeping of QR token usage records
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from event_attendance.db.session import get_db
from event_attendance.services.cleanup_service import CleanupService
from event_attendance.schemas import CleanupResult, DataResponse
from event_attendance.api.deps import require_min_role_level

router = APIRouter()
cleanup_service = CleanupService()


@router.post(
    "/cleanup-qr-tokens",
    response_model=DataResponse[CleanupResult],
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_min_role_level(50))]
)
async def cleanup_qr_tokens(
    days_old: int = Query(7, ge=1, le=30, description="Delete usage records older than this many days"),
    db: Session = Depends(get_db)
):
    """
    Purge QR token usage records recorded before now - days_old

    **Authorization:**
    - Requires role level >= 50 (Admin or above)

    **Response:**
    - cutoff_time: records older than this were deleted
    - deleted_count / remaining_count: rows removed and rows still tracked
    """
    result = cleanup_service.cleanup_used_qr_tokens(db, days_old=days_old)

    return DataResponse(
        success=True,
        message=f"Deleted {result.deleted_count} QR token records, {result.remaining_count} remaining",
        data=result
    )
