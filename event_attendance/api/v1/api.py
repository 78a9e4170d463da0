from fastapi import APIRouter
from event_attendance.api.v1.endpoints import events, attendance, maintenance

api_router = APIRouter()

# Register routes
api_router.include_router(events.router, prefix="/events", tags=["Events"])
api_router.include_router(attendance.router, prefix="/attendance", tags=["Attendance"])
api_router.include_router(maintenance.router, prefix="/maintenance", tags=["Maintenance"])
