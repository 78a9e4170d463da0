# Only the validation engine is re-exported; it has no settings or database
# dependency. Import the I/O services from their own modules.
from .face_service import FaceMatcher, cosine_similarity
from .attendance_validator import AttendanceValidator
from .work_session_service import WorkSessionDeriver

__all__ = [
    "FaceMatcher",
    "cosine_similarity",
    "AttendanceValidator",
    "WorkSessionDeriver"
]
