"""
Employee Face Repository - Data access layer for registered face embeddings
"""
from typing import Optional, List
from sqlalchemy.orm import Session

from atams.db import BaseRepository
from event_attendance.models.employee_face import EmployeeFace


class EmployeeFaceRepository(BaseRepository[EmployeeFace]):
    def __init__(self):
        super().__init__(EmployeeFace)

    def get_embedding(self, db: Session, tenant_id: str, employee_id: str) -> Optional[List[float]]:
        """Get the employee's reference embedding, or None when none is registered"""
        face = db.query(EmployeeFace).filter(
            EmployeeFace.employee_id == employee_id,
            EmployeeFace.tenant_id == tenant_id
        ).first()
        return face.embedding if face else None
