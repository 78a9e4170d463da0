"""
API Dependencies
Provides authentication and authorization dependencies using ATAMS factory pattern
"""
from typing import Optional

from atams.sso import create_atlas_client, create_auth_dependencies
from event_attendance.core.config import settings

# Initialize Atlas SSO client using factory
atlas_client = create_atlas_client(settings)

# Create auth dependencies using factory
get_current_user, require_auth, require_min_role_level, require_role_level = create_auth_dependencies(atlas_client)


def current_user_id(current_user: dict) -> Optional[str]:
    """Atlas user id as stored in created_by/updated_by columns"""
    user_id = current_user.get("user_id")
    return str(user_id) if user_id is not None else None


__all__ = [
    "atlas_client",
    "get_current_user",
    "require_auth",
    "require_min_role_level",
    "require_role_level",
    "current_user_id",
]
