"""Roles and the permission set each role resolves to."""

from enum import Enum
from typing import Dict, FrozenSet


class Role(str, Enum):
    """User roles."""

    ADMIN = "admin"
    EMPLOYER = "employer"
    APPLICANT = "applicant"


# Roles a user may pick for themselves at registration
SELF_REGISTERABLE_ROLES = frozenset({Role.APPLICANT, Role.EMPLOYER})


class Permission(str, Enum):
    """Capabilities checked by route guards."""

    # Admin
    MANAGE_USERS = "users:manage"
    MANAGE_JOBS = "jobs:manage"
    MANAGE_ROLES = "roles:manage"
    VIEW_ANALYTICS = "analytics:read"
    MODERATE_CONTENT = "content:moderate"
    VIEW_AUDIT_LOGS = "audit:read"
    SYSTEM_SETTINGS = "system:settings"

    # Employer
    POST_JOBS = "jobs:create"
    EDIT_OWN_JOBS = "jobs:update_own"
    DELETE_OWN_JOBS = "jobs:delete_own"
    VIEW_APPLICATIONS = "applications:read"
    MANAGE_APPLICATIONS = "applications:manage"
    MANAGE_COMPANY_PROFILE = "company:manage"
    VIEW_OWN_ANALYTICS = "analytics:read_own"

    # Applicant
    APPLY_JOBS = "applications:create"
    VIEW_JOBS = "jobs:read"
    MANAGE_OWN_PROFILE = "profile:manage"
    TRACK_APPLICATIONS = "applications:track"
    BOOKMARK_JOBS = "bookmarks:manage"
    UPLOAD_RESUME = "resume:upload"


ROLE_PERMISSIONS: Dict[Role, FrozenSet[Permission]] = {
    Role.ADMIN: frozenset({
        Permission.MANAGE_USERS,
        Permission.MANAGE_JOBS,
        Permission.MANAGE_APPLICATIONS,
        Permission.VIEW_ANALYTICS,
        Permission.MANAGE_ROLES,
        Permission.MODERATE_CONTENT,
        Permission.VIEW_AUDIT_LOGS,
        Permission.SYSTEM_SETTINGS,
    }),
    Role.EMPLOYER: frozenset({
        Permission.POST_JOBS,
        Permission.EDIT_OWN_JOBS,
        Permission.DELETE_OWN_JOBS,
        Permission.VIEW_APPLICATIONS,
        Permission.MANAGE_APPLICATIONS,
        Permission.MANAGE_COMPANY_PROFILE,
        Permission.VIEW_OWN_ANALYTICS,
    }),
    Role.APPLICANT: frozenset({
        Permission.APPLY_JOBS,
        Permission.VIEW_JOBS,
        Permission.MANAGE_OWN_PROFILE,
        Permission.TRACK_APPLICATIONS,
        Permission.BOOKMARK_JOBS,
        Permission.UPLOAD_RESUME,
    }),
}


def permissions_for(role: Role) -> FrozenSet[Permission]:
    """Return the permission set granted to ``role``."""
    return ROLE_PERMISSIONS.get(Role(role), frozenset())
