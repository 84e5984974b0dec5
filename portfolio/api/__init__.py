"""API routes module."""

from .auth import router as auth_router
from .contact import router as contact_router
from .projects import router as projects_router
from .profile import router as profile_router
from .tracking import router as tracking_router
from .analytics import router as analytics_router
from .cleanup import router as cleanup_router
from .admin_contacts import router as admin_contacts_router
from .admin_projects import router as admin_projects_router
from .files import router as files_router
from .system import router as system_router

__all__ = [
    "auth_router",
    "contact_router",
    "projects_router",
    "profile_router",
    "tracking_router",
    "analytics_router",
    "cleanup_router",
    "admin_contacts_router",
    "admin_projects_router",
    "files_router",
    "system_router",
]
