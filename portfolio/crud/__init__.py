"""CRUD operations module."""

from .auth import get_password_hash, verify_password, revoke_token, is_token_revoked, purge_expired_tokens
from .users import (
    create_user,
    get_user_by_email,
    get_user_by_id,
    authenticate_user,
    ensure_admin_user
)
from .contacts import (
    create_contact,
    get_contact,
    list_contacts,
    get_status_stats,
    update_contact_status,
    delete_contact,
    delete_contacts
)
from .projects import (
    generate_slug,
    list_published_projects,
    count_published_projects,
    list_admin_projects,
    get_project,
    get_published_project_by_slug,
    create_project,
    update_project,
    delete_project,
    bulk_update_order,
    bulk_update_status,
    bulk_delete
)
from .profile import get_profile, upsert_profile
from .tracking import (
    generate_session_id,
    record_page_view,
    touch_session,
    end_session,
    record_web_vital,
    record_client_error
)
from .cleanup_schedules import (
    validate_retention_days,
    compute_next_run,
    create_schedule,
    list_schedules,
    get_schedule,
    get_due_schedules,
    mark_schedule_run
)

__all__ = [
    # Auth
    "get_password_hash",
    "verify_password",
    "revoke_token",
    "is_token_revoked",
    "purge_expired_tokens",

    # Users
    "create_user",
    "get_user_by_email",
    "get_user_by_id",
    "authenticate_user",
    "ensure_admin_user",

    # Contacts
    "create_contact",
    "get_contact",
    "list_contacts",
    "get_status_stats",
    "update_contact_status",
    "delete_contact",
    "delete_contacts",

    # Projects
    "generate_slug",
    "list_published_projects",
    "count_published_projects",
    "list_admin_projects",
    "get_project",
    "get_published_project_by_slug",
    "create_project",
    "update_project",
    "delete_project",
    "bulk_update_order",
    "bulk_update_status",
    "bulk_delete",

    # Profile
    "get_profile",
    "upsert_profile",

    # Tracking
    "generate_session_id",
    "record_page_view",
    "touch_session",
    "end_session",
    "record_web_vital",
    "record_client_error",

    # Cleanup schedules
    "validate_retention_days",
    "compute_next_run",
    "create_schedule",
    "list_schedules",
    "get_schedule",
    "get_due_schedules",
    "mark_schedule_run",
]
