"""Admin inbox for contact messages."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.errors import ValidationError
from ..core.security import require_admin
from .. import crud, schemas, models

router = APIRouter(prefix="/api/admin/contacts", tags=["Admin Contacts"])


def _contact_json(contact: models.Contact) -> dict:
    return schemas.ContactOut.model_validate(contact).to_json()


@router.get("")
def list_contacts(
    status: Optional[str] = Query(None, description="NEW, READ, REPLIED or all"),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("createdAt", alias="sortBy"),
    sort_order: str = Query("desc", alias="sortOrder"),
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    """Paginated inbox plus per-status counts."""
    contacts, pagination = crud.list_contacts(
        db,
        status=status,
        search=search,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order,
    )
    return {
        "success": True,
        "data": {
            "contacts": [_contact_json(c) for c in contacts],
            "pagination": pagination,
            "statusStats": crud.get_status_stats(db),
        },
    }


@router.delete("")
def delete_contacts(
    ids: Optional[str] = Query(None, description="Comma separated contact ids"),
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    contact_ids = [value.strip() for value in (ids or "").split(",") if value.strip()]
    if not contact_ids:
        raise ValidationError("No contact IDs provided")

    deleted = crud.delete_contacts(db, contact_ids)
    return {
        "success": True,
        "message": f"Deleted {deleted} contact(s)",
        "data": {"deletedCount": deleted},
    }


@router.get("/{contact_id}")
def get_contact(
    contact_id: str,
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    return {"success": True, "data": _contact_json(crud.get_contact(db, contact_id))}


@router.patch("/{contact_id}")
def update_contact(
    contact_id: str,
    update: schemas.ContactStatusUpdate,
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    contact = crud.update_contact_status(db, contact_id, update.status)
    return {"success": True, "data": _contact_json(contact), "message": "Contact updated successfully"}


@router.delete("/{contact_id}")
def delete_contact(
    contact_id: str,
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    crud.delete_contact(db, contact_id)
    return {"success": True, "message": "Contact deleted successfully"}
