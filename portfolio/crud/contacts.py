"""Contact message CRUD operations."""

import math
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..core.errors import NotFoundError, ValidationError
from ..models import Contact, ContactStatus, utcnow

SORTABLE_FIELDS = {
    "createdAt": Contact.created_at,
    "updatedAt": Contact.updated_at,
    "name": Contact.name,
    "email": Contact.email,
    "subject": Contact.subject,
    "status": Contact.status,
}
MAX_PAGE_SIZE = 100


def create_contact(db: Session, name: str, email: str, message: str, subject: Optional[str] = None) -> Contact:
    """Store a new contact message with status NEW."""
    db_contact = Contact(
        name=name,
        email=email,
        subject=subject or None,
        message=message,
        status=ContactStatus.NEW.value,
    )
    db.add(db_contact)
    db.commit()
    db.refresh(db_contact)
    return db_contact


def get_contact(db: Session, contact_id: str) -> Contact:
    contact = db.query(Contact).filter(Contact.id == contact_id).first()
    if not contact:
        raise NotFoundError("Contact not found")
    return contact


def list_contacts(
    db: Session,
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
) -> Tuple[List[Contact], Dict[str, int]]:
    """Filtered, sorted page of contacts plus pagination info."""
    page = max(1, page)
    limit = min(max(1, limit), MAX_PAGE_SIZE)

    query = db.query(Contact)
    if status and status != "all":
        query = query.filter(Contact.status == validate_status(status))
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            Contact.name.ilike(pattern),
            Contact.email.ilike(pattern),
            Contact.subject.ilike(pattern),
            Contact.message.ilike(pattern),
        ))

    total = query.count()
    column = SORTABLE_FIELDS.get(sort_by, Contact.created_at)
    ordering = column.asc() if sort_order.lower() == "asc" else column.desc()
    contacts = query.order_by(ordering, Contact.id).offset((page - 1) * limit).limit(limit).all()

    total_pages = math.ceil(total / limit) if total else 0
    pagination = {
        "page": page,
        "limit": limit,
        "totalCount": total,
        "totalPages": total_pages,
        "hasNext": page < total_pages,
        "hasPrev": page > 1,
    }
    return contacts, pagination


def get_status_stats(db: Session) -> Dict[str, int]:
    """Message counts per status, plus the overall total under ``all``."""
    stats = {"all": 0, **{status.value: 0 for status in ContactStatus}}
    rows = db.query(Contact.status, func.count(Contact.id)).group_by(Contact.status).all()
    for status, count in rows:
        stats[status] = count
        stats["all"] += count
    return stats


def validate_status(status: str) -> str:
    allowed = [s.value for s in ContactStatus]
    if status not in allowed:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(allowed)}")
    return status


def update_contact_status(db: Session, contact_id: str, status: str) -> Contact:
    contact = get_contact(db, contact_id)
    contact.status = validate_status(status)
    contact.updated_at = utcnow()
    db.commit()
    db.refresh(contact)
    return contact


def delete_contact(db: Session, contact_id: str) -> None:
    contact = get_contact(db, contact_id)
    db.delete(contact)
    db.commit()


def delete_contacts(db: Session, contact_ids: List[str]) -> int:
    """Delete several contacts in one statement; returns how many existed."""
    deleted = db.query(Contact).filter(Contact.id.in_(contact_ids)).delete(synchronize_session=False)
    db.commit()
    return deleted
