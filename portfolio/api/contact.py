"""Public contact form endpoint."""

import logging
import re
from typing import Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.email_service import email_service
from ..core.errors import RateLimitError, ValidationError
from ..core.geolocation import get_client_ip
from ..core.rate_limit import CONTACT_FORM_POLICY, RateLimiter, get_rate_limiter, minutes_until
from .. import crud, schemas

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/contact", tags=["Contact"])

MAX_INPUT_LENGTH = 10000


def sanitize_input(value: Optional[str]) -> str:
    """Trim, drop angle brackets and cap the length of a free-text field."""
    if not value:
        return ""
    return re.sub(r"[<>]", "", value.strip())[:MAX_INPUT_LENGTH]


def validate_contact(name: str, email: str, subject: str, message: str) -> Dict[str, str]:
    """Field name -> error message for every invalid field."""
    errors = {}

    if not name or len(name) < 2:
        errors["name"] = "Name must be at least 2 characters long"
    elif len(name) > 100:
        errors["name"] = "Name must be less than 100 characters"

    if not email:
        errors["email"] = "Email is required"
    elif not schemas.is_valid_email(email):
        errors["email"] = "Please enter a valid email address"

    if subject and len(subject) > 200:
        errors["subject"] = "Subject must be less than 200 characters"

    if not message or len(message) < 10:
        errors["message"] = "Message must be at least 10 characters long"
    elif len(message) > 5000:
        errors["message"] = "Message must be less than 5000 characters"

    return errors


def contact_rate_limit_key(request: Request) -> str:
    user_agent = request.headers.get("user-agent", "unknown")
    return f"{get_client_ip(request)}-{user_agent[:50]}"


@router.post("")
async def submit_contact(
    submission: schemas.ContactSubmission,
    request: Request,
    background_tasks: BackgroundTasks,
    limiter: RateLimiter = Depends(get_rate_limiter),
    db: Session = Depends(get_db)
) -> dict:
    """Store a contact message and notify the site owner by email."""
    result = limiter.hit(contact_rate_limit_key(request), CONTACT_FORM_POLICY)
    if not result.allowed:
        raise RateLimitError(
            f"Too many requests. Please try again in {minutes_until(result.retry_after)} minutes.",
            retry_after=result.retry_after,
        )

    # Bots fill in the hidden field; pretend everything worked
    if submission.website:
        logger.info("Honeypot field filled, dropping contact submission")
        return {"success": True, "message": "Message sent successfully"}

    name = sanitize_input(submission.name)
    email = sanitize_input(submission.email).lower()
    subject = sanitize_input(submission.subject)
    message = sanitize_input(submission.message)

    errors = validate_contact(name, email, subject, message)
    if errors:
        raise ValidationError("Validation failed", data=errors)

    contact = crud.create_contact(db, name=name, email=email, subject=subject or None, message=message)
    logger.info(f"📨 New contact message {contact.id} from {email}")

    background_tasks.add_task(
        email_service.send_contact_notification, name, email, subject or None, message
    )

    return {"success": True, "message": "Message sent successfully", "data": {"id": contact.id}}


@router.get("", include_in_schema=False)
async def contact_method_not_allowed() -> dict:
    raise HTTPException(status_code=status.HTTP_405_METHOD_NOT_ALLOWED, detail="Method not allowed")
