"""Site owner profile."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.errors import NotFoundError, ValidationError
from ..core.security import require_admin
from .. import crud, schemas, models

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/profile", tags=["Profile"])

REQUIRED_FIELDS = ("name", "title", "bio", "email")


@router.get("")
def get_profile(db: Session = Depends(get_db)) -> dict:
    profile = crud.get_profile(db)
    if not profile:
        raise NotFoundError("Profile not found")
    return {"success": True, "data": schemas.ProfileOut.model_validate(profile).to_json()}


@router.put("")
def update_profile(
    profile_in: schemas.ProfileIn,
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    """Create or replace the single profile row."""
    for field in REQUIRED_FIELDS:
        if not getattr(profile_in, field).strip():
            raise ValidationError(f"{field} is required")
    if not schemas.is_valid_email(profile_in.email.strip()):
        raise ValidationError("Invalid email format")

    profile = crud.upsert_profile(db, profile_in)
    logger.info(f"Profile updated by {current_user.email}")
    return {
        "success": True,
        "data": schemas.ProfileOut.model_validate(profile).to_json(),
        "message": "Profile updated successfully",
    }
