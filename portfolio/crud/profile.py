"""Site owner profile operations. The table holds at most one meaningful row."""

from typing import Optional

from sqlalchemy.orm import Session

from ..models import Profile, utcnow
from ..schemas import ProfileIn


def get_profile(db: Session) -> Optional[Profile]:
    """Return the first profile row, if any."""
    return db.query(Profile).order_by(Profile.created_at.asc()).first()


def upsert_profile(db: Session, profile_in: ProfileIn) -> Profile:
    """Update the existing profile or create it when none exists."""
    values = profile_in.model_dump()
    profile = get_profile(db)
    if profile is None:
        profile = Profile(**values)
        db.add(profile)
    else:
        for field, value in values.items():
            setattr(profile, field, value)
        profile.updated_at = utcnow()
    db.commit()
    db.refresh(profile)
    return profile
