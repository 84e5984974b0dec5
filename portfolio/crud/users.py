"""User-related CRUD operations."""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models import User, UserRole
from .auth import get_password_hash, verify_password

logger = logging.getLogger(__name__)


def create_user(
    db: Session,
    email: str,
    password: str,
    name: Optional[str] = None,
    role: UserRole = UserRole.USER,
) -> User:
    """Create a new dashboard user."""
    db_user = User(
        email=email.strip().lower(),
        password_hash=get_password_hash(password),
        name=name,
        role=role.value,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    """Get a user by email."""
    return db.query(User).filter(
        func.lower(User.email) == func.lower(email.strip())
    ).first()


def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
    """Get a user by ID."""
    return db.query(User).filter(User.id == user_id).first()


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """Authenticate a user by email and password."""
    user = get_user_by_email(db, email=email)
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


def ensure_admin_user(db: Session, email: Optional[str], password: Optional[str], name: str = "Admin") -> Optional[User]:
    """Create the bootstrap admin account when credentials are configured and it does not exist yet."""
    if not email or not password:
        logger.info("Admin bootstrap skipped: ADMIN_EMAIL/ADMIN_PASSWORD not set")
        return None

    existing = get_user_by_email(db, email)
    if existing:
        if not existing.is_admin:
            existing.role = UserRole.ADMIN.value
            db.commit()
            logger.info(f"Promoted {existing.email} to ADMIN")
        return existing

    user = create_user(db, email=email, password=password, name=name, role=UserRole.ADMIN)
    logger.info(f"👤 Created admin account {user.email}")
    return user
