"""Authentication-related CRUD operations."""

from datetime import datetime
from typing import Optional

from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models import RevokedToken

# Password hashing context with explicit bcrypt backend
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__default_rounds=12,
    bcrypt__default_ident="2b"
)


def _truncate(password: str) -> str:
    # bcrypt only looks at the first 72 bytes
    password_bytes = password.encode("utf-8")[:72]
    return password_bytes.decode("utf-8", errors="ignore")


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt (max 72 bytes)."""
    return pwd_context.hash(_truncate(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash (max 72 bytes)."""
    try:
        return pwd_context.verify(_truncate(plain_password), hashed_password)
    except ValueError:
        # Malformed or unknown hash format
        return False


def revoke_token(db: Session, jti: str, user_id: Optional[str], expires_at: Optional[datetime]) -> None:
    """Add a token id to the blocklist. Revoking twice is a no-op."""
    if is_token_revoked(db, jti):
        return
    db.add(RevokedToken(jti=jti, user_id=user_id, expires_at=expires_at))
    try:
        db.commit()
    except IntegrityError:
        # A concurrent logout already recorded it
        db.rollback()


def is_token_revoked(db: Session, jti: str) -> bool:
    return db.query(RevokedToken.id).filter(RevokedToken.jti == jti).first() is not None


def purge_expired_tokens(db: Session, now: datetime) -> int:
    """Drop blocklist entries for tokens that have expired anyway."""
    deleted = db.query(RevokedToken).filter(
        RevokedToken.expires_at.isnot(None),
        RevokedToken.expires_at < now
    ).delete(synchronize_session=False)
    db.commit()
    return deleted
