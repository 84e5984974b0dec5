# models.py
# Database tables for the portfolio site: admin accounts, published content,
# the contact inbox and the raw analytics rows the dashboard aggregates.

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Index, Integer, JSON, String, Text

from .core.database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp; every datetime column stores UTC without tzinfo."""
    return datetime.utcnow()


def new_id() -> str:
    return str(uuid.uuid4())


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"


class ProjectStatus(str, Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"


class ContactStatus(str, Enum):
    NEW = "NEW"
    READ = "READ"
    REPLIED = "REPLIED"


class CleanupFrequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


# --- Accounts ---

class User(Base):
    """Dashboard account. Only ADMIN users may reach the admin API."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(255))
    role = Column(String(20), nullable=False, default=UserRole.USER.value)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value


class RevokedToken(Base):
    """Session tokens that were explicitly logged out before they expired."""
    __tablename__ = "token_blocklist"

    id = Column(String(36), primary_key=True, default=new_id)
    jti = Column(String(64), unique=True, index=True, nullable=False)
    user_id = Column(String(36), nullable=True)
    revoked_at = Column(DateTime, default=utcnow, nullable=False)
    expires_at = Column(DateTime, nullable=True)


# --- Content ---

class Project(Base):
    __tablename__ = "projects"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=False)
    short_description = Column(String(500), nullable=False)
    technologies = Column(JSON, nullable=False, default=list)
    images = Column(JSON, nullable=False, default=list)
    live_url = Column(String(2048))
    github_url = Column(String(2048))
    featured = Column(Boolean, nullable=False, default=False)
    order = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default=ProjectStatus.DRAFT.value, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Profile(Base):
    """Single-row table holding the site owner's public profile."""
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    title = Column(String(255), nullable=False)
    bio = Column(Text, nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(50))
    location = Column(String(255))
    profile_image = Column(String(2048))
    skills = Column(JSON, nullable=False, default=list)
    experience = Column(JSON, nullable=False, default=list)
    education = Column(JSON, nullable=False, default=list)
    social_links = Column(JSON, nullable=False, default=dict)
    resume_url = Column(String(2048))
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class Contact(Base):
    """Message submitted through the public contact form."""
    __tablename__ = "contacts"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False)
    subject = Column(String(200))
    message = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default=ContactStatus.NEW.value, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


# --- Analytics ---
# Append-only rows. Only retention cleanup deletes them.

class AnalyticsEvent(Base):
    __tablename__ = "analytics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    page_url = Column(String(2048), nullable=False)
    page_title = Column(String(500))
    referrer = Column(String(2048))
    user_agent = Column(String(1024))
    ip_address = Column(String(64))
    country = Column(String(100))
    city = Column(String(100))
    device = Column(String(50))
    browser = Column(String(100))
    session_id = Column(String(128), nullable=False, index=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)

    __table_args__ = (
        Index("ix_analytics_session_page_time", "session_id", "page_url", "timestamp"),
    )


class PageView(Base):
    __tablename__ = "page_views"

    id = Column(Integer, primary_key=True, autoincrement=True)
    page_url = Column(String(2048), nullable=False)
    referrer = Column(String(2048))
    session_id = Column(String(128), nullable=False, index=True)
    timestamp = Column(DateTime, default=utcnow, nullable=False, index=True)

    __table_args__ = (
        Index("ix_page_views_session_time", "session_id", "timestamp"),
    )


class VisitorSession(Base):
    """
    A coarse visitor bucket.

    ``session_id`` is derived from IP and user agent, so every visit from the
    same client fingerprint collapses into one row.
    """
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(String(128), unique=True, index=True, nullable=False)
    user_agent = Column(String(1024))
    ip_address = Column(String(64))
    country = Column(String(100))
    city = Column(String(100))
    device = Column(String(50))
    browser = Column(String(100))
    start_time = Column(DateTime, default=utcnow, nullable=False, index=True)
    end_time = Column(DateTime, index=True)
    page_views = Column(Integer, nullable=False, default=0)


class CleanupSchedule(Base):
    """A recurring retention cleanup run by the background scheduler."""
    __tablename__ = "cleanup_schedules"

    id = Column(String(36), primary_key=True, default=new_id)
    enabled = Column(Boolean, nullable=False, default=True)
    retention_days = Column(Integer, nullable=False, default=365)
    schedule = Column(String(20), nullable=False, default=CleanupFrequency.WEEKLY.value)
    aggressive = Column(Boolean, nullable=False, default=False)
    next_run = Column(DateTime, nullable=False, index=True)
    last_run = Column(DateTime)
    last_result = Column(JSON)
    created_at = Column(DateTime, default=utcnow, nullable=False)
