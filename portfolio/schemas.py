from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel


_email_adapter = TypeAdapter(EmailStr)


def is_valid_email(value: str) -> bool:
    """Whether ``value`` is an address pydantic's ``EmailStr`` accepts."""
    try:
        _email_adapter.validate_python(value)
    except PydanticValidationError:
        return False
    return True


# ====================================================================================
# --- Base: JSON bodies use camelCase keys, Python code uses snake_case. ---
# ====================================================================================
class CamelModel(BaseModel):
    """Schema whose fields are read and written under camelCase aliases."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True

    def to_json(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


# ====================================================================================
# --- Auth ---
# ====================================================================================
class LoginRequest(CamelModel):
    email: str = Field(..., description="Admin email address")
    password: str = Field(..., description="Admin password")


class UserOut(CamelModel):
    id: str
    email: str
    name: Optional[str] = None
    role: str


# ====================================================================================
# --- Contact messages ---
# ====================================================================================
class ContactSubmission(CamelModel):
    """Public contact form. Fields are validated by hand so every problem is reported per field."""
    name: Optional[str] = None
    email: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None
    website: Optional[str] = Field(None, description="Honeypot; humans never fill it in")


class ContactOut(CamelModel):
    id: str
    name: str
    email: str
    subject: Optional[str] = None
    message: str
    status: str
    created_at: datetime
    updated_at: datetime


class ContactStatusUpdate(CamelModel):
    status: str


# ====================================================================================
# --- Projects ---
# ====================================================================================
class ProjectCreate(CamelModel):
    title: str
    description: str
    short_description: str
    technologies: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    live_url: Optional[str] = None
    github_url: Optional[str] = None
    featured: bool = False
    order: Optional[int] = None
    status: Literal["DRAFT", "PUBLISHED"] = "DRAFT"


class ProjectUpdate(CamelModel):
    title: Optional[str] = None
    description: Optional[str] = None
    short_description: Optional[str] = None
    technologies: Optional[List[str]] = None
    images: Optional[List[str]] = None
    live_url: Optional[str] = None
    github_url: Optional[str] = None
    featured: Optional[bool] = None
    order: Optional[int] = None
    status: Optional[Literal["DRAFT", "PUBLISHED"]] = None


class ProjectOut(CamelModel):
    id: str
    title: str
    slug: str
    description: str
    short_description: str
    technologies: List[str] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    live_url: Optional[str] = None
    github_url: Optional[str] = None
    featured: bool
    order: int
    status: str
    created_at: datetime
    updated_at: datetime


class ProjectOrderItem(CamelModel):
    id: str
    order: int


class BulkProjectAction(CamelModel):
    action: str
    project_ids: Optional[List[str]] = None
    data: Optional[Any] = None


# ====================================================================================
# --- Profile ---
# ====================================================================================
class ProfileIn(CamelModel):
    name: str
    title: str
    bio: str
    email: str
    phone: Optional[str] = None
    location: Optional[str] = None
    profile_image: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    experience: List[Dict[str, Any]] = Field(default_factory=list)
    education: List[Dict[str, Any]] = Field(default_factory=list)
    social_links: Dict[str, Any] = Field(default_factory=dict)
    resume_url: Optional[str] = None


class ProfileOut(ProfileIn):
    id: str
    created_at: datetime
    updated_at: datetime


# ====================================================================================
# --- Tracking ---
# ====================================================================================
class TrackRequest(CamelModel):
    page_url: str = Field(..., min_length=1)
    page_title: Optional[str] = None
    referrer: Optional[str] = None
    session_id: Optional[str] = None


class SessionRequest(CamelModel):
    session_id: Optional[str] = None
    action: Literal["start", "heartbeat", "end"] = "heartbeat"


class WebVitalRequest(CamelModel):
    name: str
    value: float
    id: str
    url: str
    rating: Optional[str] = None
    delta: Optional[float] = None
    navigation_type: Optional[str] = None
    pathname: Optional[str] = None
    timestamp: Optional[Union[int, float, str]] = None
    user_agent: Optional[str] = None


class ClientErrorReport(CamelModel):
    message: str
    url: str
    timestamp: Union[int, float, str]
    stack: Optional[str] = None
    digest: Optional[str] = None
    user_agent: Optional[str] = None


# ====================================================================================
# --- Cleanup ---
# ====================================================================================
class CleanupRequest(CamelModel):
    retention_days: int = 365
    dry_run: bool = False
    aggressive: bool = False
    compact: bool = False


class CleanupScheduleCreate(CamelModel):
    retention_days: int = 365
    schedule: str = "weekly"
    aggressive: bool = False
    enabled: bool = True


class CleanupScheduleOut(CamelModel):
    id: str
    enabled: bool
    retention_days: int
    schedule: str
    aggressive: bool
    next_run: datetime
    last_run: Optional[datetime] = None
    last_result: Optional[Dict[str, Any]] = None
    created_at: datetime


# ====================================================================================
# --- Misc ---
# ====================================================================================
class FileDeleteRequest(CamelModel):
    file_keys: Optional[List[str]] = None


class StreamCommand(CamelModel):
    action: str
    config: Optional[Dict[str, Any]] = None
