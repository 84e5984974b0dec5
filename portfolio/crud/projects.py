"""Project CRUD operations."""

import re
from typing import Iterable, List, Optional

from sqlalchemy import String, cast, func
from sqlalchemy.orm import Session

from ..core.errors import NotFoundError, ValidationError
from ..models import Project, ProjectStatus, utcnow
from ..schemas import ProjectCreate, ProjectOrderItem, ProjectUpdate

DUPLICATE_SLUG_MESSAGE = "A project with this title already exists"
NULLABLE_FIELDS = ("live_url", "github_url")


def generate_slug(title: str) -> str:
    """Lower-case the title and collapse every run of non-alphanumerics into one hyphen."""
    return re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")


def _slug_for(title: str) -> str:
    slug = generate_slug(title)
    if not slug:
        raise ValidationError("Title must contain at least one letter or number")
    return slug


def slug_taken(db: Session, slug: str, exclude_id: Optional[str] = None) -> bool:
    query = db.query(Project.id).filter(Project.slug == slug)
    if exclude_id:
        query = query.filter(Project.id != exclude_id)
    return query.first() is not None


def next_order(db: Session) -> int:
    highest = db.query(func.max(Project.order)).scalar()
    return (highest or 0) + 1


def _public_query(db: Session, status: str, featured: Optional[bool], technology: Optional[str]):
    query = db.query(Project).filter(Project.status == status)
    if featured is not None:
        query = query.filter(Project.featured == featured)
    if technology:
        # technologies is a JSON array; match the quoted element in its text form
        query = query.filter(cast(Project.technologies, String).like(f'%"{technology}"%'))
    return query


def count_published_projects(
    db: Session,
    status: str = ProjectStatus.PUBLISHED.value,
    featured: Optional[bool] = None,
    technology: Optional[str] = None,
) -> int:
    return _public_query(db, status, featured, technology).count()


def list_published_projects(
    db: Session,
    status: str = ProjectStatus.PUBLISHED.value,
    featured: Optional[bool] = None,
    technology: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[Project]:
    """Public listing, featured projects first then newest."""
    query = _public_query(db, status, featured, technology)
    query = query.order_by(Project.featured.desc(), Project.created_at.desc(), Project.id)
    if offset:
        query = query.offset(offset)
    if limit:
        query = query.limit(limit)
    return query.all()


def list_admin_projects(
    db: Session,
    status: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[Project]:
    """Admin listing in display order."""
    query = db.query(Project)
    if status in (ProjectStatus.DRAFT.value, ProjectStatus.PUBLISHED.value):
        query = query.filter(Project.status == status)
    query = query.order_by(Project.order.asc(), Project.created_at.desc(), Project.id)
    if offset:
        query = query.offset(offset)
    if limit:
        query = query.limit(limit)
    return query.all()


def get_project(db: Session, project_id: str) -> Project:
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise NotFoundError("Project not found")
    return project


def get_published_project_by_slug(db: Session, slug: str) -> Project:
    project = db.query(Project).filter(
        Project.slug == slug,
        Project.status == ProjectStatus.PUBLISHED.value
    ).first()
    if not project:
        raise NotFoundError("Project not found")
    return project


def create_project(db: Session, project_in: ProjectCreate) -> Project:
    """Create a project; its slug is derived from the title and must be unique."""
    slug = _slug_for(project_in.title)
    if slug_taken(db, slug):
        raise ValidationError(DUPLICATE_SLUG_MESSAGE)

    db_project = Project(
        title=project_in.title.strip(),
        slug=slug,
        description=project_in.description,
        short_description=project_in.short_description,
        technologies=project_in.technologies,
        images=project_in.images,
        live_url=project_in.live_url,
        github_url=project_in.github_url,
        featured=project_in.featured,
        status=project_in.status,
        order=project_in.order if project_in.order is not None else next_order(db),
    )
    db.add(db_project)
    db.commit()
    db.refresh(db_project)
    return db_project


def update_project(db: Session, project_id: str, project_in: ProjectUpdate) -> Project:
    """Apply the provided fields; a changed title regenerates the slug."""
    project = get_project(db, project_id)
    changes = {
        field: value for field, value in project_in.model_dump(exclude_unset=True).items()
        if value is not None or field in NULLABLE_FIELDS
    }

    title = changes.get("title")
    if title is not None and title.strip() != project.title:
        slug = _slug_for(title)
        if slug_taken(db, slug, exclude_id=project.id):
            raise ValidationError(DUPLICATE_SLUG_MESSAGE)
        project.slug = slug
        changes["title"] = title.strip()

    for field, value in changes.items():
        setattr(project, field, value)
    project.updated_at = utcnow()

    db.commit()
    db.refresh(project)
    return project


def delete_project(db: Session, project_id: str) -> None:
    project = get_project(db, project_id)
    db.delete(project)
    db.commit()


# --- Bulk operations: each runs in one transaction and rolls back entirely on failure ---

def _existing_ids(db: Session, project_ids: Iterable[str]) -> set:
    return {row.id for row in db.query(Project.id).filter(Project.id.in_(list(project_ids))).all()}


def bulk_update_order(db: Session, items: List[ProjectOrderItem]) -> int:
    ids = [item.id for item in items]
    missing = set(ids) - _existing_ids(db, ids)
    if missing:
        raise NotFoundError(f"Projects not found: {', '.join(sorted(missing))}")

    try:
        now = utcnow()
        for item in items:
            db.query(Project).filter(Project.id == item.id).update(
                {Project.order: item.order, Project.updated_at: now},
                synchronize_session=False
            )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return len(items)


def bulk_update_status(db: Session, project_ids: List[str], status: str) -> int:
    if status not in (ProjectStatus.DRAFT.value, ProjectStatus.PUBLISHED.value):
        raise ValidationError("Invalid data for status update")
    try:
        updated = db.query(Project).filter(Project.id.in_(project_ids)).update(
            {Project.status: status, Project.updated_at: utcnow()},
            synchronize_session=False
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return updated


def bulk_delete(db: Session, project_ids: List[str]) -> int:
    try:
        deleted = db.query(Project).filter(Project.id.in_(project_ids)).delete(synchronize_session=False)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return deleted
