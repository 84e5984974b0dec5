"""Public project listing."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.errors import ValidationError
from ..models import ProjectStatus
from .. import crud, schemas

router = APIRouter(prefix="/api/projects", tags=["Projects"])


def _parse_bound(raw: Optional[str], minimum: int, message: str) -> Optional[int]:
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(message) from None
    if value < minimum:
        raise ValidationError(message)
    return value


@router.get("")
def list_projects(
    status: str = Query(ProjectStatus.PUBLISHED.value),
    featured: Optional[str] = Query(None),
    technology: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    offset: Optional[str] = Query(None),
    db: Session = Depends(get_db)
) -> dict:
    """Published projects, featured first, newest next."""
    if status not in (ProjectStatus.PUBLISHED.value, ProjectStatus.DRAFT.value):
        raise ValidationError("Invalid status parameter. Must be PUBLISHED or DRAFT")
    parsed_limit = _parse_bound(limit, 1, "Limit must be a positive number")
    parsed_offset = _parse_bound(offset, 0, "Offset must be a non-negative number")
    featured_only = True if featured == "true" else None

    total = crud.count_published_projects(db, status=status, featured=featured_only, technology=technology)
    projects = crud.list_published_projects(
        db,
        status=status,
        featured=featured_only,
        technology=technology,
        limit=parsed_limit,
        offset=parsed_offset or 0,
    )

    return {
        "success": True,
        "data": [schemas.ProjectOut.model_validate(p).to_json() for p in projects],
        "count": len(projects),
        "total": total,
        "pagination": {
            "limit": parsed_limit,
            "offset": parsed_offset,
            "hasMore": (parsed_offset or 0) + len(projects) < total,
        },
    }


@router.get("/{slug}")
def get_project(slug: str, db: Session = Depends(get_db)) -> dict:
    project = crud.get_published_project_by_slug(db, slug)
    return {"success": True, "data": schemas.ProjectOut.model_validate(project).to_json()}
