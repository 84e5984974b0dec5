"""Admin project management."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import ValidationError as SchemaValidationError
from sqlalchemy.orm import Session

from ..core.database import get_db
from ..core.errors import ValidationError
from ..core.security import require_admin
from .. import crud, schemas, models

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/projects", tags=["Admin Projects"])

REQUIRED_FIELDS_MESSAGE = "Title, description, and short description are required"


def _project_json(project: models.Project) -> dict:
    return schemas.ProjectOut.model_validate(project).to_json()


def _check_required(title: Optional[str], description: Optional[str], short_description: Optional[str]) -> None:
    if any(value is not None and not value.strip() for value in (title, description, short_description)):
        raise ValidationError(REQUIRED_FIELDS_MESSAGE)


@router.get("")
def list_projects(
    status_filter: Optional[str] = Query(None, alias="status"),
    limit: Optional[int] = Query(None, ge=1),
    offset: int = Query(0, ge=0),
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    projects = crud.list_admin_projects(db, status=status_filter, limit=limit, offset=offset)
    return {"success": True, "data": [_project_json(p) for p in projects]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_project(
    project_in: schemas.ProjectCreate,
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    _check_required(project_in.title, project_in.description, project_in.short_description)
    project = crud.create_project(db, project_in)
    logger.info(f"Project '{project.slug}' created")
    return {"success": True, "data": _project_json(project)}


@router.post("/bulk")
def bulk_action(
    action_in: schemas.BulkProjectAction,
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    """updateOrder, updateStatus or delete several projects in one transaction."""
    if action_in.action == "updateOrder":
        if not isinstance(action_in.data, list):
            raise ValidationError("Invalid data format for order update")
        try:
            items = [schemas.ProjectOrderItem.model_validate(item) for item in action_in.data]
        except SchemaValidationError:
            raise ValidationError("Invalid data format for order update") from None
        crud.bulk_update_order(db, items)
        return {"success": True, "message": "Project order updated successfully"}

    if action_in.action == "updateStatus":
        new_status = action_in.data.get("status") if isinstance(action_in.data, dict) else None
        if not isinstance(action_in.project_ids, list) or not new_status:
            raise ValidationError("Invalid data for status update")
        crud.bulk_update_status(db, action_in.project_ids, new_status)
        return {
            "success": True,
            "message": f"{len(action_in.project_ids)} projects updated to {new_status}",
        }

    if action_in.action == "delete":
        if not isinstance(action_in.project_ids, list):
            raise ValidationError("Invalid project IDs for deletion")
        crud.bulk_delete(db, action_in.project_ids)
        return {
            "success": True,
            "message": f"{len(action_in.project_ids)} projects deleted successfully",
        }

    raise ValidationError("Invalid action")


@router.get("/{project_id}")
def get_project(
    project_id: str,
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    return {"success": True, "data": _project_json(crud.get_project(db, project_id))}


@router.put("/{project_id}")
def update_project(
    project_id: str,
    project_in: schemas.ProjectUpdate,
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    _check_required(project_in.title, project_in.description, project_in.short_description)
    project = crud.update_project(db, project_id, project_in)
    return {"success": True, "data": _project_json(project)}


@router.delete("/{project_id}")
def delete_project(
    project_id: str,
    current_user: models.User = Depends(require_admin),
    db: Session = Depends(get_db)
) -> dict:
    crud.delete_project(db, project_id)
    return {"success": True, "message": "Project deleted successfully"}
