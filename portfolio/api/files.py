"""Deleting uploaded files from the hosted storage provider."""

from fastapi import APIRouter, Depends

from ..core.errors import ValidationError
from ..core.security import require_admin
from ..core.upload_service import upload_service
from .. import schemas, models

router = APIRouter(prefix="/api/uploadthing", tags=["Files"])


async def _delete(request_in: schemas.FileDeleteRequest) -> dict:
    if not request_in.file_keys:
        raise ValidationError("File keys are required")
    result = await upload_service.delete_files(request_in.file_keys)
    return {"success": True, "data": result, "message": f"Deleted {result['deletedCount']} file(s)"}


@router.delete("/delete")
async def delete_files(
    request_in: schemas.FileDeleteRequest,
    current_user: models.User = Depends(require_admin)
) -> dict:
    return await _delete(request_in)


@router.post("/delete")
async def delete_files_post(
    request_in: schemas.FileDeleteRequest,
    current_user: models.User = Depends(require_admin)
) -> dict:
    """Same as DELETE, for clients that cannot send a body with DELETE."""
    return await _delete(request_in)
