"""Proxy for deleting files stored with the hosted UploadThing service."""

import logging
from typing import List, Optional

import httpx

from .config import settings
from .errors import ExternalServiceError

logger = logging.getLogger(__name__)


class UploadService:
    def __init__(self, secret: Optional[str] = None, api_url: Optional[str] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.secret = secret if secret is not None else settings.UPLOADTHING_SECRET
        self.api_url = (api_url or settings.UPLOADTHING_API_URL).rstrip("/")
        self.transport = transport

    async def delete_files(self, file_keys: List[str]) -> dict:
        """Delete files by key. Raises ``ExternalServiceError`` when the provider is unavailable."""
        if not self.secret:
            raise ExternalServiceError("File storage is not configured")

        try:
            async with httpx.AsyncClient(timeout=30.0, transport=self.transport) as client:
                response = await client.post(
                    f"{self.api_url}/deleteFiles",
                    json={"fileKeys": file_keys},
                    headers={"X-Uploadthing-Api-Key": self.secret},
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Failed to delete files {file_keys}: {e}")
            raise ExternalServiceError("Failed to delete files") from e

        logger.info(f"🗑️ Deleted {len(file_keys)} file(s) from storage")
        return {"deletedCount": data.get("deletedCount", len(file_keys)), "fileKeys": file_keys}


upload_service = UploadService()
