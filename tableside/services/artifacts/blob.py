"""
Hosted Blob Artifact Storage

Uploads QR images to an HTTP blob store and returns the public URL it
hands back. Used when ARTIFACT_BACKEND=blob.

Protocol:
    PUT    {BLOB_API_URL}/{pathname}   body: raw bytes  → {"url": "..."}
    POST   {BLOB_API_URL}/delete       body: {"urls": [...]}

Requirements:
    - BLOB_API_URL and BLOB_API_TOKEN must be set in environment

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
import time
from typing import Optional

import httpx

from tableside.core.config import get_settings
from tableside.services.artifacts.base import ArtifactStorageError, BaseArtifactStorage

logger = logging.getLogger(__name__)


class BlobArtifactStorage(BaseArtifactStorage):
    """
    Blob-store-backed artifact storage.

    Args:
        api_url: Blob store endpoint (defaults to BLOB_API_URL)
        token: Bearer token (defaults to BLOB_API_TOKEN)
        transport: Optional httpx transport (tests pass a MockTransport)
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ):
        settings = get_settings()
        api_url = api_url or settings.blob_api_url
        token = token or settings.blob_api_token

        if not api_url or not token:
            raise ValueError(
                "BLOB_API_URL and BLOB_API_TOKEN are required for blob storage. "
                "Set them in your .env file or environment variables."
            )

        self.api_url = api_url.rstrip("/")
        self._client = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

        logger.info(f"BlobArtifactStorage initialized ({self.api_url})")

    @property
    def provider_name(self) -> str:
        return "blob"

    async def store(self, name: str, data: bytes, content_type: str = "image/png") -> str:
        pathname = f"qr-codes/qr-{int(time.time() * 1000)}-{name}"

        try:
            response = await self._client.put(
                f"{self.api_url}/{pathname}",
                content=data,
                headers={"Content-Type": content_type},
            )
            response.raise_for_status()
            url = response.json()["url"]
        except (httpx.HTTPError, KeyError, ValueError) as e:
            logger.error(f"Blob upload failed for {pathname}: {e}")
            raise ArtifactStorageError(f"Blob upload failed: {e}") from e

        logger.debug(f"Uploaded {pathname} → {url}")
        return url

    async def release(self, ref: str) -> None:
        try:
            response = await self._client.post(
                f"{self.api_url}/delete",
                json={"urls": [ref]},
            )
            if response.status_code == 404:
                return
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Blob delete failed for {ref}: {e}")
            raise ArtifactStorageError(f"Blob delete failed: {e}") from e

    async def health_check(self) -> bool:
        try:
            response = await self._client.get(self.api_url)
            return response.status_code < 500
        except httpx.HTTPError as e:
            logger.error(f"Blob store health check failed: {e}")
            return False

    async def aclose(self) -> None:
        await self._client.aclose()
