"""
Local Artifact Storage

Writes QR images into ARTIFACT_DIRECTORY and returns references under
ARTIFACT_PUBLIC_PREFIX (e.g. "/uploads/qr-1718123456789-table-7.png"),
which the API mounts as static files.
"""

import asyncio
import logging
import time
from pathlib import Path

from tableside.services.artifacts.base import ArtifactStorageError, BaseArtifactStorage

logger = logging.getLogger(__name__)


class LocalArtifactStorage(BaseArtifactStorage):
    """
    Filesystem-backed artifact storage.

    Args:
        directory: Where image files are written
        public_prefix: URL prefix the directory is served under
    """

    def __init__(self, directory: str, public_prefix: str = "/uploads"):
        self.directory = Path(directory)
        self.public_prefix = public_prefix.rstrip("/")

        logger.info(f"LocalArtifactStorage initialized ({self.directory})")

    @property
    def provider_name(self) -> str:
        return "local"

    def _path_for(self, ref: str) -> Path:
        name = ref.rsplit("/", 1)[-1]
        return self.directory / name

    def _write(self, path: Path, data: bytes) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)

    async def store(self, name: str, data: bytes, content_type: str = "image/png") -> str:
        filename = f"qr-{int(time.time() * 1000)}-{name}"
        path = self.directory / filename

        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as e:
            raise ArtifactStorageError(f"Could not write {path}: {e}") from e

        logger.debug(f"Wrote {path}")
        return f"{self.public_prefix}/{filename}"

    async def release(self, ref: str) -> None:
        path = self._path_for(ref)
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            raise ArtifactStorageError(f"Could not remove {path}: {e}") from e

    async def health_check(self) -> bool:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            return True
        except OSError as e:
            logger.error(f"Artifact directory unavailable: {e}")
            return False
