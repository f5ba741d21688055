"""
Artifact Storage Factory

Provides a single entry point for obtaining the QR image storage backend.

Usage:
    from tableside.services.artifacts import get_artifact_storage

    storage = get_artifact_storage()
    ref = await storage.store("table-7.png", png_bytes)

Backend Switching (ARTIFACT_BACKEND, defaulted from ENV_MODE):
    - mock → MockArtifactStorage (development default)
    - local → LocalArtifactStorage (staging/production default)
    - blob → BlobArtifactStorage (hosted blob store)
"""

import logging
from functools import lru_cache

from tableside.core.config import ArtifactBackend, get_settings
from tableside.services.artifacts.base import ArtifactStorageError, BaseArtifactStorage
from tableside.services.artifacts.blob import BlobArtifactStorage
from tableside.services.artifacts.local import LocalArtifactStorage
from tableside.services.artifacts.mock import MockArtifactStorage
from tableside.services.artifacts.qr import render_qr_png

logger = logging.getLogger(__name__)


@lru_cache()
def get_artifact_storage() -> BaseArtifactStorage:
    """
    Get the configured artifact storage instance.

    Returns:
        BaseArtifactStorage: Configured storage backend

    Raises:
        ValueError: If blob storage is selected but not configured
    """
    settings = get_settings()
    backend = settings.resolved_artifact_backend

    if backend == ArtifactBackend.MOCK:
        logger.info("Artifact Storage: Using MockArtifactStorage")
        return MockArtifactStorage()

    if backend == ArtifactBackend.BLOB:
        logger.info("Artifact Storage: Using BlobArtifactStorage")
        return BlobArtifactStorage()

    logger.info(f"Artifact Storage: Using LocalArtifactStorage ({settings.artifact_directory})")
    return LocalArtifactStorage(
        directory=settings.artifact_directory,
        public_prefix=settings.artifact_public_prefix,
    )


def reset_artifact_storage() -> None:
    """Clear the cached artifact storage instance."""
    get_artifact_storage.cache_clear()
    logger.debug("Artifact storage cache cleared")


__all__ = [
    "get_artifact_storage",
    "reset_artifact_storage",
    "render_qr_png",
    "ArtifactStorageError",
    "BaseArtifactStorage",
    "MockArtifactStorage",
    "LocalArtifactStorage",
    "BlobArtifactStorage",
]
