"""
Artifact Storage Abstract Base Class

Defines the interface contract for where rendered QR images live. The
binder only needs two things from a backend: store bytes under a name and
get back a reference it can hand to clients, and release a reference
again when a code is replaced or deleted.

Design Pattern: Strategy Pattern
    - MockArtifactStorage keeps images in memory (development, tests)
    - LocalArtifactStorage writes files served by the web server
    - BlobArtifactStorage uploads to a hosted blob store

Author: Khalil_Bannouri
Version: 1.0.0
"""

from abc import ABC, abstractmethod


class ArtifactStorageError(Exception):
    """Raised by backends when a store or release fails."""


class BaseArtifactStorage(ABC):
    """
    Abstract base class for artifact storage backends.

    Example:
        >>> storage = get_artifact_storage()
        >>> ref = await storage.store("table-t1.png", png_bytes, "image/png")
        >>> await storage.release(ref)
    """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """
        Return the name of the storage backend.

        Returns:
            str: Provider name (e.g., "mock", "local", "blob")
        """
        pass

    @abstractmethod
    async def store(self, name: str, data: bytes, content_type: str = "image/png") -> str:
        """
        Store an artifact.

        Args:
            name: File name hint (backends may prefix or uniquify it)
            data: Raw bytes
            content_type: MIME type of the data

        Returns:
            str: Reference (path or URL) clients use to fetch the artifact

        Raises:
            ArtifactStorageError: If the artifact could not be stored
        """
        pass

    @abstractmethod
    async def release(self, ref: str) -> None:
        """
        Release a stored artifact.

        Releasing a reference that no longer exists is not an error.

        Raises:
            ArtifactStorageError: If the backend could not be reached
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify the backend is usable.

        Returns:
            bool: True if artifacts can be stored
        """
        pass
