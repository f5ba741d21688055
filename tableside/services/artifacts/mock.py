"""
Mock Artifact Storage Implementation

Keeps QR images in a dictionary instead of on disk or in a blob store.
Used in development mode (ENV_MODE=development) and by the tests to:
    - Exercise the binder without touching the filesystem
    - Simulate storage outages (failure_rate) and check rollback
    - Inspect what was stored and released

Author: Khalil_Bannouri
Version: 1.0.0
"""

import logging
import random
import uuid

from tableside.services.artifacts.base import ArtifactStorageError, BaseArtifactStorage

logger = logging.getLogger(__name__)


class MockArtifactStorage(BaseArtifactStorage):
    """
    In-memory artifact storage.

    Attributes:
        failure_rate: Probability that a store call fails (0.0-1.0)
        objects: Stored artifacts by reference
        released: References released so far, in order
    """

    PREFIX = "mock://qr"

    def __init__(self, failure_rate: float = 0.0):
        self.failure_rate = failure_rate
        self.objects: dict[str, bytes] = {}
        self.released: list[str] = []
        self.fail_next_release = False

        logger.info(f"MockArtifactStorage initialized (failure_rate={failure_rate:.0%})")

    @property
    def provider_name(self) -> str:
        return "mock"

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def store(self, name: str, data: bytes, content_type: str = "image/png") -> str:
        if self._should_fail():
            logger.warning(f"❌ Mock storage failure for {name}")
            raise ArtifactStorageError(f"Simulated storage failure for {name}")

        ref = f"{self.PREFIX}/{uuid.uuid4().hex[:12]}-{name}"
        self.objects[ref] = data
        logger.debug(f"Stored {len(data)} bytes at {ref}")
        return ref

    async def release(self, ref: str) -> None:
        if self.fail_next_release:
            self.fail_next_release = False
            raise ArtifactStorageError(f"Simulated release failure for {ref}")

        self.objects.pop(ref, None)
        self.released.append(ref)

    async def health_check(self) -> bool:
        return True
