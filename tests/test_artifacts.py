"""QR rendering and the artifact storage backends."""

import json

import httpx
import pytest

from tableside.services.artifacts.base import ArtifactStorageError
from tableside.services.artifacts.blob import BlobArtifactStorage
from tableside.services.artifacts.local import LocalArtifactStorage
from tableside.services.artifacts.mock import MockArtifactStorage
from tableside.services.artifacts.qr import render_qr_png

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


def test_render_qr_png():
    image = render_qr_png("https://order.example.com/menu?table=t1")
    assert image.startswith(PNG_MAGIC)


def test_larger_boxes_make_larger_images():
    small = render_qr_png("https://order.example.com/menu", box_size=2)
    large = render_qr_png("https://order.example.com/menu", box_size=20)
    assert len(large) > len(small)


# =============================================================================
# MOCK
# =============================================================================

async def test_mock_storage_store_and_release():
    storage = MockArtifactStorage()
    ref = await storage.store("table-1.png", b"data")

    assert ref.startswith("mock://qr/")
    assert ref.endswith("-table-1.png")
    assert storage.objects[ref] == b"data"

    await storage.release(ref)
    assert ref not in storage.objects
    assert storage.released == [ref]


async def test_mock_storage_failures():
    storage = MockArtifactStorage(failure_rate=1.0)
    with pytest.raises(ArtifactStorageError):
        await storage.store("x.png", b"data")

    storage.fail_next_release = True
    with pytest.raises(ArtifactStorageError):
        await storage.release("mock://qr/x.png")
    # one-shot
    await storage.release("mock://qr/x.png")


# =============================================================================
# LOCAL
# =============================================================================

async def test_local_storage_writes_and_removes_files(tmp_path):
    storage = LocalArtifactStorage(str(tmp_path / "uploads"), public_prefix="/uploads/")

    ref = await storage.store("table-7.png", b"png-bytes")

    assert ref.startswith("/uploads/qr-")
    assert ref.endswith("-table-7.png")
    path = tmp_path / "uploads" / ref.rsplit("/", 1)[-1]
    assert path.read_bytes() == b"png-bytes"

    await storage.release(ref)
    assert not path.exists()

    # releasing again is fine
    await storage.release(ref)
    assert await storage.health_check()


# =============================================================================
# BLOB
# =============================================================================

class BlobServer:
    """Stand-in for the hosted blob API behind httpx.MockTransport."""

    def __init__(self, delete_status: int = 200):
        self.requests: list[httpx.Request] = []
        self.delete_status = delete_status

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "PUT":
            path = request.url.path.split("/api/", 1)[1]
            return httpx.Response(200, json={"url": f"https://cdn.example.com/{path}"})
        if request.method == "POST" and request.url.path.endswith("/delete"):
            return httpx.Response(self.delete_status, json={})
        return httpx.Response(200, json={"ok": True})


def blob_storage(server: BlobServer) -> BlobArtifactStorage:
    return BlobArtifactStorage(
        api_url="https://blob.example.com/api/",
        token="secret-token",
        transport=httpx.MockTransport(server),
    )


async def test_blob_store_uploads_and_returns_public_url():
    server = BlobServer()
    storage = blob_storage(server)

    ref = await storage.store("table-1.png", b"png-bytes")

    request = server.requests[0]
    assert request.method == "PUT"
    assert request.url.path.startswith("/api/qr-codes/qr-")
    assert request.url.path.endswith("-table-1.png")
    assert request.headers["Authorization"] == "Bearer secret-token"
    assert request.headers["Content-Type"] == "image/png"
    assert request.content == b"png-bytes"
    assert ref.startswith("https://cdn.example.com/qr-codes/qr-")
    await storage.aclose()


async def test_blob_release_posts_url_list():
    server = BlobServer()
    storage = blob_storage(server)

    await storage.release("https://cdn.example.com/qr-codes/qr-1-table-1.png")

    request = server.requests[0]
    assert request.method == "POST"
    assert request.url.path == "/api/delete"
    assert json.loads(request.content) == {"urls": ["https://cdn.example.com/qr-codes/qr-1-table-1.png"]}
    await storage.aclose()


async def test_blob_release_of_missing_object_is_not_an_error():
    storage = blob_storage(BlobServer(delete_status=404))
    await storage.release("https://cdn.example.com/gone.png")
    await storage.aclose()


async def test_blob_errors_become_storage_errors():
    storage = blob_storage(BlobServer(delete_status=500))
    with pytest.raises(ArtifactStorageError):
        await storage.release("https://cdn.example.com/qr.png")

    def refuse(request):
        return httpx.Response(403, json={"error": "forbidden"})

    storage = BlobArtifactStorage(
        api_url="https://blob.example.com/api",
        token="bad",
        transport=httpx.MockTransport(refuse),
    )
    with pytest.raises(ArtifactStorageError):
        await storage.store("table-1.png", b"png-bytes")


def test_blob_storage_requires_configuration():
    with pytest.raises(ValueError):
        BlobArtifactStorage(api_url=None, token=None)
