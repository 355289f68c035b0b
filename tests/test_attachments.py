"""Tests for the attachment storage client."""

import httpx
import pytest

from chatsync.attachments import (
    MESSAGE_IMAGES_FOLDER,
    PROFILE_IMAGES_FOLDER,
    HttpAttachmentUploader,
    photo_file_name,
    video_file_name,
)
from chatsync.errors import SyncErrorCode, UploadFailedError, UrlResolutionFailedError

BASE = "http://storage.test"


class FakeStorage:
    """Handler for httpx.MockTransport that mimics the blob service."""

    def __init__(self, put_status: int = 200, url_payload=None, url_status: int = 200):
        self.put_status = put_status
        self.url_payload = url_payload
        self.url_status = url_status
        self.objects: dict[str, bytes] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/o/")
        if request.method == "PUT":
            if self.put_status >= 400:
                return httpx.Response(self.put_status, text="denied")
            self.objects[path] = request.content
            return httpx.Response(self.put_status)
        if request.method == "GET" and path.endswith("/url"):
            payload = self.url_payload
            if payload is None:
                payload = {"url": f"https://cdn.example.com/{path.removesuffix('/url')}"}
            return httpx.Response(self.url_status, json=payload)
        return httpx.Response(404)


def _uploader(storage: FakeStorage) -> HttpAttachmentUploader:
    return HttpAttachmentUploader(base_url=BASE, timeout=5, transport=httpx.MockTransport(storage))


class TestFileNames:
    """Test attachment naming."""

    def test_photo_name(self):
        assert photo_file_name("b_a_20201007T150405000000Z_ab12cd") == "photo_message_b_a_20201007T150405000000Z_ab12cd.png"

    def test_video_name_replaces_spaces(self):
        assert video_file_name("b a") == "video_message_b-a.mov"


class TestHttpAttachmentUploader:
    """Test HttpAttachmentUploader against a mock transport."""

    @pytest.mark.asyncio
    async def test_upload_returns_download_url(self):
        """Test the bytes are stored and the resolved URL returned."""
        storage = FakeStorage()
        url = await _uploader(storage).upload(b"png", "photo_message_1.png", MESSAGE_IMAGES_FOLDER, "image/png")

        assert url == "https://cdn.example.com/message_images/photo_message_1.png"
        assert storage.objects == {"message_images/photo_message_1.png": b"png"}

    @pytest.mark.asyncio
    async def test_http_error_is_upload_failure(self):
        """Test a rejected PUT raises UploadFailedError."""
        with pytest.raises(UploadFailedError) as exc_info:
            await _uploader(FakeStorage(put_status=403)).upload(b"x", "f.png")
        assert exc_info.value.code == SyncErrorCode.UPLOAD_FAILED
        assert exc_info.value.path == "message_images/f.png"

    @pytest.mark.asyncio
    async def test_connection_error_is_upload_failure(self):
        """Test a transport error raises UploadFailedError."""

        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        uploader = HttpAttachmentUploader(base_url=BASE, transport=httpx.MockTransport(refuse))
        with pytest.raises(UploadFailedError):
            await uploader.upload(b"x", "f.png")

    @pytest.mark.asyncio
    async def test_missing_url_is_resolution_failure(self):
        """Test a response without a URL raises UrlResolutionFailedError."""
        with pytest.raises(UrlResolutionFailedError):
            await _uploader(FakeStorage(url_payload={})).upload(b"x", "f.png")

    @pytest.mark.asyncio
    async def test_relative_url_is_resolution_failure(self):
        """Test a relative URL is rejected."""
        with pytest.raises(UrlResolutionFailedError):
            await _uploader(FakeStorage(url_payload={"url": "/o/f.png"})).upload(b"x", "f.png")

    @pytest.mark.asyncio
    async def test_url_lookup_error_is_resolution_failure(self):
        """Test a failed URL lookup after a successful upload."""
        storage = FakeStorage(url_status=500, url_payload={"error": "boom"})
        with pytest.raises(UrlResolutionFailedError):
            await _uploader(storage).upload(b"x", "f.png")
        assert "message_images/f.png" in storage.objects

    @pytest.mark.asyncio
    async def test_upload_file(self, tmp_path):
        """Test uploading a local file."""
        clip = tmp_path / "clip.mov"
        clip.write_bytes(b"moov")
        storage = FakeStorage()

        url = await _uploader(storage).upload_file(clip, "video_message_1.mov")

        assert url.endswith("/message_videos/video_message_1.mov")
        assert storage.objects["message_videos/video_message_1.mov"] == b"moov"

    @pytest.mark.asyncio
    async def test_upload_missing_file(self, tmp_path):
        """Test an unreadable file raises UploadFailedError."""
        with pytest.raises(UploadFailedError):
            await _uploader(FakeStorage()).upload_file(tmp_path / "nope.mov", "video_message_1.mov")

    @pytest.mark.asyncio
    async def test_profile_picture(self):
        """Test profile pictures go to the images folder and can be resolved later."""
        storage = FakeStorage()
        uploader = _uploader(storage)

        url = await uploader.upload_profile_picture(b"me", "a-example-com_profile_picture.png")

        assert f"{PROFILE_IMAGES_FOLDER}/a-example-com_profile_picture.png" in storage.objects
        assert await uploader.download_url("images/a-example-com_profile_picture.png") == url
