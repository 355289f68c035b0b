"""Client for the attachment storage service.

Uploads media bytes and resolves the absolute download URL that photo and
video messages carry. The sync layer only ever consumes that URL.
"""

import logging
from pathlib import Path
from typing import Protocol

import httpx

from chatsync.codec import is_absolute_url
from chatsync.config import settings
from chatsync.errors import UploadFailedError, UrlResolutionFailedError

logger = logging.getLogger(__name__)

MESSAGE_IMAGES_FOLDER = "message_images"
MESSAGE_VIDEOS_FOLDER = "message_videos"
PROFILE_IMAGES_FOLDER = "images"


def photo_file_name(message_id: str) -> str:
    return f"photo_message_{message_id.replace(' ', '-')}.png"


def video_file_name(message_id: str) -> str:
    return f"video_message_{message_id.replace(' ', '-')}.mov"


class AttachmentUploader(Protocol):
    """Upload collaborator used by the orchestrator."""

    async def upload(self, data: bytes, file_name: str, folder: str, content_type: str) -> str: ...

    async def upload_file(self, file_path: Path, file_name: str, folder: str, content_type: str) -> str: ...


class HttpAttachmentUploader:
    """HTTP client for a blob storage service.

    ``PUT {base}/o/{folder}/{name}`` stores the bytes and
    ``GET {base}/o/{folder}/{name}/url`` returns ``{"url": ...}``.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.storage_url).rstrip("/")
        self.timeout = timeout or settings.upload_timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def upload(
        self,
        data: bytes,
        file_name: str,
        folder: str = MESSAGE_IMAGES_FOLDER,
        content_type: str = "image/png",
    ) -> str:
        """
        Upload bytes and return their download URL.

        Raises:
            UploadFailedError: the storage service rejected or never received the bytes
            UrlResolutionFailedError: the bytes were stored but no usable URL came back

        """
        object_path = f"{folder}/{file_name}"
        async with self._client() as client:
            try:
                response = await client.put(
                    f"{self.base_url}/o/{object_path}",
                    content=data,
                    headers={"Content-Type": content_type},
                )
                response.raise_for_status()
            except httpx.HTTPStatusError as e:
                logger.error(f"Upload of {object_path} failed: HTTP {e.response.status_code}")
                raise UploadFailedError(f"HTTP {e.response.status_code}: {e.response.text}", path=object_path) from e
            except httpx.RequestError as e:
                logger.error(f"Upload of {object_path} failed: {e}")
                raise UploadFailedError(f"Request failed: {e}", path=object_path) from e

            url = await self._download_url(client, object_path)

        logger.info(f"Uploaded {object_path}: {url}")
        return url

    async def upload_file(
        self,
        file_path: Path,
        file_name: str,
        folder: str = MESSAGE_VIDEOS_FOLDER,
        content_type: str = "video/quicktime",
    ) -> str:
        """Upload a local file (video messages) and return its download URL."""
        try:
            data = file_path.read_bytes()
        except OSError as e:
            raise UploadFailedError(f"Cannot read {file_path}: {e}", path=str(file_path)) from e
        return await self.upload(data, file_name, folder=folder, content_type=content_type)

    async def upload_profile_picture(self, data: bytes, file_name: str) -> str:
        """Upload a user's profile picture into the profile images folder."""
        return await self.upload(data, file_name, folder=PROFILE_IMAGES_FOLDER, content_type="image/png")

    async def download_url(self, object_path: str) -> str:
        """Resolve the download URL of an already stored object, e.g. a profile picture."""
        async with self._client() as client:
            return await self._download_url(client, object_path)

    async def _download_url(self, client: httpx.AsyncClient, object_path: str) -> str:
        try:
            response = await client.get(f"{self.base_url}/o/{object_path}/url")
            response.raise_for_status()
            url = response.json().get("url")
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.error(f"Failed to get download url for {object_path}: {e}")
            raise UrlResolutionFailedError(f"No download URL for {object_path}", path=object_path) from e

        if not isinstance(url, str) or not is_absolute_url(url):
            logger.error(f"Storage returned unusable download url for {object_path}: {url!r}")
            raise UrlResolutionFailedError(f"Unusable download URL for {object_path}", path=object_path)
        return url
