"""Content codec: typed message payloads to and from flat stored strings.

Text is stored literally, photos and videos as their download URL, and
locations as ``"<longitude>,<latitude>"``. Every other kind is stored as an
empty ``other`` record and only ever comes back as ``UnsupportedKind``.
Decoding never raises; anything that cannot be rebuilt yields ``UNPARSEABLE``
and the caller drops it.
"""

import math
from datetime import datetime, timezone
from typing import Final
from urllib.parse import urlparse

from chatsync.models import (
    Attachment,
    LocationKind,
    MessageKind,
    MessageType,
    PhotoKind,
    TextKind,
    UnsupportedKind,
    VideoKind,
)


class _Unparseable:
    """Sentinel type for records that cannot be decoded."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNPARSEABLE"

    def __bool__(self) -> bool:
        return False


UNPARSEABLE: Final = _Unparseable()


def encode(kind: MessageKind) -> tuple[MessageType, str]:
    """Flatten a message kind into its stored (type, content) pair."""
    if isinstance(kind, TextKind):
        return MessageType.TEXT, kind.text
    if isinstance(kind, PhotoKind):
        return MessageType.PHOTO, kind.media.url
    if isinstance(kind, VideoKind):
        return MessageType.VIDEO, kind.media.url
    if isinstance(kind, LocationKind):
        return MessageType.LOCATION, f"{kind.longitude!r},{kind.latitude!r}"
    return MessageType.OTHER, ""


def decode(
    type_: str,
    content: str,
    fallback_size: tuple[int, int] = (300, 300),
) -> MessageKind | _Unparseable:
    """Rebuild a message kind from a stored (type, content) pair."""
    width, height = fallback_size
    if type_ == MessageType.TEXT.value:
        return TextKind(text=content)
    if type_ in (MessageType.PHOTO.value, MessageType.VIDEO.value):
        if not content:
            return UNPARSEABLE
        media = Attachment(url=content, width=width, height=height)
        if type_ == MessageType.PHOTO.value:
            return PhotoKind(media=media)
        return VideoKind(media=media)
    if type_ == MessageType.LOCATION.value:
        return _decode_location(content)
    return UnsupportedKind(original_type=type_ or MessageType.OTHER.value)


def _decode_location(content: str) -> LocationKind | _Unparseable:
    parts = content.split(",")
    if len(parts) < 2:
        return UNPARSEABLE
    try:
        longitude = float(parts[0])
        latitude = float(parts[1])
    except ValueError:
        return UNPARSEABLE
    if not (math.isfinite(longitude) and math.isfinite(latitude)):
        return UNPARSEABLE
    return LocationKind(longitude=longitude, latitude=latitude)


def is_absolute_url(value: str) -> bool:
    parsed = urlparse(value)
    return bool(parsed.scheme and parsed.netloc)


def preview_text(kind: MessageKind) -> str:
    """Text stored as a conversation's latest message."""
    return encode(kind)[1]


# ============= Timestamps =============


def format_timestamp(moment: datetime | None = None) -> str:
    """Encode a moment as ISO-8601 UTC with milliseconds, e.g. 2020-10-07T15:04:05.123Z."""
    moment = moment or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def parse_timestamp(value: str) -> datetime | None:
    """Parse a stored timestamp. Naive values are read as UTC; bad values give None."""
    try:
        moment = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)
