"""Message models: stored records and their typed in-memory form."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class MessageType(str, Enum):
    """Kind tag persisted with every message record."""

    TEXT = "text"
    PHOTO = "photo"
    VIDEO = "video"
    LOCATION = "location"
    OTHER = "other"


class Attachment(BaseModel):
    """Remote media referenced by a photo or video message."""

    url: str = Field(..., description="Absolute download URL")
    width: int = Field(300, description="Placeholder width")
    height: int = Field(300, description="Placeholder height")


class TextKind(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class PhotoKind(BaseModel):
    kind: Literal["photo"] = "photo"
    media: Attachment


class VideoKind(BaseModel):
    kind: Literal["video"] = "video"
    media: Attachment


class LocationKind(BaseModel):
    kind: Literal["location"] = "location"
    longitude: float
    latitude: float


class UnsupportedKind(BaseModel):
    """Placeholder for kinds that are never reconstructed with their data.

    Covers attributed text, emoji, audio, contact, link preview and custom
    payloads.
    """

    kind: Literal["other"] = "other"
    original_type: str = "other"


MessageKind = Annotated[
    Union[TextKind, PhotoKind, VideoKind, LocationKind, UnsupportedKind],
    Field(discriminator="kind"),
]


class Sender(BaseModel):
    """Author of a message."""

    sender_key: str = Field(..., description="Canonical user key")
    display_name: str = Field(..., description="Display name at send time")


class MessageRecord(BaseModel):
    """A message as stored in a conversation's message log."""

    id: str = Field(..., description="Unique message ID")
    type: MessageType = Field(..., description="Content kind")
    content: str = Field(..., description="Kind-specific encoded content")
    date: str = Field(..., description="Encoded send timestamp")
    sender_key: str = Field(..., description="Canonical key of the sender")
    is_read: bool = Field(False, description="Read flag")
    name: str = Field(..., description="Display name of the sender")


class Message(BaseModel):
    """A message reconstructed from its record."""

    sender: Sender
    message_id: str
    sent_date: datetime
    kind: MessageKind


class MessageFeed(BaseModel):
    """Ordered, decoded view of a message log."""

    conversation_id: str
    messages: list[Message] = Field(default_factory=list)
    skipped: int = Field(0, description="Records dropped because they failed to decode")
