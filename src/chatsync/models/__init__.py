"""Shared Pydantic models for chatsync."""

from chatsync.models.conversation import Conversation, LatestMessage
from chatsync.models.message import (
    Attachment,
    LocationKind,
    Message,
    MessageFeed,
    MessageKind,
    MessageRecord,
    MessageType,
    PhotoKind,
    Sender,
    TextKind,
    UnsupportedKind,
    VideoKind,
)
from chatsync.models.user import ChatUser, DirectoryEntry

__all__ = [
    # Conversations
    "Conversation",
    "LatestMessage",
    # Messages
    "Attachment",
    "LocationKind",
    "Message",
    "MessageFeed",
    "MessageKind",
    "MessageRecord",
    "MessageType",
    "PhotoKind",
    "Sender",
    "TextKind",
    "UnsupportedKind",
    "VideoKind",
    # Users
    "ChatUser",
    "DirectoryEntry",
]
