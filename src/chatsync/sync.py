"""Sync orchestrator: the entry points that sequence the stores.

Every operation is a chain of independent store round trips. A chain stops
at the first failure and never rolls back what already succeeded; the
returned SyncResult names the error and the log records how far it got.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import AsyncIterator

from chatsync import codec
from chatsync.attachments import (
    MESSAGE_IMAGES_FOLDER,
    MESSAGE_VIDEOS_FOLDER,
    AttachmentUploader,
    photo_file_name,
    video_file_name,
)
from chatsync.conversation_store import ConversationStore
from chatsync.errors import InvalidKeyError, SyncError, SyncErrorCode, SyncResult
from chatsync.identity import UserContext, conversation_id_for, new_message_id, normalize
from chatsync.message_store import MessageStore
from chatsync.models import (
    Attachment,
    Conversation,
    LatestMessage,
    MessageFeed,
    MessageKind,
    MessageRecord,
    PhotoKind,
    VideoKind,
)
from chatsync.store import KeyPathStore, conversations_path, messages_path

logger = logging.getLogger(__name__)


class ConversationState(str, Enum):
    """Lifecycle of a conversation, implied by which records exist."""

    NEW = "new"  # No log yet
    ACTIVE = "active"  # Log plus both summaries
    HIDDEN_FOR_ONE = "hidden_for_one"  # One participant deleted their summary
    HIDDEN_FOR_BOTH = "hidden_for_both"  # Orphaned log, never collected


def _missing_identity(operation: str) -> SyncResult:
    logger.warning(f"{operation} aborted: no current user")
    return SyncResult.failure(SyncErrorCode.MISSING_IDENTITY, "No current user")


def _has_identity(user: UserContext | None) -> bool:
    return bool(user and user.user_key and user.display_name)


def _invalid_recipient(recipient_key: str, conversation_id: str | None = None) -> SyncResult | None:
    """A failed result if the recipient key cannot be stored, checked before any write."""
    try:
        conversations_path(recipient_key)
    except InvalidKeyError as e:
        logger.warning(f"Rejected recipient {recipient_key!r}: {e}")
        return SyncResult.from_error(e, conversation_id=conversation_id)
    return None


class SyncOrchestrator:
    """Creates conversations, sends messages and reads them back."""

    def __init__(
        self,
        store: KeyPathStore,
        uploader: AttachmentUploader | None = None,
        fallback_size: tuple[int, int] | None = None,
    ):
        self.store = store
        self.uploader = uploader
        self.conversations = ConversationStore(store)
        self.messages = MessageStore(store, fallback_size=fallback_size)

    def _build_record(self, user: UserContext, message_id: str, kind: MessageKind) -> MessageRecord:
        type_, content = codec.encode(kind)
        return MessageRecord(
            id=message_id,
            type=type_,
            content=content,
            date=codec.format_timestamp(),
            sender_key=user.user_key,
            is_read=False,
            name=user.display_name,
        )

    # ============= Sending =============

    async def send_first_message(
        self,
        user: UserContext | None,
        recipient_key: str,
        recipient_name: str,
        kind: MessageKind,
        message_id: str | None = None,
    ) -> SyncResult:
        """Start a conversation: both summaries, then the message log.

        If either side already has a conversation with the other, the
        message goes to that conversation instead, so two users never end up
        with two conversation IDs.
        """
        if not _has_identity(user):
            return _missing_identity("send_first_message")

        recipient_key = normalize(recipient_key)
        if recipient_key == user.user_key:
            return SyncResult.failure(SyncErrorCode.INVALID_MESSAGE, "Cannot start a conversation with yourself")

        invalid = _invalid_recipient(recipient_key)
        if invalid is not None:
            return invalid

        existing_id = await self.find_existing_conversation(user, recipient_key)
        if existing_id:
            logger.info(f"Routing first message to existing conversation {existing_id}")
            return await self.send_message(
                user, existing_id, recipient_key, recipient_name, kind, message_id=message_id
            )

        message_id = message_id or new_message_id(user.user_key, recipient_key)
        conversation_id = conversation_id_for(message_id)
        record = self._build_record(user, message_id, kind)
        latest = LatestMessage(date=record.date, message=record.content, is_read=False)

        sender_summary = Conversation(
            id=conversation_id,
            other_user_key=recipient_key,
            other_user_name=recipient_name,
            latest_message=latest,
        )
        recipient_summary = Conversation(
            id=conversation_id,
            other_user_key=user.user_key,
            other_user_name=user.display_name,
            latest_message=latest,
        )

        result = await self.conversations.create_conversation_entry(user.user_key, sender_summary)
        if not result:
            return result.model_copy(update={"message_id": message_id})

        result = await self.conversations.create_conversation_entry(recipient_key, recipient_summary)
        if not result:
            logger.error(f"Conversation {conversation_id} created for sender only")
            return result.model_copy(update={"message_id": message_id})

        result = await self.messages.create_message_log(conversation_id, record)
        if not result:
            logger.error(f"Conversation {conversation_id} has summaries but no message log")
            return result

        logger.info(f"Started conversation {conversation_id} between {user.user_key} and {recipient_key}")
        return SyncResult.success(conversation_id=conversation_id, message_id=message_id)

    async def send_message(
        self,
        user: UserContext | None,
        conversation_id: str,
        recipient_key: str,
        recipient_name: str,
        kind: MessageKind,
        message_id: str | None = None,
    ) -> SyncResult:
        """Append to the log, then update the sender's and recipient's summaries, in that order."""
        if not _has_identity(user):
            return _missing_identity("send_message")

        recipient_key = normalize(recipient_key)
        invalid = _invalid_recipient(recipient_key, conversation_id)
        if invalid is not None:
            return invalid

        message_id = message_id or new_message_id(user.user_key, recipient_key)
        record = self._build_record(user, message_id, kind)

        result = await self.messages.append_message(conversation_id, record)
        if not result:
            return result

        latest = LatestMessage(date=record.date, message=record.content, is_read=False)

        result = await self.conversations.append_or_upsert_latest_message(
            user.user_key, conversation_id, recipient_key, recipient_name, latest
        )
        if not result:
            logger.error(f"Message {message_id} logged but sender summary not updated")
            return result.model_copy(update={"message_id": message_id})

        result = await self.conversations.append_or_upsert_latest_message(
            recipient_key, conversation_id, user.user_key, user.display_name, latest
        )
        if not result:
            logger.error(f"Message {message_id} logged but recipient summary not updated")
            return result.model_copy(update={"message_id": message_id})

        return SyncResult.success(conversation_id=conversation_id, message_id=message_id)

    async def send(
        self,
        user: UserContext | None,
        recipient_key: str,
        recipient_name: str,
        kind: MessageKind,
        conversation_id: str | None = None,
        message_id: str | None = None,
    ) -> SyncResult:
        """Send to an existing conversation, or start one when no ID is given."""
        if conversation_id:
            return await self.send_message(
                user, conversation_id, recipient_key, recipient_name, kind, message_id=message_id
            )
        return await self.send_first_message(user, recipient_key, recipient_name, kind, message_id=message_id)

    async def send_photo_message(
        self,
        user: UserContext | None,
        recipient_key: str,
        recipient_name: str,
        data: bytes,
        conversation_id: str | None = None,
    ) -> SyncResult:
        """Upload a photo, then send it. Nothing is written if the upload fails."""
        if not _has_identity(user):
            return _missing_identity("send_photo_message")
        if self.uploader is None:
            return SyncResult.failure(SyncErrorCode.UPLOAD_FAILED, "No attachment uploader configured")

        invalid = _invalid_recipient(normalize(recipient_key), conversation_id)
        if invalid is not None:
            return invalid

        message_id = new_message_id(user.user_key, normalize(recipient_key))
        try:
            url = await self.uploader.upload(data, photo_file_name(message_id), MESSAGE_IMAGES_FOLDER, "image/png")
        except SyncError as e:
            logger.error(f"Photo message {message_id} not sent: {e}")
            return SyncResult.from_error(e, conversation_id=conversation_id)

        width, height = self.messages.fallback_size
        kind = PhotoKind(media=Attachment(url=url, width=width, height=height))
        return await self.send(user, recipient_key, recipient_name, kind, conversation_id, message_id=message_id)

    async def send_video_message(
        self,
        user: UserContext | None,
        recipient_key: str,
        recipient_name: str,
        file_path: Path,
        conversation_id: str | None = None,
    ) -> SyncResult:
        """Upload a local video file, then send it."""
        if not _has_identity(user):
            return _missing_identity("send_video_message")
        if self.uploader is None:
            return SyncResult.failure(SyncErrorCode.UPLOAD_FAILED, "No attachment uploader configured")

        invalid = _invalid_recipient(normalize(recipient_key), conversation_id)
        if invalid is not None:
            return invalid

        message_id = new_message_id(user.user_key, normalize(recipient_key))
        try:
            url = await self.uploader.upload_file(
                file_path, video_file_name(message_id), MESSAGE_VIDEOS_FOLDER, "video/quicktime"
            )
        except SyncError as e:
            logger.error(f"Video message {message_id} not sent: {e}")
            return SyncResult.from_error(e, conversation_id=conversation_id)

        width, height = self.messages.fallback_size
        kind = VideoKind(media=Attachment(url=url, width=width, height=height))
        return await self.send(user, recipient_key, recipient_name, kind, conversation_id, message_id=message_id)

    # ============= Reading =============

    async def list_conversations(self, user_key: str) -> list[Conversation]:
        """A user's conversation summaries in store order."""
        return await self.conversations.list_conversations(normalize(user_key))

    async def list_messages(self, conversation_id: str) -> MessageFeed:
        """The decoded message history of a conversation."""
        return await self.messages.fetch_messages(conversation_id)

    def watch_messages(self, conversation_id: str) -> AsyncIterator[MessageFeed]:
        """Live message history: a new feed on every change."""
        return self.messages.observe_messages(conversation_id)

    async def find_existing_conversation(self, user: UserContext | None, recipient_key: str) -> str | None:
        """ID of a conversation between the caller and recipient, if either side still lists one."""
        if not _has_identity(user):
            return None
        recipient_key = normalize(recipient_key)
        existing_id = await self.conversations.find_existing_conversation_id(recipient_key, user.user_key)
        if existing_id:
            return existing_id
        return await self.conversations.find_existing_conversation_id(user.user_key, recipient_key)

    async def conversation_state(self, conversation_id: str, user_a_key: str, user_b_key: str) -> ConversationState:
        """Derive the lifecycle state of a conversation from stored data."""
        try:
            log = await self.store.get(messages_path(conversation_id))
        except SyncError as e:
            logger.error(f"Failed to read message log {conversation_id}: {e}")
            log = None
        if not log:
            return ConversationState.NEW

        visible = 0
        for user_key in (user_a_key, user_b_key):
            summaries = await self.conversations.list_conversations(normalize(user_key))
            if any(c.id == conversation_id for c in summaries):
                visible += 1

        if visible == 2:
            return ConversationState.ACTIVE
        if visible == 1:
            return ConversationState.HIDDEN_FOR_ONE
        return ConversationState.HIDDEN_FOR_BOTH

    # ============= Housekeeping =============

    async def delete_conversation(self, user: UserContext | None, conversation_id: str) -> SyncResult:
        """Hide a conversation for the caller only."""
        if not _has_identity(user):
            return _missing_identity("delete_conversation")
        return await self.conversations.delete_conversation(user.user_key, conversation_id)

    async def mark_conversation_read(self, user: UserContext | None, conversation_id: str) -> SyncResult:
        """Mark the caller's latest message of a conversation as read."""
        if not _has_identity(user):
            return _missing_identity("mark_conversation_read")
        return await self.conversations.mark_read(user.user_key, conversation_id)

    async def reconcile_summary(
        self,
        user: UserContext | None,
        conversation_id: str,
        other_user_key: str,
        other_user_name: str,
    ) -> SyncResult:
        """Rebuild the caller's latest message from the log after a partial send."""
        if not _has_identity(user):
            return _missing_identity("reconcile_summary")

        last = await self.messages.last_message(conversation_id)
        if last is None:
            return SyncResult.failure(
                SyncErrorCode.NOT_FOUND,
                f"No decodable messages in {conversation_id}",
                conversation_id=conversation_id,
            )

        latest = LatestMessage(
            date=codec.format_timestamp(last.sent_date),
            message=codec.preview_text(last.kind),
            is_read=last.sender.sender_key == user.user_key,
        )
        result = await self.conversations.append_or_upsert_latest_message(
            user.user_key, conversation_id, normalize(other_user_key), other_user_name, latest
        )
        if result:
            logger.info(f"Reconciled summary of {conversation_id} for {user.user_key}")
        return result
