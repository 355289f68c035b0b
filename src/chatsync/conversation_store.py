"""Per-user conversation summary lists.

Each user owns one list at ``{userKey}/conversations``. A conversation has a
summary in both participants' lists; the two are written independently, so
they can drift apart when a write fails or races. Every operation is a plain
read-modify-write of the whole list and reports its outcome as a SyncResult.
"""

import logging

from pydantic import ValidationError

from chatsync.errors import SyncError, SyncErrorCode, SyncResult
from chatsync.models import Conversation, LatestMessage
from chatsync.store import KeyPathStore, conversations_path

logger = logging.getLogger(__name__)


class ConversationStore:
    """Owns the conversation summary list of every user."""

    def __init__(self, store: KeyPathStore):
        self.store = store

    async def _read_entries(self, user_key: str) -> list[dict] | None:
        """Read the raw summary list, or None if the user has none yet."""
        value = await self.store.get(conversations_path(user_key))
        if value is None:
            return None
        if not isinstance(value, list):
            logger.warning(f"Conversation list for {user_key} is not a list, treating as empty")
            return []
        return [entry for entry in value if isinstance(entry, dict)]

    async def _write_entries(self, user_key: str, entries: list[dict]):
        await self.store.set(conversations_path(user_key), entries)

    async def create_conversation_entry(self, for_user_key: str, conversation: Conversation) -> SyncResult:
        """Add a new summary to a user's list, creating the list if needed."""
        try:
            entries = await self._read_entries(for_user_key)
            if entries is None:
                entries = [conversation.model_dump(mode="json")]
            else:
                entries.append(conversation.model_dump(mode="json"))
            await self._write_entries(for_user_key, entries)
        except SyncError as e:
            logger.error(f"Failed to create conversation {conversation.id} for {for_user_key}: {e}")
            return SyncResult.from_error(e, conversation_id=conversation.id)

        logger.info(f"Created conversation {conversation.id} for {for_user_key}")
        return SyncResult.success(conversation_id=conversation.id)

    async def append_or_upsert_latest_message(
        self,
        for_user_key: str,
        conversation_id: str,
        other_user_key: str,
        other_user_name: str,
        latest: LatestMessage,
    ) -> SyncResult:
        """Point a user's summary at a new latest message.

        If the user deleted their summary, a fresh one with the same
        conversation ID is appended, which brings the conversation back
        without duplicating its history.
        """
        try:
            entries = await self._read_entries(for_user_key)
            if entries is None:
                entries = []

            for entry in entries:
                if entry.get("id") == conversation_id:
                    entry["latest_message"] = latest.model_dump(mode="json")
                    break
            else:
                resurrected = Conversation(
                    id=conversation_id,
                    other_user_key=other_user_key,
                    other_user_name=other_user_name,
                    latest_message=latest,
                )
                entries.append(resurrected.model_dump(mode="json"))
                logger.info(f"Resurrected conversation {conversation_id} for {for_user_key}")

            await self._write_entries(for_user_key, entries)
        except SyncError as e:
            logger.error(f"Failed to update latest message of {conversation_id} for {for_user_key}: {e}")
            return SyncResult.from_error(e, conversation_id=conversation_id)

        return SyncResult.success(conversation_id=conversation_id)

    async def delete_conversation(self, for_user_key: str, conversation_id: str) -> SyncResult:
        """Remove only this user's summary; the counterpart and the log are untouched."""
        try:
            entries = await self._read_entries(for_user_key) or []
            for index, entry in enumerate(entries):
                if entry.get("id") == conversation_id:
                    del entries[index]
                    break
            else:
                logger.warning(f"Conversation {conversation_id} not found for {for_user_key}")
                return SyncResult.failure(
                    SyncErrorCode.NOT_FOUND,
                    f"No conversation {conversation_id} for {for_user_key}",
                    conversation_id=conversation_id,
                )

            await self._write_entries(for_user_key, entries)
        except SyncError as e:
            logger.error(f"Failed to delete conversation {conversation_id} for {for_user_key}: {e}")
            return SyncResult.from_error(e, conversation_id=conversation_id)

        logger.info(f"Deleted conversation {conversation_id} for {for_user_key}")
        return SyncResult.success(conversation_id=conversation_id)

    async def mark_read(self, for_user_key: str, conversation_id: str) -> SyncResult:
        """Set the read flag on a user's latest message for a conversation."""
        try:
            entries = await self._read_entries(for_user_key) or []
            for entry in entries:
                if entry.get("id") == conversation_id:
                    latest = entry.get("latest_message")
                    if not isinstance(latest, dict):
                        logger.error(f"Summary {conversation_id} of {for_user_key} has no readable latest message")
                        return SyncResult.failure(
                            SyncErrorCode.READ_FAILED,
                            f"Malformed summary {conversation_id} for {for_user_key}",
                            conversation_id=conversation_id,
                        )
                    if latest.get("is_read"):
                        return SyncResult.success(conversation_id=conversation_id)
                    latest["is_read"] = True
                    entry["latest_message"] = latest
                    break
            else:
                return SyncResult.failure(
                    SyncErrorCode.NOT_FOUND,
                    f"No conversation {conversation_id} for {for_user_key}",
                    conversation_id=conversation_id,
                )

            await self._write_entries(for_user_key, entries)
        except SyncError as e:
            logger.error(f"Failed to mark {conversation_id} read for {for_user_key}: {e}")
            return SyncResult.from_error(e, conversation_id=conversation_id)

        return SyncResult.success(conversation_id=conversation_id)

    async def find_existing_conversation_id(self, with_recipient_key: str, caller_key: str) -> str | None:
        """Look in the recipient's list for a conversation with the caller."""
        try:
            entries = await self._read_entries(with_recipient_key) or []
        except SyncError as e:
            logger.error(f"Failed to read conversations of {with_recipient_key}: {e}")
            return None

        for entry in entries:
            if entry.get("other_user_key") == caller_key and entry.get("id"):
                return entry["id"]
        return None

    async def list_conversations(self, user_key: str) -> list[Conversation]:
        """Decode a user's summaries in store order. Malformed entries are skipped."""
        try:
            entries = await self._read_entries(user_key) or []
        except SyncError as e:
            logger.error(f"Failed to list conversations of {user_key}: {e}")
            return []

        conversations = []
        for entry in entries:
            try:
                conversations.append(Conversation.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Skipping malformed conversation entry for {user_key}: {e}")
        return conversations
