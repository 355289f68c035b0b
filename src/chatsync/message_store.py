"""Per-conversation message logs.

The log at ``{conversationId}/messages`` is the source of truth for message
order: records are appended with a whole-list read-modify-write, so store
order is arrival order.
"""

import logging
from typing import AsyncIterator, Iterable, Iterator

from pydantic import ValidationError

from chatsync import codec
from chatsync.config import settings
from chatsync.errors import SyncError, SyncErrorCode, SyncResult
from chatsync.models import Message, MessageFeed, MessageRecord, Sender
from chatsync.store import KeyPathStore, messages_path

logger = logging.getLogger(__name__)


def decode_record(raw: dict, fallback_size: tuple[int, int]) -> Message | None:
    """Rebuild a typed message from a stored record, or None if it cannot be."""
    try:
        record = MessageRecord.model_validate(raw)
    except ValidationError:
        return None

    sent_date = codec.parse_timestamp(record.date)
    if sent_date is None:
        return None

    kind = codec.decode(record.type.value, record.content, fallback_size)
    if kind is codec.UNPARSEABLE:
        return None

    return Message(
        sender=Sender(sender_key=record.sender_key, display_name=record.name),
        message_id=record.id,
        sent_date=sent_date,
        kind=kind,
    )


class MessageLog:
    """Restartable, lazily decoded view over a snapshot of raw records."""

    def __init__(self, conversation_id: str, raw_records: Iterable[dict], fallback_size: tuple[int, int]):
        self.conversation_id = conversation_id
        self._raw = list(raw_records)
        self._fallback_size = fallback_size
        self.skipped = 0

    def __iter__(self) -> Iterator[Message]:
        self.skipped = 0
        for raw in self._raw:
            message = decode_record(raw, self._fallback_size) if isinstance(raw, dict) else None
            if message is None:
                self.skipped += 1
                continue
            yield message

    def to_feed(self) -> MessageFeed:
        messages = list(self)
        if self.skipped:
            logger.warning(f"Skipped {self.skipped} undecodable records in {self.conversation_id}")
        return MessageFeed(conversation_id=self.conversation_id, messages=messages, skipped=self.skipped)


class MessageStore:
    """Owns the message log of every conversation."""

    def __init__(self, store: KeyPathStore, fallback_size: tuple[int, int] | None = None):
        self.store = store
        self.fallback_size = fallback_size or (
            settings.media_placeholder_width,
            settings.media_placeholder_height,
        )

    async def create_message_log(self, conversation_id: str, first_record: MessageRecord) -> SyncResult:
        """Start the log of a new conversation. Refuses to overwrite an existing log."""
        try:
            path = messages_path(conversation_id)
            existing = await self.store.get(path)
            if existing:
                logger.error(f"Message log {conversation_id} already exists, not overwriting")
                return SyncResult.failure(
                    SyncErrorCode.WRITE_FAILED,
                    f"Message log {conversation_id} already exists",
                    conversation_id=conversation_id,
                    message_id=first_record.id,
                )
            await self.store.set(path, [first_record.model_dump(mode="json")])
        except SyncError as e:
            logger.error(f"Failed to create message log {conversation_id}: {e}")
            return SyncResult.from_error(e, conversation_id=conversation_id)

        logger.info(f"Created message log {conversation_id}")
        return SyncResult.success(conversation_id=conversation_id, message_id=first_record.id)

    async def append_message(self, conversation_id: str, record: MessageRecord) -> SyncResult:
        """Append a record to an existing log.

        A record whose ID is already in the log is not written twice, so a
        retried send is harmless.
        """
        try:
            path = messages_path(conversation_id)
            records = await self.store.get(path)
            if not records:
                logger.warning(f"No message log for {conversation_id}")
                return SyncResult.failure(
                    SyncErrorCode.NOT_FOUND,
                    f"No message log for {conversation_id}",
                    conversation_id=conversation_id,
                    message_id=record.id,
                )
            if not isinstance(records, list):
                logger.error(f"Message log {conversation_id} is not a list, not appending")
                return SyncResult.failure(
                    SyncErrorCode.READ_FAILED,
                    f"Message log {conversation_id} is malformed",
                    conversation_id=conversation_id,
                    message_id=record.id,
                )

            if any(isinstance(r, dict) and r.get("id") == record.id for r in records):
                logger.info(f"Message {record.id} already in {conversation_id}, skipping append")
                return SyncResult.success(conversation_id=conversation_id, message_id=record.id)

            records.append(record.model_dump(mode="json"))
            await self.store.set(path, records)
        except SyncError as e:
            logger.error(f"Failed to append message {record.id} to {conversation_id}: {e}")
            return SyncResult.from_error(e, conversation_id=conversation_id)

        logger.debug(f"Appended message {record.id} to {conversation_id}")
        return SyncResult.success(conversation_id=conversation_id, message_id=record.id)

    def _log(self, conversation_id: str, records) -> MessageLog:
        if not isinstance(records, list):
            records = []
        return MessageLog(conversation_id, records, self.fallback_size)

    async def iter_messages(self, conversation_id: str) -> MessageLog:
        """Read the log once and return a lazy, restartable decoder over it."""
        try:
            records = await self.store.get(messages_path(conversation_id))
        except SyncError as e:
            logger.error(f"Failed to read message log {conversation_id}: {e}")
            records = None
        return self._log(conversation_id, records)

    async def fetch_messages(self, conversation_id: str) -> MessageFeed:
        """Decoded messages in store order, with a count of dropped records."""
        log = await self.iter_messages(conversation_id)
        return log.to_feed()

    async def last_message(self, conversation_id: str) -> Message | None:
        """The newest decodable message in a log."""
        feed = await self.fetch_messages(conversation_id)
        return feed.messages[-1] if feed.messages else None

    async def observe_messages(self, conversation_id: str) -> AsyncIterator[MessageFeed]:
        """Yield a fresh feed now and after every change to the log."""
        async for records in self.store.observe(messages_path(conversation_id)):
            yield self._log(conversation_id, records).to_feed()
