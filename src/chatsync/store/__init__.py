"""Key-path store backends."""

from chatsync.config import Settings, settings
from chatsync.store.base import (
    USERS_PATH,
    KeyPathStore,
    conversations_path,
    messages_path,
    profile_path,
    validate_path,
)
from chatsync.store.memory import MemoryKeyPathStore


def create_store(config: Settings | None = None) -> KeyPathStore:
    """Build the store selected by settings.store_backend."""
    config = config or settings
    if config.store_backend == "postgres":
        from chatsync.store.postgres import PostgresKeyPathStore

        return PostgresKeyPathStore(config.database_url)
    return MemoryKeyPathStore()


__all__ = [
    "USERS_PATH",
    "KeyPathStore",
    "MemoryKeyPathStore",
    "conversations_path",
    "create_store",
    "messages_path",
    "profile_path",
    "validate_path",
]
