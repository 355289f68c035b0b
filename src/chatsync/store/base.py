"""Key-path store interface and path helpers."""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator

from chatsync.errors import InvalidKeyError

# Characters the hosted key-path store rejects inside a path segment
FORBIDDEN_KEY_CHARS = frozenset(".#$[]")

USERS_PATH = "users"


def validate_path(path: str) -> str:
    """Check that every segment of a path is non-empty and storage safe."""
    segments = path.split("/")
    for segment in segments:
        if not segment:
            raise InvalidKeyError(f"Invalid key path {path!r}: empty segment", path=path)
        bad = FORBIDDEN_KEY_CHARS.intersection(segment)
        if bad:
            raise InvalidKeyError(f"Invalid key path {path!r}: forbidden characters {sorted(bad)}", path=path)
    return path


def profile_path(user_key: str) -> str:
    return validate_path(user_key)


def conversations_path(user_key: str) -> str:
    return validate_path(f"{user_key}/conversations")


def messages_path(conversation_id: str) -> str:
    return validate_path(f"{conversation_id}/messages")


class KeyPathStore(ABC):
    """Hierarchical key-path value store with single-key atomicity.

    Values are JSON-compatible (dicts, lists, strings, numbers, booleans).
    There are no multi-key transactions: callers read a whole value, change a
    copy and write the whole value back.
    """

    async def connect(self):
        """Open any underlying connections."""

    async def disconnect(self):
        """Release any underlying connections."""

    @abstractmethod
    async def get(self, path: str) -> Any | None:
        """Read a single snapshot of the value at path, or None if absent.

        Raises ReadFailedError if the store cannot serve the read.
        """

    @abstractmethod
    async def set(self, path: str, value: Any | None) -> None:
        """Replace the whole value at path. Setting None removes it.

        Raises WriteFailedError if the store rejects the write.
        """

    @abstractmethod
    def observe(self, path: str) -> AsyncIterator[Any | None]:
        """Yield the current value at path, then a new snapshot on every change."""
