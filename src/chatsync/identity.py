"""User identity: canonical keys, explicit caller context and ID generation."""

import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Protocol


def normalize(raw: str) -> str:
    """Derive a storage-safe user key from a raw identity such as an email.

    Every ``.`` and ``@`` becomes ``-``. The result contains neither character,
    so normalizing twice gives the same key.
    """
    return raw.replace(".", "-").replace("@", "-")


@dataclass(frozen=True)
class UserContext:
    """The caller of an orchestrator operation."""

    user_key: str
    display_name: str

    @classmethod
    def for_email(cls, email: str, display_name: str) -> "UserContext":
        return cls(user_key=normalize(email), display_name=display_name)


class IdentityProvider(Protocol):
    """Session collaborator that knows who the current user is."""

    def current_user_key(self) -> str | None: ...

    def current_user_display_name(self) -> str | None: ...


class StaticIdentityProvider:
    """Identity provider backed by fixed values (CLI sessions, tests)."""

    def __init__(self, email: str | None = None, display_name: str | None = None):
        self._email = email
        self._display_name = display_name

    def current_user_key(self) -> str | None:
        return normalize(self._email) if self._email else None

    def current_user_display_name(self) -> str | None:
        return self._display_name


def resolve_user(provider: IdentityProvider) -> UserContext | None:
    """Build a UserContext, or None if the session is missing either field."""
    user_key = provider.current_user_key()
    display_name = provider.current_user_display_name()
    if not user_key or not display_name:
        return None
    return UserContext(user_key=normalize(user_key), display_name=display_name)


def new_message_id(sender_key: str, recipient_key: str, now: datetime | None = None) -> str:
    """Create a message ID: recipient, sender, compact UTC time and a random suffix."""
    now = now or datetime.now(timezone.utc)
    stamp = now.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
    return f"{recipient_key}_{sender_key}_{stamp}_{secrets.token_hex(3)}"


def conversation_id_for(message_id: str) -> str:
    """Conversation IDs are derived from the first message's ID."""
    return f"conversation_{message_id}"
