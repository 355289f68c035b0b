"""User profiles and the global users directory.

Profiles live at ``{userKey}``; the directory at ``users`` is a single
append-only list of ``{name, email}`` entries that is scanned linearly.
"""

import logging

from pydantic import ValidationError

from chatsync.errors import SyncError, SyncResult
from chatsync.identity import normalize
from chatsync.models import ChatUser, DirectoryEntry
from chatsync.store import USERS_PATH, KeyPathStore, profile_path

logger = logging.getLogger(__name__)


class UserDirectory:
    """Registers users and answers who-is-who lookups."""

    def __init__(self, store: KeyPathStore):
        self.store = store

    async def user_exists(self, email: str) -> bool:
        """Whether a profile exists for this identity."""
        try:
            profile = await self.store.get(profile_path(normalize(email)))
        except SyncError as e:
            logger.error(f"Failed to look up {email}: {e}")
            return False
        return profile is not None

    async def insert_user(self, user: ChatUser) -> SyncResult:
        """Write the user's profile, then add them to the directory.

        The two writes are independent; if the directory append fails the
        profile stays written.
        """
        try:
            await self.store.set(
                profile_path(user.user_key),
                {"first_name": user.first_name, "last_name": user.last_name},
            )
        except SyncError as e:
            logger.error(f"Failed to write profile for {user.user_key}: {e}")
            return SyncResult.from_error(e)

        entry = DirectoryEntry(name=user.display_name, email=user.user_key)
        try:
            entries = await self.store.get(USERS_PATH)
            if not isinstance(entries, list):
                entries = []
            if not any(isinstance(e, dict) and e.get("email") == entry.email for e in entries):
                entries.append(entry.model_dump())
                await self.store.set(USERS_PATH, entries)
        except SyncError as e:
            logger.error(f"Failed to add {user.user_key} to users directory: {e}")
            return SyncResult.from_error(e)

        logger.info(f"Inserted user {user.user_key}")
        return SyncResult.success()

    async def get_all_users(self) -> list[DirectoryEntry]:
        """Every directory entry, in insertion order."""
        try:
            entries = await self.store.get(USERS_PATH)
        except SyncError as e:
            logger.error(f"Failed to read users directory: {e}")
            return []

        users = []
        for raw in entries or []:
            try:
                users.append(DirectoryEntry.model_validate(raw))
            except ValidationError:
                logger.warning(f"Skipping malformed directory entry: {raw!r}")
        return users

    async def search_users(self, query: str, exclude_key: str | None = None) -> list[DirectoryEntry]:
        """Case-insensitive prefix match on name or key, without the caller."""
        term = query.strip().lower()
        if not term:
            return []
        normalized_term = normalize(term)
        results = []
        for user in await self.get_all_users():
            if exclude_key and user.email == exclude_key:
                continue
            if user.name.lower().startswith(term) or user.email.lower().startswith(normalized_term):
                results.append(user)
        return results
