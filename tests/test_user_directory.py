"""Tests for user profiles and the users directory."""

import pytest

from chatsync.errors import SyncErrorCode
from chatsync.models import ChatUser, DirectoryEntry
from chatsync.user_directory import UserDirectory


def _user(first: str, last: str, email: str) -> ChatUser:
    return ChatUser(first_name=first, last_name=last, email=email)


class TestUserDirectory:
    """Test UserDirectory operations."""

    @pytest.fixture
    def directory(self, store) -> UserDirectory:
        return UserDirectory(store)

    @pytest.mark.asyncio
    async def test_insert_writes_profile_and_entry(self, store, directory):
        """Test registration writes the profile and a directory entry."""
        result = await directory.insert_user(_user("Ada", "Lovelace", "ada@example.com"))

        assert result
        assert await store.get("ada-example-com") == {"first_name": "Ada", "last_name": "Lovelace"}
        assert await directory.get_all_users() == [DirectoryEntry(name="Ada Lovelace", email="ada-example-com")]

    @pytest.mark.asyncio
    async def test_user_exists(self, directory):
        """Test existence is checked by normalized key."""
        assert await directory.user_exists("ada@example.com") is False
        await directory.insert_user(_user("Ada", "Lovelace", "ada@example.com"))
        assert await directory.user_exists("ada@example.com") is True
        assert await directory.user_exists("ada-example-com") is True

    @pytest.mark.asyncio
    async def test_insert_twice_keeps_one_entry(self, directory):
        """Test re-registering does not duplicate the directory entry."""
        await directory.insert_user(_user("Ada", "Lovelace", "ada@example.com"))
        await directory.insert_user(_user("Ada", "King", "ada@example.com"))
        assert len(await directory.get_all_users()) == 1

    @pytest.mark.asyncio
    async def test_profile_write_failure(self, store, directory):
        """Test a failed profile write leaves the directory untouched."""
        store.fail_writes("ada-example-com")
        result = await directory.insert_user(_user("Ada", "Lovelace", "ada@example.com"))
        assert result.error == SyncErrorCode.WRITE_FAILED
        assert await directory.get_all_users() == []

    @pytest.mark.asyncio
    async def test_directory_failure_keeps_profile(self, store, directory):
        """Test the profile stays written when the directory append fails."""
        store.fail_writes("users")
        result = await directory.insert_user(_user("Ada", "Lovelace", "ada@example.com"))
        assert not result
        assert await directory.user_exists("ada@example.com")

    @pytest.mark.asyncio
    async def test_malformed_entries_skipped(self, store, directory):
        """Test that junk in the directory does not break listing."""
        await store.set("users", [{"name": "Ada Lovelace", "email": "ada-example-com"}, {"name": 1}, "junk"])
        assert [u.email for u in await directory.get_all_users()] == ["ada-example-com"]

    @pytest.mark.asyncio
    async def test_search(self, directory):
        """Test prefix search on name and key, excluding the caller."""
        await directory.insert_user(_user("Ada", "Lovelace", "ada@example.com"))
        await directory.insert_user(_user("Alan", "Turing", "alan@example.com"))
        await directory.insert_user(_user("Grace", "Hopper", "grace@example.com"))

        assert [u.name for u in await directory.search_users("a")] == ["Ada Lovelace", "Alan Turing"]
        assert [u.name for u in await directory.search_users("GRACE")] == ["Grace Hopper"]
        assert [u.name for u in await directory.search_users("alan@")] == ["Alan Turing"]
        assert [u.name for u in await directory.search_users("a", exclude_key="ada-example-com")] == ["Alan Turing"]
        assert await directory.search_users("   ") == []

    def test_profile_picture_file_name(self):
        """Test the profile picture is named after the user key."""
        user = _user("Ada", "Lovelace", "ada@example.com")
        assert user.profile_picture_file_name == "ada-example-com_profile_picture.png"
