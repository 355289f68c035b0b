"""User and directory models."""

from pydantic import BaseModel, Field

from chatsync.identity import normalize


class ChatUser(BaseModel):
    """A registered user."""

    first_name: str = Field(..., description="Given name")
    last_name: str = Field(..., description="Family name")
    email: str = Field(..., description="Raw email address")

    @property
    def user_key(self) -> str:
        return normalize(self.email)

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def profile_picture_file_name(self) -> str:
        return f"{self.user_key}_profile_picture.png"


class DirectoryEntry(BaseModel):
    """One element of the global users directory."""

    name: str
    email: str = Field(..., description="Canonical user key")
