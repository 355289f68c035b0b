"""Conversation summary models."""

from pydantic import BaseModel, Field


class LatestMessage(BaseModel):
    """Denormalized preview of the newest message in a conversation."""

    date: str = Field(..., description="Encoded timestamp of the message")
    message: str = Field(..., description="Encoded content of the message")
    is_read: bool = Field(False, description="Whether the owner has read it")


class Conversation(BaseModel):
    """One participant's summary of a conversation."""

    id: str = Field(..., description="Conversation ID, shared by both participants")
    other_user_key: str = Field(..., description="Canonical key of the counterpart")
    other_user_name: str = Field(..., description="Display name of the counterpart")
    latest_message: LatestMessage = Field(..., description="Latest successfully written message")
