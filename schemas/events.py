"""Inbound frame shapes for the /ws signaling endpoint.

Every frame is ``{"event": <name>, "data": <payload>}``. The payload models
below are validated at the transport boundary; anything that fails validation
is dropped by the relay.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Literal, Optional

JOIN_ROOM = "join-room"
SIGNAL = "signal"
CHAT_MESSAGE = "chat-message"
TOGGLE_MEDIA = "toggle-media"

CONNECTED = "connected"
PASSWORD_ERROR = "password-error"
JOINED_SUCCESSFULLY = "joined-successfully"
USER_JOINED = "user-joined"
PARTICIPANTS_UPDATE = "participants-update"
MEDIA_TOGGLED = "media-toggled"
USER_LEFT = "user-left"


class Envelope(BaseModel):
    event: str
    data: Any = None


class JoinRoomRequest(BaseModel):
    roomID: str = Field(min_length=1)
    password: Optional[str] = None
    userName: Optional[str] = None

    @field_validator("userName", mode="before")
    @classmethod
    def non_text_name_becomes_guest(cls, value):
        return value if isinstance(value, str) else None


class SignalRequest(BaseModel):
    # Offers, answers and candidates pass through untouched
    model_config = ConfigDict(extra="allow")

    targetID: str


class ChatMessageRequest(BaseModel):
    text: str


class ToggleMediaRequest(BaseModel):
    type: Literal["video", "audio"]
    state: bool
