from pydantic import BaseModel
from typing import Literal


class Participant(BaseModel):
    id: str
    name: str
    video: bool = True
    audio: bool = True


class ChatMessage(BaseModel):
    sender: str
    text: str
    timestamp: str


class JoinedSuccessfully(BaseModel):
    roomID: str
    name: str
    chatHistory: list[ChatMessage]


class MediaToggled(BaseModel):
    id: str
    type: Literal["video", "audio"]
    state: bool


class ConnectionReady(BaseModel):
    id: str
