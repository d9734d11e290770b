from datetime import datetime
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from constants import GUEST_ID_CHARS, GUEST_PREFIX, MEDIA_KINDS
from logging_config import get_logger
from schemas.rooms import ChatMessage, Participant

logger = get_logger(__name__)


class RoomError(Exception):
    pass


class PasswordError(RoomError):
    def __init__(self, room_id: str):
        super().__init__(f"Incorrect password for room {room_id}")
        self.room_id = room_id


class AlreadyJoinedError(RoomError):
    def __init__(self, connection_id: str, room_id: str):
        super().__init__(f"Connection {connection_id} is already in room {room_id}")
        self.connection_id = connection_id
        self.room_id = room_id


class Room(BaseModel):
    room_id: str
    password: str
    # dicts keep insertion order, which is the roster order
    participants: Dict[str, Participant] = Field(default_factory=dict)
    chat_history: List[ChatMessage] = Field(default_factory=list)


def guest_name(connection_id: str) -> str:
    return f"{GUEST_PREFIX}{connection_id[:GUEST_ID_CHARS]}"


class RoomRegistry:
    """In-memory table of rooms, their rosters and chat logs.

    Everything here is synchronous and runs on the event loop thread, so each
    call is atomic with respect to every other handler. Lookups that miss
    (room gone, participant gone) return None instead of raising; those are
    races with a disconnect, not errors.
    """

    def __init__(self):
        self.rooms: Dict[str, Room] = {}
        # connection id -> room id, keeps a connection in at most one room
        self.memberships: Dict[str, str] = {}
        logger.info("Initializing in-memory RoomRegistry")

    def try_join(self, room_id: str, password: Optional[str], user_name: Optional[str], connection_id: str) -> Tuple[Participant, List[ChatMessage]]:
        password = password if password is not None else ""
        current_room = self.memberships.get(connection_id)
        if current_room is not None:
            raise AlreadyJoinedError(connection_id, current_room)

        room = self.rooms.get(room_id)
        if room is not None and room.password != password:
            logger.warning(f"Join rejected: Invalid password for room {room_id} from connection {connection_id}")
            raise PasswordError(room_id)

        if room is None:
            room = Room(room_id=room_id, password=password)
            self.rooms[room_id] = room
            logger.info(f"Room created: {room_id}")

        name = user_name if user_name and user_name.strip() else guest_name(connection_id)
        participant = Participant(id=connection_id, name=name)
        room.participants[connection_id] = participant
        self.memberships[connection_id] = room_id
        logger.debug(f"Participant {connection_id} ({name}) added to room {room_id} ({len(room.participants)} participants)")
        return participant, list(room.chat_history)

    def leave(self, room_id: str, connection_id: str) -> Optional[Participant]:
        room = self.rooms.get(room_id)
        if room is None:
            logger.debug(f"Leave ignored: Room {room_id} not found")
            return None

        participant = room.participants.pop(connection_id, None)
        if participant is not None:
            self.memberships.pop(connection_id, None)

        if not room.participants:
            self.delete_room(room_id)
        return participant

    def delete_room(self, room_id: str):
        room = self.rooms.pop(room_id, None)
        if room is None:
            return False
        for connection_id in room.participants:
            self.memberships.pop(connection_id, None)
        logger.info(f"Room {room_id} is now empty and deleted")
        return True

    def set_media(self, room_id: str, connection_id: str, kind: str, enabled: bool) -> Optional[Participant]:
        if kind not in MEDIA_KINDS:
            logger.warning(f"Unknown media kind {kind!r} from connection {connection_id}")
            return None
        participant = self._get_participant(room_id, connection_id)
        if participant is None:
            logger.debug(f"Media toggle ignored: {connection_id} not in room {room_id}")
            return None
        setattr(participant, kind, enabled)
        logger.debug(f"Participant {connection_id} set {kind}={enabled} in room {room_id}")
        return participant

    def snapshot(self, room_id: str) -> List[Participant]:
        room = self.rooms.get(room_id)
        if room is None:
            return []
        return [participant.model_copy() for participant in room.participants.values()]

    def append_chat(self, room_id: str, connection_id: str, text: str) -> Optional[ChatMessage]:
        participant = self._get_participant(room_id, connection_id)
        if participant is None:
            logger.debug(f"Chat message dropped: {connection_id} not in room {room_id}")
            return None
        message = ChatMessage(sender=participant.name, text=text, timestamp=datetime.now().isoformat())
        self.rooms[room_id].chat_history.append(message)
        return message

    def get_room(self, room_id: str) -> Optional[Room]:
        return self.rooms.get(room_id)

    def room_exists(self, room_id: str) -> bool:
        return room_id in self.rooms

    def participant_count(self, room_id: str) -> int:
        room = self.rooms.get(room_id)
        return len(room.participants) if room else 0

    def room_of(self, connection_id: str) -> Optional[str]:
        return self.memberships.get(connection_id)

    def room_count(self) -> int:
        return len(self.rooms)

    def _get_participant(self, room_id: str, connection_id: str) -> Optional[Participant]:
        room = self.rooms.get(room_id)
        if room is None:
            return None
        return room.participants.get(connection_id)
