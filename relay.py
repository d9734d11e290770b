"""Signaling protocol for the /ws endpoint.

Each connection moves Connected -> Joined(room) -> Disconnected. Room-scoped
events are only honoured once the connection has joined; anything else is
logged and dropped. The relay never looks inside ``signal`` payloads, it only
stamps ``senderID`` on them and forwards them by connection id.
"""
from typing import Any, Dict, Optional

from pydantic import ValidationError

from backend import AlreadyJoinedError, PasswordError, RoomRegistry
from connections import ConnectionManager
from constants import PASSWORD_ERROR_MESSAGE
from logging_config import get_logger
from schemas import events
from schemas.events import ChatMessageRequest, JoinRoomRequest, SignalRequest, ToggleMediaRequest
from schemas.rooms import ConnectionReady, JoinedSuccessfully, MediaToggled

logger = get_logger(__name__)


class ConnectionState:
    def __init__(self, connection_id: str):
        self.connection_id = connection_id
        self.room_id: Optional[str] = None

    @property
    def joined(self) -> bool:
        return self.room_id is not None


class SignalingRelay:
    def __init__(self, registry: RoomRegistry, transport: ConnectionManager):
        self.registry = registry
        self.transport = transport
        self.states: Dict[str, ConnectionState] = {}
        self.handlers = {
            events.JOIN_ROOM: self.handle_join_room,
            events.SIGNAL: self.handle_signal,
            events.CHAT_MESSAGE: self.handle_chat_message,
            events.TOGGLE_MEDIA: self.handle_toggle_media,
        }

    def on_connect(self, connection_id: str):
        self.states[connection_id] = ConnectionState(connection_id)
        self.transport.emit(connection_id, events.CONNECTED, ConnectionReady(id=connection_id))
        logger.info(f"User connected: {connection_id}")

    def dispatch(self, connection_id: str, event: str, data: Any = None):
        state = self.states.get(connection_id)
        if state is None:
            logger.warning(f"Event {event} from unknown connection {connection_id}")
            return
        handler = self.handlers.get(event)
        if handler is None:
            logger.warning(f"Ignoring unknown event {event!r} from connection {connection_id}")
            return
        if event != events.JOIN_ROOM and not state.joined:
            logger.warning(f"Ignoring {event} from connection {connection_id} before join-room")
            return
        try:
            handler(state, data)
        except ValidationError as e:
            logger.warning(f"Invalid {event} payload from connection {connection_id}: {e.error_count()} error(s)")

    def handle_join_room(self, state: ConnectionState, data: Any):
        if state.joined:
            logger.warning(f"Connection {state.connection_id} sent join-room while already in room {state.room_id}, ignoring")
            return
        request = JoinRoomRequest.model_validate(data)
        room_id = request.roomID
        try:
            participant, chat_history = self.registry.try_join(room_id, request.password, request.userName, state.connection_id)
        except PasswordError:
            self.transport.emit(state.connection_id, events.PASSWORD_ERROR, PASSWORD_ERROR_MESSAGE)
            return
        except AlreadyJoinedError as e:
            logger.error(f"Registry and connection state disagree: {e}")
            return

        state.room_id = room_id
        self.transport.join_group(room_id, state.connection_id)

        self.transport.emit(
            state.connection_id,
            events.JOINED_SUCCESSFULLY,
            JoinedSuccessfully(roomID=room_id, name=participant.name, chatHistory=chat_history),
        )
        self.transport.emit_to_room(room_id, events.USER_JOINED, participant, exclude=state.connection_id)
        self.broadcast_roster(room_id)
        logger.info(f"{participant.name} joined room {room_id}")

    def handle_signal(self, state: ConnectionState, data: Any):
        request = SignalRequest.model_validate(data)
        payload = request.model_dump()
        payload["senderID"] = state.connection_id
        # Not room-scoped: the target may sit in any room, or be gone already
        if not self.transport.emit(request.targetID, events.SIGNAL, payload):
            logger.debug(f"Signal from {state.connection_id} to {request.targetID} dropped, target not connected")

    def handle_chat_message(self, state: ConnectionState, data: Any):
        request = ChatMessageRequest.model_validate({"text": data})
        message = self.registry.append_chat(state.room_id, state.connection_id, request.text)
        if message is None:
            return
        self.transport.emit_to_room(state.room_id, events.CHAT_MESSAGE, message)

    def handle_toggle_media(self, state: ConnectionState, data: Any):
        request = ToggleMediaRequest.model_validate(data)
        participant = self.registry.set_media(state.room_id, state.connection_id, request.type, request.state)
        if participant is None:
            return
        self.transport.emit_to_room(
            state.room_id,
            events.MEDIA_TOGGLED,
            MediaToggled(id=state.connection_id, type=request.type, state=request.state),
            exclude=state.connection_id,
        )
        self.broadcast_roster(state.room_id)

    def on_disconnect(self, connection_id: str):
        state = self.states.pop(connection_id, None)
        if state is not None and state.joined:
            room_id = state.room_id
            self.transport.leave_group(room_id, connection_id)
            participant = self.registry.leave(room_id, connection_id)
            if participant is not None:
                remaining = self.registry.participant_count(room_id)
                if remaining:
                    self.transport.emit_to_room(room_id, events.USER_LEFT, connection_id)
                    self.broadcast_roster(room_id)
                logger.info(f"{participant.name} left room {room_id}. Users remaining: {remaining}")
        logger.info(f"User disconnected: {connection_id}")

    def broadcast_roster(self, room_id: str):
        self.transport.emit_to_room(room_id, events.PARTICIPANTS_UPDATE, self.registry.snapshot(room_id))
