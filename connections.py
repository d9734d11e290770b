"""WebSocket transport: connection ids, room groups and named-event delivery.

Sends never block the caller. Each connection owns an outbound queue drained by
its own writer task, so a slow or dead peer only backs up its own queue and
frames reach each recipient in the order they were emitted.
"""
import asyncio
import json
import uuid
from typing import Any, Dict, Optional

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder

from logging_config import get_logger

logger = get_logger(__name__)


def encode_frame(event: str, data: Any) -> str:
    return json.dumps({"event": event, "data": jsonable_encoder(data)})


class Connection:
    def __init__(self, connection_id: str, websocket: WebSocket):
        self.connection_id = connection_id
        self.websocket = websocket
        # Unbounded: a peer that stops reading grows its queue until it disconnects
        self.outbox: asyncio.Queue = asyncio.Queue()
        self.writer_task: Optional[asyncio.Task] = None
        self.closed = False

    def start(self):
        self.writer_task = asyncio.create_task(self._writer())

    def enqueue(self, frame: str) -> bool:
        if self.closed:
            return False
        self.outbox.put_nowait(frame)
        return True

    async def _writer(self):
        while True:
            frame = await self.outbox.get()
            try:
                await self.websocket.send_text(frame)
            except Exception as e:
                # Peer went away mid-send; the receive loop will notice and clean up
                logger.debug(f"Error sending to connection {self.connection_id}: {e}")
                self.closed = True
                return

    async def stop(self):
        self.closed = True
        if self.writer_task is None:
            return
        self.writer_task.cancel()
        try:
            await self.writer_task
        except asyncio.CancelledError:
            pass
        self.writer_task = None


class ConnectionManager:
    def __init__(self):
        self.connections: Dict[str, Connection] = {}
        # room id -> ordered set of connection ids
        self.groups: Dict[str, Dict[str, None]] = {}

    async def connect(self, websocket: WebSocket) -> str:
        await websocket.accept()
        connection_id = str(uuid.uuid4())
        connection = Connection(connection_id, websocket)
        connection.start()
        self.connections[connection_id] = connection
        logger.debug(f"Accepted connection {connection_id} (active connections: {len(self.connections)})")
        return connection_id

    async def disconnect(self, connection_id: str):
        connection = self.connections.pop(connection_id, None)
        for room_id in list(self.groups):
            self.leave_group(room_id, connection_id)
        if connection is not None:
            await connection.stop()
            logger.debug(f"Removed connection {connection_id} (active connections: {len(self.connections)})")

    def join_group(self, room_id: str, connection_id: str):
        self.groups.setdefault(room_id, {})[connection_id] = None

    def leave_group(self, room_id: str, connection_id: str):
        members = self.groups.get(room_id)
        if members is None:
            return
        members.pop(connection_id, None)
        if not members:
            del self.groups[room_id]

    def members(self, room_id: str) -> list:
        return list(self.groups.get(room_id, {}))

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self.connections

    def emit(self, connection_id: str, event: str, data: Any = None) -> bool:
        """Queue one event for a single connection.

        Returns False when the target is unknown or already closed; callers
        treat that as a no-op.
        """
        connection = self.connections.get(connection_id)
        if connection is None:
            logger.debug(f"Dropping {event} for unknown connection {connection_id}")
            return False
        return connection.enqueue(encode_frame(event, data))

    def emit_to_room(self, room_id: str, event: str, data: Any = None, exclude: Optional[str] = None) -> int:
        frame = encode_frame(event, data)
        delivered = 0
        for connection_id in self.members(room_id):
            if connection_id == exclude:
                continue
            connection = self.connections.get(connection_id)
            if connection is not None and connection.enqueue(frame):
                delivered += 1
        return delivered
