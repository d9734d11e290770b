"""Shared fixtures: a real registry and relay over a transport with no sockets.

Connections are registered straight into the ConnectionManager without writer
tasks, so every emitted frame stays in the connection's outbox where tests can
read it back synchronously.
"""
import json

import pytest
from fastapi.testclient import TestClient

from app import create_app
from backend import RoomRegistry
from connections import Connection, ConnectionManager
from relay import SignalingRelay


class FakeWebSocket:
    pass


def add_connection(transport: ConnectionManager, connection_id: str) -> Connection:
    connection = Connection(connection_id, FakeWebSocket())
    transport.connections[connection_id] = connection
    return connection


def drain(transport: ConnectionManager, connection_id: str) -> list:
    """Pop every queued frame for a connection as (event, data) pairs."""
    outbox = transport.connections[connection_id].outbox
    frames = []
    while not outbox.empty():
        frame = json.loads(outbox.get_nowait())
        frames.append((frame["event"], frame["data"]))
    return frames


def events_of(frames: list) -> list:
    return [event for event, _ in frames]


@pytest.fixture
def registry() -> RoomRegistry:
    return RoomRegistry()


@pytest.fixture
def transport() -> ConnectionManager:
    return ConnectionManager()


@pytest.fixture
def relay(registry, transport) -> SignalingRelay:
    return SignalingRelay(registry, transport)


@pytest.fixture
def connect(relay, transport):
    """Open a fake connection and discard its ``connected`` greeting."""

    def _connect(connection_id: str) -> str:
        add_connection(transport, connection_id)
        relay.on_connect(connection_id)
        drain(transport, connection_id)
        return connection_id

    return _connect


@pytest.fixture
def join(relay, transport, connect):
    """Connect and join a room, then clear every outbox touched by the join."""

    def _join(connection_id: str, room_id: str, password: str = "pw", user_name=None) -> str:
        connect(connection_id)
        relay.dispatch(connection_id, "join-room", {"roomID": room_id, "password": password, "userName": user_name})
        for other in list(transport.connections):
            drain(transport, other)
        return connection_id

    return _join


@pytest.fixture
def client():
    # One portal for every websocket so all connections share an event loop
    with TestClient(create_app()) as test_client:
        yield test_client
