import asyncio
import json

from conftest import add_connection, drain
from connections import encode_frame
from schemas.rooms import Participant


def test_encode_frame_serializes_models():
    frame = json.loads(encode_frame("user-joined", Participant(id="c1", name="Alice")))

    assert frame == {"event": "user-joined", "data": {"id": "c1", "name": "Alice", "video": True, "audio": True}}


def test_emit_to_unknown_connection_returns_false(transport):
    assert transport.emit("ghost", "signal", {"sdp": "offer"}) is False


def test_emit_preserves_order_per_recipient(transport):
    add_connection(transport, "a")

    for i in range(5):
        transport.emit("a", "chat-message", {"text": str(i)})

    assert [data["text"] for _, data in drain(transport, "a")] == ["0", "1", "2", "3", "4"]


def test_emit_to_room_with_and_without_exclude(transport):
    for connection_id in ("a", "b", "c"):
        add_connection(transport, connection_id)
    transport.join_group("room", "a")
    transport.join_group("room", "b")

    assert transport.emit_to_room("room", "participants-update", []) == 2
    assert transport.emit_to_room("room", "user-joined", {"id": "a"}, exclude="a") == 1

    assert [event for event, _ in drain(transport, "a")] == ["participants-update"]
    assert [event for event, _ in drain(transport, "b")] == ["participants-update", "user-joined"]
    assert drain(transport, "c") == []


def test_emit_to_empty_room_delivers_nothing(transport):
    assert transport.emit_to_room("nowhere", "user-left", "a") == 0


def test_closed_connection_stops_accepting_frames(transport):
    connection = add_connection(transport, "a")
    connection.closed = True

    assert transport.emit("a", "signal", {}) is False
    assert connection.outbox.empty()


def test_leave_group_drops_empty_groups(transport):
    transport.join_group("room", "a")
    transport.join_group("room", "b")

    transport.leave_group("room", "a")
    assert transport.members("room") == ["b"]

    transport.leave_group("room", "b")
    assert "room" not in transport.groups
    transport.leave_group("room", "b")


def test_disconnect_forgets_connection_and_groups(transport):
    add_connection(transport, "a")
    transport.join_group("room", "a")

    asyncio.run(transport.disconnect("a"))

    assert not transport.is_connected("a")
    assert transport.members("room") == []
    assert transport.emit("a", "signal", {}) is False


def test_outbox_is_unbounded(transport):
    connection = add_connection(transport, "a")

    for i in range(1000):
        transport.emit("a", "chat-message", {"text": str(i)})

    assert connection.outbox.maxsize == 0
    assert connection.outbox.qsize() == 1000
