import asyncio

import pytest

from conftest import FakeTransport, make_incident
from crowdguard.realtime.events import (
    CurrentUsers,
    LocationUpdate,
    NewIncident,
    SosAlert,
    UserDisconnected,
)
from crowdguard.realtime.presence import Location


def _connect(registry, *ids):
    for cid in ids:
        registry.register(cid)


def test_location_update_skips_only_the_sender(registry, transport, broadcaster):
    _connect(registry, "a", "b", "c")

    delivered = asyncio.run(broadcaster.broadcast(LocationUpdate("a", 10.0, 20.0)))

    assert delivered == 2
    assert sorted(transport.recipients("locationUpdate")) == ["b", "c"]
    assert transport.frames_for("b") == [
        ("locationUpdate", {"id": "a", "latitude": 10.0, "longitude": 20.0})
    ]


def test_new_incident_reaches_everyone_once(registry, transport, broadcaster):
    _connect(registry, "a", "b")
    incident = make_incident("x1")

    asyncio.run(broadcaster.broadcast(NewIncident(incident)))

    assert sorted(transport.recipients("newIncident")) == ["a", "b"]
    _, payload = transport.frames_for("a")[0]
    assert payload["id"] == "x1"
    assert payload["reporterId"] == "u1"


def test_sos_payload_shape(registry, transport, broadcaster):
    _connect(registry, "a", "b")

    asyncio.run(broadcaster.broadcast(SosAlert("u9", 1.5, 2.5)))

    assert sorted(transport.recipients("sosAlert")) == ["a", "b"]
    assert transport.frames_for("a") == [
        ("sosAlert", {"userId": "u9", "location": {"latitude": 1.5, "longitude": 2.5}})
    ]


def test_removed_connection_gets_nothing(registry, transport, broadcaster):
    _connect(registry, "a", "b")
    registry.remove("a")

    asyncio.run(broadcaster.broadcast(UserDisconnected("a")))

    assert transport.recipients("userDisconnected") == ["b"]
    assert transport.frames_for("b") == [("userDisconnected", "a")]


def test_failed_send_does_not_block_others(registry, transport, broadcaster):
    failed = []
    broadcaster.on_send_failure = failed.append
    _connect(registry, "a", "b", "c")
    transport.failing.add("b")

    delivered = asyncio.run(broadcaster.broadcast(SosAlert("u1", 0.0, 0.0)))

    assert delivered == 2
    assert sorted(transport.recipients("sosAlert")) == ["a", "c"]
    assert failed == ["b"]


def test_slow_peer_is_bounded_by_timeout(registry, transport, broadcaster):
    _connect(registry, "a", "slow")
    transport.hanging.add("slow")

    delivered = asyncio.run(broadcaster.broadcast(SosAlert("u1", 0.0, 0.0)))

    assert delivered == 1
    assert transport.recipients("sosAlert") == ["a"]


def test_empty_audience(registry, transport, broadcaster):
    _connect(registry, "a")

    assert asyncio.run(broadcaster.broadcast(LocationUpdate("a", 1.0, 1.0))) == 0
    assert transport.sent == []


def test_current_users_is_direct_only(registry, transport, broadcaster):
    _connect(registry, "a", "b")
    registry.update_location("b", 3.0, 4.0)
    event = CurrentUsers({"b": Location(3.0, 4.0), "c": None})

    with pytest.raises(ValueError):
        asyncio.run(broadcaster.broadcast(event))

    assert asyncio.run(broadcaster.send_to("a", event)) is True
    assert transport.frames_for("a") == [
        ("currentUsers", {"b": {"id": "b", "latitude": 3.0, "longitude": 4.0}})
    ]


def test_send_to_unknown_connection(transport, broadcaster):
    assert asyncio.run(broadcaster.send_to("ghost", UserDisconnected("x"))) is False
    assert transport.sent == []


def test_registry_changes_during_fan_out(registry, broadcaster):
    class ChurningTransport(FakeTransport):
        def __init__(self):
            super().__init__()
            self.attempts = []

        async def send(self, connection_id, event_name, payload):
            self.attempts.append(connection_id)
            if len(self.attempts) == 1:
                registry.remove("c")
                registry.register("d")
            await asyncio.sleep(0)
            await super().send(connection_id, event_name, payload)

    churning = ChurningTransport()
    broadcaster.transport = churning
    _connect(registry, "a", "b", "c")

    delivered = asyncio.run(broadcaster.broadcast(SosAlert("u1", 0.0, 0.0)))

    assert delivered == 3
    assert sorted(churning.attempts) == ["a", "b", "c"]
    assert churning.frames_for("d") == []
    assert sorted(registry.connection_ids()) == ["a", "b", "d"]
