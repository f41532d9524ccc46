import asyncio

from crowdguard.client.reconciler import Reconciler
from crowdguard.realtime.gateway import ConnectionState
from crowdguard.realtime.presence import Location


def _replay(transport, sid, reconciler):
    for name, payload in transport.frames_for(sid):
        reconciler.apply(name, payload)


def test_connect_registers_and_opens(sio, gateway, registry):
    asyncio.run(sio.connect_client("a"))

    assert "a" in registry
    assert registry.get("a") is None
    assert gateway.state("a") is ConnectionState.OPEN


def test_connect_sends_current_users_without_self(sio, gateway, registry, transport):
    async def scenario():
        await sio.connect_client("a")
        await sio.send_frame("a", "updateLocation", {"latitude": 1.0, "longitude": 2.0})
        await sio.connect_client("b")
        await sio.connect_client("c")

    asyncio.run(scenario())

    current = [p for name, p in transport.frames_for("c") if name == "currentUsers"]
    # b has not reported a location yet
    assert current == [{"a": {"id": "a", "latitude": 1.0, "longitude": 2.0}}]


def test_location_update_reaches_peers_but_not_sender(sio, gateway, registry, transport):
    async def scenario():
        await sio.connect_client("A")
        await sio.connect_client("B")
        await sio.send_frame("A", "updateLocation", {"latitude": 10, "longitude": 20})

    asyncio.run(scenario())

    a_view = Reconciler(own_connection_id="A")
    b_view = Reconciler(own_connection_id="B")
    _replay(transport, "A", a_view)
    _replay(transport, "B", b_view)

    assert registry.get("A") == Location(10.0, 20.0)
    assert b_view.presence.snapshot() == {"A": Location(10.0, 20.0)}
    assert len(a_view.presence) == 0
    assert transport.recipients("locationUpdate") == ["B"]


def test_disconnect_removes_then_notifies_remaining(sio, gateway, registry, transport):
    async def scenario():
        await sio.connect_client("A")
        await sio.connect_client("B")
        await sio.send_frame("A", "updateLocation", {"latitude": 1, "longitude": 1})
        await sio.send_frame("B", "updateLocation", {"latitude": 2, "longitude": 2})
        await sio.handlers["disconnect"]("A")

    asyncio.run(scenario())

    assert registry.snapshot() == {"B": Location(2.0, 2.0)}
    assert transport.recipients("userDisconnected") == ["B"]
    assert ("userDisconnected", "A") in transport.frames_for("B")
    assert gateway.state("A") is None


def test_disconnect_twice_notifies_once(sio, gateway, transport):
    async def scenario():
        await sio.connect_client("A")
        await sio.connect_client("B")
        await sio.handlers["disconnect"]("A")
        await sio.handlers["disconnect"]("A", "client disconnect")

    asyncio.run(scenario())

    assert transport.recipients("userDisconnected") == ["B"]


def test_frames_after_close_are_ignored(sio, gateway, registry, transport):
    async def scenario():
        await sio.connect_client("A")
        await sio.connect_client("B")
        await sio.handlers["disconnect"]("A")
        await sio.send_frame("A", "updateLocation", {"latitude": 5, "longitude": 5})
        await sio.send_frame("A", "sosAlert", {"userId": "u1", "location": {"latitude": 5, "longitude": 5}})

    asyncio.run(scenario())

    assert "A" not in registry
    assert transport.recipients("locationUpdate") == []
    assert transport.recipients("sosAlert") == []


def test_malformed_location_is_dropped(sio, gateway, registry, transport):
    async def scenario():
        await sio.connect_client("A")
        await sio.connect_client("B")
        await sio.send_frame("A", "updateLocation", {"latitude": "north"})
        await sio.send_frame("A", "updateLocation", None)

    asyncio.run(scenario())

    assert registry.get("A") is None
    assert transport.recipients("locationUpdate") == []


def test_sos_goes_to_everyone_and_leaves_registry_alone(sio, gateway, registry, transport):
    payload = {"userId": "u1", "location": {"latitude": 40.7, "longitude": -74.0}}

    async def scenario():
        await sio.connect_client("A")
        await sio.connect_client("B")
        await sio.send_frame("A", "sosAlert", payload)

    asyncio.run(scenario())

    assert sorted(transport.recipients("sosAlert")) == ["A", "B"]
    assert transport.frames_for("B")[-1] == ("sosAlert", payload)
    assert registry.get("A") is None


def test_health_check_closes_connections_whose_send_failed(sio, gateway, registry, transport):
    async def scenario():
        await sio.connect_client("A")
        await sio.connect_client("B")
        await sio.connect_client("C")
        transport.failing.add("B")
        await sio.send_frame("A", "updateLocation", {"latitude": 1, "longitude": 1})
        return await gateway.check_health()

    closed = asyncio.run(scenario())

    assert closed == 1
    assert sio.disconnected == ["B"]
    assert "B" not in registry
    assert ("userDisconnected", "B") in transport.frames_for("C")


def test_shutdown_closes_everything(sio, gateway, registry):
    async def scenario():
        await sio.connect_client("A")
        await sio.connect_client("B")
        await gateway.shutdown()

    asyncio.run(scenario())

    assert len(registry) == 0
    assert gateway.open_connections() == []
    assert sorted(sio.disconnected) == ["A", "B"]
