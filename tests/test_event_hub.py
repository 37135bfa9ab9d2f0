import pytest

from fanledger.realtime.hub import ACCESS_UPDATED, PURCHASE_CREATED, EventHub, RealtimeEvent, access_updated


def purchase_event(creator_id="c1"):
    return RealtimeEvent(type=PURCHASE_CREATED, creator_id=creator_id, fan_id="f1", payload={"amount": 9})


class TestEventHub:

    def test_delivers_to_all_listeners(self):
        hub = EventHub()
        first, second = [], []
        hub.subscribe(first.append)
        hub.subscribe(second.append)

        assert hub.emit(purchase_event()) == 2
        assert len(first) == len(second) == 1

    def test_creator_filter(self):
        hub = EventHub()
        mine, everything = [], []
        hub.subscribe(mine.append, creator_id="c1")
        hub.subscribe(everything.append)

        hub.emit(purchase_event("c2"))

        assert mine == []
        assert len(everything) == 1

    def test_unsubscribe(self):
        hub = EventHub()
        received = []
        unsubscribe = hub.subscribe(received.append)
        unsubscribe()
        unsubscribe()

        assert hub.emit(purchase_event()) == 0
        assert hub.listener_count == 0

    def test_failing_listener_does_not_block_others(self):
        hub = EventHub()
        received = []

        def broken(event):
            raise ValueError("boom")

        hub.subscribe(broken)
        hub.subscribe(received.append)

        assert hub.emit(purchase_event()) == 1
        assert len(received) == 1

    def test_listener_limit(self):
        hub = EventHub(max_listeners=2)
        hub.subscribe(lambda e: None)
        hub.subscribe(lambda e: None)
        with pytest.raises(RuntimeError):
            hub.subscribe(lambda e: None)


def test_event_serialization():
    event = access_updated("c1", "f1", "monthly", "2026-04-01T00:00:00+00:00")
    data = event.to_dict()
    assert data["type"] == ACCESS_UPDATED
    assert data["creatorId"] == "c1"
    assert data["payload"] == {"grantType": "monthly", "expiresAt": "2026-04-01T00:00:00+00:00"}
    assert data["eventId"]
    assert data["createdAt"]
