import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from fanledger.main import create_app
from fanledger.realtime.hub import EventHub

from factories import auth_headers


def token_for(subject, role):
    return auth_headers(subject, role)["Authorization"].split(" ", 1)[1]


@pytest.fixture
def socket_hub():
    return EventHub(max_listeners=1)


@pytest.fixture
def socket_client(socket_hub):
    return TestClient(create_app(socket_hub))


def test_rejects_missing_token(socket_client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with socket_client.websocket_connect("/ws/creators/c1/events"):
            pass
    assert exc.value.code == 4001


def test_rejects_fan_token(socket_client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with socket_client.websocket_connect(f"/ws/creators/c1/events?token={token_for('c1', 'fan')}"):
            pass
    assert exc.value.code == 4001


def test_rejects_other_creator(socket_client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with socket_client.websocket_connect(f"/ws/creators/c1/events?token={token_for('c2', 'creator')}"):
            pass
    assert exc.value.code == 4001


def test_owner_subscribes(socket_client, socket_hub):
    with socket_client.websocket_connect(f"/ws/creators/c1/events?token={token_for('c1', 'creator')}"):
        assert socket_hub.listener_count == 1


def test_full_hub_refuses(socket_client, socket_hub):
    socket_hub.subscribe(lambda e: None)
    with pytest.raises(WebSocketDisconnect) as exc:
        with socket_client.websocket_connect(f"/ws/creators/c1/events?token={token_for('c1', 'creator')}"):
            pass
    assert exc.value.code == 4003
