import pytest
from fastapi.testclient import TestClient
from fastapi.websockets import WebSocketDisconnect

from app import create_app
from schemas.config import RelayConfig


def _client(**overrides) -> TestClient:
    return TestClient(create_app(RelayConfig(**overrides)))


@pytest.fixture
def client():
    with _client() as c:
        yield c


def test_pair_signal_and_peer_left(client):
    with client.websocket_connect("/") as x:
        x.send_json({"type": "create", "room": "Sol-Luna-42 "})
        assert x.receive_json() == {"type": "created", "room": "sol-luna-42"}

        with client.websocket_connect("/ws") as y:
            y.send_json({"type": "join", "room": "sol-luna-42"})
            assert y.receive_json() == {"type": "joined", "room": "sol-luna-42"}
            assert x.receive_json() == {"type": "peer-joined"}

            x.send_json({"type": "signal", "data": {"sdp": "..."}})
            x.send_json({"type": "signal", "data": {"sdp": "..."}})
            x.send_json({"type": "signal", "data": {"candidate": "c1"}})
            assert y.receive_json() == {"type": "signal", "data": {"sdp": "..."}}
            # the retransmitted frame was dropped, so the next thing is the candidate
            assert y.receive_json() == {"type": "signal", "data": {"candidate": "c1"}}

            y.send_json({"type": "signal", "data": {"sdp": "answer"}})
            assert x.receive_json() == {"type": "signal", "data": {"sdp": "answer"}}

        assert x.receive_json() == {"type": "peer-left"}


def test_third_peer_is_rejected(client):
    with client.websocket_connect("/") as x, client.websocket_connect("/") as y, \
            client.websocket_connect("/") as z:
        x.send_json({"type": "create", "room": "sol-luna-42"})
        x.receive_json()
        y.send_json({"type": "join", "room": "sol-luna-42"})
        y.receive_json()
        x.receive_json()

        z.send_json({"type": "join", "room": "sol-luna-42"})
        assert z.receive_json() == {"type": "error"}

        x.send_json({"type": "signal", "data": {"sdp": "still-paired"}})
        assert y.receive_json() == {"type": "signal", "data": {"sdp": "still-paired"}}


def test_invalid_frames_keep_connection_open(client):
    with client.websocket_connect("/") as ws:
        ws.send_text("definitely not json")
        assert ws.receive_json() == {"type": "error"}
        ws.send_json({"type": "nope"})
        assert ws.receive_json() == {"type": "error"}
        ws.send_json({"type": "leave"})
        assert ws.receive_json() == {"type": "left"}


def test_cross_origin_rejected_before_accept(client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with client.websocket_connect("/", headers={"origin": "https://evil.example"}):
            pass
    assert exc.value.code == 1008


def test_same_origin_accepted(client):
    with client.websocket_connect("/", headers={"origin": "http://testserver"}) as ws:
        ws.send_json({"type": "leave"})
        assert ws.receive_json() == {"type": "left"}


def test_allowlist():
    with _client(allowed_origins=["https://app.example"]) as c:
        with c.websocket_connect("/", headers={"origin": "https://app.example"}) as ws:
            ws.send_json({"type": "leave"})
            assert ws.receive_json() == {"type": "left"}
        with pytest.raises(WebSocketDisconnect):
            with c.websocket_connect("/"):
                pass


def test_source_rate_limit():
    with _client(source_rate_max=2) as c:
        for _ in range(2):
            with c.websocket_connect("/"):
                pass
        with pytest.raises(WebSocketDisconnect) as exc:
            with c.websocket_connect("/"):
                pass
        assert exc.value.code == 1008


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["rooms"] == 0
    assert body["connections"] == 0

    with client.websocket_connect("/") as ws:
        ws.send_json({"type": "create", "room": "health-check"})
        ws.receive_json()
        body = client.get("/health").json()
        assert body["rooms"] == 1
        assert body["connections"] == 1
