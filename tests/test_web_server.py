"""
Tests for the HTTP and WebSocket surface
"""
import pytest
from fastapi.testclient import TestClient

from fakes import FakeChain, FakeWallet, OWNER, PLAYER, contract_factory_for
from lottery_dapp.lottery import viewmodel as vm_module
from lottery_dapp.lottery.viewmodel import LotteryViewModel
from lottery_dapp.web_server import LotteryWebServer


def make_client(chain, address=OWNER):
    view_model = LotteryViewModel(FakeWallet(address=address), contract_factory_for(chain), {})
    server = LotteryWebServer({}, view_model)
    return TestClient(server.app)


@pytest.fixture
def chain():
    return FakeChain()


def test_serves_page(chain):
    response = make_client(chain).get("/")
    assert response.status_code == 200
    assert "Lottery Dapp" in response.text


def test_initial_state(chain):
    data = make_client(chain).get("/api/state").json()
    assert data["state"]["status"] == "Awaiting wallet connection..."
    assert data["state"]["connected"] is False
    assert data["state"]["role"] is None


def test_connect_returns_loaded_state(chain):
    data = make_client(chain).post("/api/wallet/connect").json()

    assert data["outcome"] == {
        "action": "connect",
        "ok": True,
        "status": vm_module.CONNECTED_STATUS,
        "alert": None,
        "error_kind": None,
    }
    state = data["state"]
    assert state["role"] == "ADMIN"
    assert state["inputAmount"] == "0.01"
    assert state["players"] == []
    assert state["lastWinner"] == "None"
    assert state["canPickWinner"] is True


def test_buy_before_connect_returns_alert(chain):
    data = make_client(chain).post("/api/ticket/buy").json()
    assert data["outcome"]["alert"] == vm_module.CONNECT_FIRST_ALERT
    assert data["outcome"]["error_kind"] == "precondition"
    assert chain.writes == []


def test_edit_amount_then_buy(chain):
    client = make_client(chain, address=PLAYER)
    client.post("/api/wallet/connect")

    edited = client.put("/api/ticket/amount", json={"amount": "0.02"}).json()
    assert edited["state"]["inputAmount"] == "0.02"

    data = client.post("/api/ticket/buy").json()
    assert data["outcome"]["ok"] is True
    assert data["state"]["players"] == [PLAYER]
    assert data["state"]["balance"] == "0.02"


def test_buy_carries_typed_amount(chain):
    client = make_client(chain, address=PLAYER)
    client.post("/api/wallet/connect")

    data = client.post("/api/ticket/buy", json={"amount": "0.03"}).json()

    assert data["outcome"]["ok"] is True
    assert chain.sent_values == [3 * 10**16]
    assert data["state"]["balance"] == "0.03"


def test_only_state_updates_are_broadcast(chain):
    view_model = LotteryViewModel(FakeWallet(address=PLAYER), contract_factory_for(chain), {})
    server = LotteryWebServer({}, view_model)
    server._register_view_model_listeners()

    assert list(view_model._listeners) == ["state_update"]


def test_non_owner_pick_winner_is_refused(chain):
    client = make_client(chain, address=PLAYER)
    client.post("/api/wallet/connect")

    data = client.post("/api/admin/pick-winner").json()

    assert data["outcome"]["ok"] is False
    assert data["state"]["status"] == vm_module.NOT_OWNER_STATUS
    assert chain.writes == []


def test_refresh_reflects_contract_changes(chain):
    client = make_client(chain)
    client.post("/api/wallet/connect")
    chain.players = [PLAYER]
    chain.balance = 10**16

    data = client.post("/api/info/refresh").json()

    assert data["state"]["playerCount"] == 1
    assert data["state"]["balance"] == "0.01"


def test_websocket_sends_snapshot(chain):
    with make_client(chain).websocket_connect("/ws/lottery") as websocket:
        message = websocket.receive_json()
    assert message["type"] == "snapshot"
    assert message["payload"]["status"] == "Awaiting wallet connection..."


def test_missing_view_model_is_unavailable():
    client = TestClient(LotteryWebServer({}, None).app)
    assert client.get("/api/state").status_code == 503
    assert client.get("/api/health").json()["status"] == "degraded"
