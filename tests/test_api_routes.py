from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from carbonledger.runtime.engine_config import EngineConfig
from carbonledger.runtime.executor import CarbonExecutor
from carbonledger.testing.sigtools import genesis_account_for, sign_tx_dict


def _call(tx_type: str, signer: str, nonce: int, payload: dict, value: int = 0) -> dict:
    return sign_tx_dict({"tx_type": tx_type, "signer": signer, "nonce": nonce, "payload": payload, "value": value})


@pytest.fixture()
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    from carbonledger.api import app as api_app

    db = tmp_path / "api.db"
    cfg = EngineConfig(
        chain_id="carbon-api-test",
        mode="dev",
        db_path=str(db),
        admin="admin",
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
        min_votes_for_proposal=1,
        genesis_accounts=(genesis_account_for("admin"), genesis_account_for("alice", balance=10_000)),
    )

    monkeypatch.setenv("CARBON_MODE", "dev")
    monkeypatch.setattr(api_app, "build_executor", lambda: CarbonExecutor(db_path=str(db), chain_id=cfg.chain_id, config=cfg))

    with TestClient(api_app.create_app(boot_runtime=True)) as c:
        yield c


def test_create_app_without_runtime() -> None:
    from carbonledger.api.app import create_app

    app = create_app(boot_runtime=False)
    assert app.state.executor is None
    with TestClient(app) as c:
        r = c.get("/v1/health")
        assert r.status_code == 200
        assert r.json()["executor"] is False

        r = c.get("/v1/projects/1")
        assert r.status_code == 500
        assert r.json()["error"]["code"] == "not_ready"


def test_create_app_uses_patched_builder(monkeypatch: pytest.MonkeyPatch) -> None:
    from carbonledger.api import app as api_app

    monkeypatch.setattr(api_app, "build_executor", lambda: SimpleNamespace(chain_id="stub"))
    app = api_app.create_app(boot_runtime=True)
    assert app.state.executor.chain_id == "stub"


def test_purchase_flow_over_http(client: TestClient) -> None:
    r = client.post("/v1/tx/submit", json=_call("PROJECT_REGISTER", "admin", 1, {"name": "Reef", "total_credits": 500, "price_per_credit": 4}))
    assert r.status_code == 200, r.text
    assert r.json()["result"]["project_id"] == 1

    r = client.post("/v1/tx/submit", json=_call("CREDITS_PURCHASE", "alice", 1, {"project_id": 1, "amount": 50}, value=200))
    assert r.status_code == 200, r.text
    assert r.json()["result"]["fee"] == 2

    r = client.get("/v1/projects/1")
    assert r.json()["project"]["available_credits"] == 450

    r = client.get("/v1/accounts/alice/credits/1")
    assert r.json()["credits"] == 50

    r = client.get("/v1/accounts/alice/reputation")
    assert r.json()["points"] == 50
    assert r.json()["badge"] == "Novice"

    r = client.get("/v1/accounts/alice")
    assert r.json()["balance"] == 9_800
    assert r.json()["nonce"] == 1

    r = client.get("/v1/transactions")
    assert [t["action"] for t in r.json()["items"]] == ["purchase"]

    r = client.get("/v1/accounts/alice/transactions")
    assert r.json()["items"][0]["amount"] == 50

    r = client.get("/v1/leaderboard")
    assert r.json()["items"][0]["holder"] == "alice"

    r = client.get("/v1/events", params={"since": 1})
    assert [e["event"] for e in r.json()["items"]] == ["CreditsPurchased", "RewardEarned"]
    assert r.json()["items"][0]["buyer"] == "alice"

    r = client.get("/v1/tx/calls", params={"signer": "alice"})
    assert len(r.json()["items"]) == 1


def test_rejections_map_to_http_status(client: TestClient) -> None:
    r = client.post("/v1/tx/submit", json=_call("FEE_BPS_SET", "alice", 1, {"fee_bps": 1}))
    assert r.status_code == 403
    body = r.json()
    assert body["ok"] is False
    assert body["error"]["code"] == "forbidden"
    assert body["error"]["message"] == "admin_required"

    r = client.post("/v1/tx/submit", json=_call("CREDITS_RETIRE", "alice", 2, {"project_id": 7, "amount": 1}))
    assert r.status_code == 404

    r = client.post("/v1/tx/submit", json=_call("CREDITS_RETIRE", "alice", 2, {"project_id": 7, "amount": 1}))
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "bad_nonce"

    r = client.post("/v1/tx/submit", json={"tx_type": "X", "signer": "alice"})
    assert r.status_code == 422

    r = client.get("/v1/projects/99")
    assert r.status_code == 404


def test_governance_over_http(client: TestClient) -> None:
    assert client.post("/v1/tx/submit", json=_call("GOV_PROPOSAL_CREATE", "admin", 1, {"description": "Raise fee"})).status_code == 200
    assert client.post("/v1/tx/submit", json=_call("GOV_VOTE_CAST", "alice", 1, {"proposal_id": 0, "support": True})).status_code == 200
    assert client.post("/v1/tx/submit", json=_call("GOV_EXECUTE", "admin", 2, {"proposal_id": 0})).status_code == 200

    r = client.post("/v1/tx/submit", json=_call("GOV_EXECUTE", "admin", 3, {"proposal_id": 0}))
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "invalid_state"

    r = client.get("/v1/gov/proposals")
    assert r.json()["items"][0]["executed"] is True
    assert client.get("/v1/gov/proposals/0").json()["proposal"]["votes_for"] == 1
    assert client.get("/v1/gov/proposals/5").status_code == 404


def test_params_and_metrics(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    r = client.get("/v1/params")
    assert r.json()["params"]["fee_bps"] == 100
    assert r.json()["params"]["min_votes_for_proposal"] == 1

    monkeypatch.delenv("CARBON_METRICS_ENABLED", raising=False)
    assert client.get("/v1/metrics").status_code == 404

    client.post("/v1/tx/submit", json=_call("TRANSFER_FEE_SET", "admin", 1, {"transfer_fee": 5}))
    monkeypatch.setenv("CARBON_METRICS_ENABLED", "1")
    r = client.get("/v1/metrics")
    assert r.status_code == 200
    assert "carbon_tx_applied" in r.text
