from __future__ import annotations

import pytest

from carbonledger.runtime.apply.credits import compute_fee, credit_balance
from carbonledger.runtime.domain_apply import apply_tx_atomic
from carbonledger.runtime.errors import (
    InsufficientBalanceError,
    InsufficientPaymentError,
    InvalidArgumentError,
    NotFoundError,
    ValueTransferError,
)
from carbonledger.runtime.state_invariants import check_credit_conservation
from carbonledger.runtime.tx_types import TxEnvelope


def _acct(balance: int = 0, locked: bool = False) -> dict:
    return {"nonce": 0, "balance": balance, "locked": locked, "keys": []}


def _state() -> dict:
    return {
        "accounts": {
            "ENGINE": _acct(),
            "admin": _acct(),
            "carol": _acct(),
            "alice": _acct(10_000),
        },
        "params": {"admin": "admin", "allow_non_admin_registration": True},
    }


def _call(st: dict, tx_type: str, signer: str, payload: dict, *, value: int = 0, ts_ms: int = 5_000):
    return apply_tx_atomic(
        st, TxEnvelope(tx_type=tx_type, signer=signer, nonce=1, payload=payload, value=value, ts_ms=ts_ms)
    )


def _with_project(st: dict, *, owner: str = "carol", total: int = 1000, price: int = 10) -> dict:
    _call(st, "PROJECT_REGISTER", owner, {"name": "Kelp", "total_credits": total, "price_per_credit": price})
    return st


def test_compute_fee_floors() -> None:
    assert compute_fee(1000, 100) == 10
    assert compute_fee(99, 100) == 0
    assert compute_fee(12345, 250) == 308
    assert compute_fee(500, 0) == 0


def test_purchase_splits_payment_between_owner_and_admin() -> None:
    st = _with_project(_state())

    meta = _call(st, "CREDITS_PURCHASE", "alice", {"project_id": 1, "amount": 100}, value=1000)

    assert meta["total_price"] == 1000
    assert meta["fee"] == 10
    assert meta["paid_to_owner"] == 990
    assert meta["refund"] == 0

    assert st["projects"]["by_id"]["1"]["available_credits"] == 900
    assert credit_balance(st, "alice", 1) == 100
    assert st["accounts"]["carol"]["balance"] == 990
    assert st["accounts"]["admin"]["balance"] == 10
    assert st["accounts"]["alice"]["balance"] == 9_000
    assert st["accounts"]["ENGINE"]["balance"] == 0

    assert st["rewards"]["by_holder"]["alice"] == {"points": 100, "badge": "Contributor"}

    log = st["tx_log"]["global"]
    assert log[-1] == {"actor": "alice", "project_id": 1, "amount": 100, "action": "purchase", "timestamp": 5_000}

    names = [e["event"] for e in st["events"]]
    assert names[-2:] == ["CreditsPurchased", "RewardEarned"]
    assert st["events"][-2]["args"] == ["alice", 1, 100, 1000, 10]


def test_purchase_refunds_overpayment() -> None:
    st = _with_project(_state())
    meta = _call(st, "CREDITS_PURCHASE", "alice", {"project_id": 1, "amount": 10}, value=450)

    assert meta["refund"] == 350
    assert st["accounts"]["alice"]["balance"] == 10_000 - 100
    assert st["accounts"]["carol"]["balance"] == 99
    assert st["accounts"]["admin"]["balance"] == 1


def test_purchase_with_underpayment_changes_nothing() -> None:
    st = _with_project(_state())
    with pytest.raises(InsufficientPaymentError):
        _call(st, "CREDITS_PURCHASE", "alice", {"project_id": 1, "amount": 100}, value=999)

    assert st["projects"]["by_id"]["1"]["available_credits"] == 1000
    assert credit_balance(st, "alice", 1) == 0
    assert st["accounts"]["alice"]["balance"] == 10_000
    assert "rewards" not in st or "alice" not in st["rewards"]["by_holder"]


def test_purchase_beyond_supply_is_rejected() -> None:
    st = _with_project(_state(), total=50)
    with pytest.raises(InsufficientBalanceError) as ei:
        _call(st, "CREDITS_PURCHASE", "alice", {"project_id": 1, "amount": 51}, value=10_000)
    assert ei.value.reason == "insufficient_supply"


def test_purchase_of_unknown_project_is_not_found() -> None:
    st = _state()
    with pytest.raises(NotFoundError):
        _call(st, "CREDITS_PURCHASE", "alice", {"project_id": 4, "amount": 1}, value=10)


@pytest.mark.parametrize("project_id", [True, 1.9, 1.0, "one", -1])
def test_purchase_rejects_malformed_project_id(project_id) -> None:
    st = _with_project(_state())
    with pytest.raises(InvalidArgumentError):
        _call(st, "CREDITS_PURCHASE", "alice", {"project_id": project_id, "amount": 1}, value=10)

    assert credit_balance(st, "alice", 1) == 0
    assert st["projects"]["by_id"]["1"]["available_credits"] == 1000
    assert st["accounts"]["alice"]["balance"] == 10_000


def test_purchase_accepts_digit_string_project_id() -> None:
    st = _with_project(_state())
    _call(st, "CREDITS_PURCHASE", "alice", {"project_id": "1", "amount": 2}, value=20)
    assert credit_balance(st, "alice", 1) == 2



def test_purchase_rolls_back_when_owner_cannot_receive_value() -> None:
    st = _with_project(_state())
    st["accounts"]["carol"]["locked"] = True
    events_before = len(st["events"])

    with pytest.raises(ValueTransferError) as ei:
        _call(st, "CREDITS_PURCHASE", "alice", {"project_id": 1, "amount": 100}, value=1000)
    assert ei.value.reason == "recipient_locked"

    assert st["projects"]["by_id"]["1"]["available_credits"] == 1000
    assert credit_balance(st, "alice", 1) == 0
    assert st["accounts"]["alice"]["balance"] == 10_000
    assert st["accounts"]["ENGINE"]["balance"] == 0
    assert len(st["events"]) == events_before
    assert st.get("tx_log", {}).get("global", []) == []
    # The failed call still consumed the nonce.
    assert st["accounts"]["alice"]["nonce"] == 1


def test_purchase_fails_when_buyer_lacks_native_balance() -> None:
    st = _with_project(_state())
    with pytest.raises(ValueTransferError) as ei:
        _call(st, "CREDITS_PURCHASE", "carol", {"project_id": 1, "amount": 1}, value=10)
    assert ei.value.reason == "insufficient_native_balance"


def test_retire_burns_holder_credits_and_keeps_supply() -> None:
    st = _with_project(_state())
    _call(st, "CREDITS_PURCHASE", "alice", {"project_id": 1, "amount": 50}, value=500)

    meta = _call(st, "CREDITS_RETIRE", "alice", {"project_id": 1, "amount": 30}, ts_ms=6_000)

    assert meta["amount"] == 30
    assert credit_balance(st, "alice", 1) == 20
    assert st["projects"]["by_id"]["1"]["available_credits"] == 950
    assert st["rewards"]["by_holder"]["alice"]["points"] == 80
    assert st["tx_log"]["global"][-1]["action"] == "retire"
    assert st["events"][-2]["event"] == "CreditsRetired"
    assert check_credit_conservation(st) == []


def test_retire_more_than_held_is_rejected() -> None:
    st = _with_project(_state())
    _call(st, "CREDITS_PURCHASE", "alice", {"project_id": 1, "amount": 5}, value=50)
    with pytest.raises(InsufficientBalanceError) as ei:
        _call(st, "CREDITS_RETIRE", "alice", {"project_id": 1, "amount": 6})
    assert ei.value.reason == "insufficient_credits"
    assert credit_balance(st, "alice", 1) == 5


def test_zero_fee_sends_everything_to_owner() -> None:
    st = _with_project(_state())
    _call(st, "FEE_BPS_SET", "admin", {"fee_bps": 0})
    meta = _call(st, "CREDITS_PURCHASE", "alice", {"project_id": 1, "amount": 10}, value=100)
    assert meta["fee"] == 0
    assert st["accounts"]["carol"]["balance"] == 100
    assert st["accounts"]["admin"]["balance"] == 0


def test_conservation_holds_across_mixed_activity() -> None:
    st = _with_project(_state(), total=500, price=1)
    st["accounts"]["bob"] = _acct(5_000)
    _call(st, "CREDITS_PURCHASE", "alice", {"project_id": 1, "amount": 120}, value=120)
    _call(st, "CREDITS_PURCHASE", "bob", {"project_id": 1, "amount": 80}, value=80)
    _call(st, "CREDITS_RETIRE", "alice", {"project_id": 1, "amount": 20})
    _call(st, "CREDITS_TRANSFER", "bob", {"project_id": 1, "to": "alice", "amount": 30}, value=1_000)

    assert check_credit_conservation(st) == []
    assert credit_balance(st, "alice", 1) == 130
    assert credit_balance(st, "bob", 1) == 50


def test_holder_logs_match_global_log_and_reward_points() -> None:
    st = _with_project(_state(), total=500, price=1)
    _with_project(st, owner="carol", total=300, price=2)
    st["accounts"]["bob"] = _acct(5_000)
    _call(st, "CREDITS_PURCHASE", "alice", {"project_id": 1, "amount": 120}, value=120, ts_ms=5_001)
    _call(st, "CREDITS_PURCHASE", "bob", {"project_id": 2, "amount": 40}, value=80, ts_ms=5_002)
    _call(st, "CREDITS_TRANSFER", "alice", {"project_id": 1, "to": "bob", "amount": 25}, value=1_000, ts_ms=5_003)
    _call(st, "CREDITS_RETIRE", "bob", {"project_id": 1, "amount": 5}, ts_ms=5_004)
    _call(st, "CREDITS_PURCHASE", "bob", {"project_id": 1, "amount": 10}, value=10, ts_ms=5_005)
    _call(st, "CREDITS_RETIRE", "alice", {"project_id": 1, "amount": 15}, ts_ms=5_006)

    log = st["tx_log"]
    assert [e["timestamp"] for e in log["global"]] == [5_001, 5_002, 5_003, 5_004, 5_005, 5_006]

    holders = {e["actor"] for e in log["global"]}
    assert set(log["by_holder"]) == holders == {"alice", "bob"}
    for h in holders:
        assert log["by_holder"][h] == [e for e in log["global"] if e["actor"] == h]
        points = st["rewards"]["by_holder"][h]["points"]
        assert points == sum(e["amount"] for e in log["by_holder"][h])

    # The transfer is recorded once, under the sender, with the recipient in `to`.
    transfer = [e for e in log["global"] if e["action"] == "transfer"]
    assert transfer == [
        {"actor": "alice", "project_id": 1, "amount": 25, "action": "transfer", "timestamp": 5_003, "to": "bob"}
    ]
    assert all(e["action"] != "transfer" for e in log["by_holder"]["bob"])
