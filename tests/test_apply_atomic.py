from __future__ import annotations

import pytest

from carbonledger.ledger.constants import MAX_UINT256
from carbonledger.runtime.domain_apply import apply_tx_atomic
from carbonledger.runtime.domain_dispatch import SUPPORTED_TX_TYPES, apply_tx
from carbonledger.runtime.errors import ApplyError, InvalidArgumentError, NotFoundError
from carbonledger.runtime.tx_types import TxEnvelope


def _state() -> dict:
    return {
        "accounts": {
            "admin": {"nonce": 0, "balance": 0, "locked": False, "keys": []},
            "alice": {"nonce": 4, "balance": 100, "locked": False, "keys": []},
        },
        "params": {"admin": "admin"},
    }


def test_unknown_tx_type_is_unimplemented() -> None:
    st = _state()
    with pytest.raises(ApplyError) as ei:
        apply_tx(st, TxEnvelope(tx_type="MINT_EVERYTHING", signer="alice", nonce=5, payload={}))
    assert ei.value.code == "tx_unimplemented"
    assert "MINT_EVERYTHING" not in SUPPORTED_TX_TYPES


def test_failed_call_consumes_nonce_but_nothing_else() -> None:
    st = _state()
    with pytest.raises(NotFoundError):
        apply_tx_atomic(
            st,
            TxEnvelope(tx_type="CREDITS_RETIRE", signer="alice", nonce=5, payload={"project_id": 1, "amount": 1}),
        )
    assert st["accounts"]["alice"]["nonce"] == 5
    assert st["accounts"]["alice"]["balance"] == 100
    assert "events" not in st


def test_failed_call_can_skip_nonce_consumption() -> None:
    st = _state()
    with pytest.raises(ApplyError):
        apply_tx_atomic(
            st,
            TxEnvelope(tx_type="GOV_EXECUTE", signer="alice", nonce=5, payload={"proposal_id": 0}),
            consume_nonce_on_fail=False,
        )
    assert st["accounts"]["alice"]["nonce"] == 4


def test_success_commits_in_place() -> None:
    st = _state()
    ref = st
    apply_tx_atomic(st, {"tx_type": "BALANCE_TRANSFER", "signer": "alice", "nonce": 5, "payload": {"to": "bob", "amount": 40}})
    assert ref["accounts"]["alice"] == {"nonce": 5, "balance": 60, "locked": False, "keys": []}
    assert ref["accounts"]["bob"]["balance"] == 40


def test_amount_overflow_is_rejected() -> None:
    st = _state()
    st["params"]["allow_non_admin_registration"] = True
    apply_tx_atomic(
        st,
        TxEnvelope(
            tx_type="PROJECT_REGISTER",
            signer="admin",
            nonce=1,
            payload={"name": "Huge", "total_credits": MAX_UINT256, "price_per_credit": 2},
        ),
    )
    with pytest.raises(InvalidArgumentError) as ei:
        apply_tx_atomic(
            st,
            TxEnvelope(
                tx_type="CREDITS_PURCHASE",
                signer="alice",
                nonce=5,
                payload={"project_id": 1, "amount": MAX_UINT256},
                value=100,
            ),
        )
    assert ei.value.reason == "total_price_overflow"

    with pytest.raises(InvalidArgumentError):
        apply_tx_atomic(
            st,
            TxEnvelope(
                tx_type="PROJECT_REGISTER",
                signer="admin",
                nonce=2,
                payload={"name": "Bigger", "total_credits": MAX_UINT256 + 1, "price_per_credit": 1},
            ),
        )


def test_negative_value_is_rejected() -> None:
    st = _state()
    with pytest.raises(InvalidArgumentError) as ei:
        apply_tx(st, TxEnvelope(tx_type="CREDITS_PURCHASE", signer="alice", nonce=5, payload={}, value=-1))
    assert ei.value.reason == "negative_value"


def test_account_register_rejects_duplicate_and_reserved_ids() -> None:
    st = _state()
    apply_tx_atomic(st, TxEnvelope(tx_type="ACCOUNT_REGISTER", signer="erin", nonce=1, payload={"pubkey": "aa" * 32}))
    assert st["accounts"]["erin"]["keys"] == [{"pubkey": "aa" * 32, "active": True}]

    with pytest.raises(ApplyError) as ei:
        apply_tx_atomic(st, TxEnvelope(tx_type="ACCOUNT_REGISTER", signer="erin", nonce=2, payload={"pubkey": "bb" * 32}))
    assert ei.value.code == "conflict"

    with pytest.raises(ApplyError) as ei:
        apply_tx_atomic(st, TxEnvelope(tx_type="ACCOUNT_REGISTER", signer="ENGINE", nonce=1, payload={"pubkey": "cc" * 32}))
    assert ei.value.code == "forbidden"
