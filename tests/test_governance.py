from __future__ import annotations

import pytest

from carbonledger.runtime.domain_apply import apply_tx_atomic
from carbonledger.runtime.errors import AuthorizationError, InvalidArgumentError, InvalidStateError, NotFoundError
from carbonledger.runtime.tx_types import TxEnvelope


def _state(min_votes: int = 2) -> dict:
    return {
        "accounts": {"admin": {"nonce": 0, "balance": 0, "locked": False, "keys": []}},
        "params": {"admin": "admin", "min_votes_for_proposal": min_votes},
    }


def _call(st: dict, tx_type: str, signer: str, payload: dict):
    return apply_tx_atomic(st, TxEnvelope(tx_type=tx_type, signer=signer, nonce=1, payload=payload, ts_ms=9_000))


def _propose(st: dict, description: str = "Lower transfer fee") -> int:
    return _call(st, "GOV_PROPOSAL_CREATE", "admin", {"description": description})["proposal_id"]


def test_only_admin_creates_proposals() -> None:
    st = _state()
    with pytest.raises(AuthorizationError):
        _call(st, "GOV_PROPOSAL_CREATE", "alice", {"description": "x"})

    assert _propose(st) == 0
    assert _propose(st, "second") == 1

    p = st["gov"]["proposals"][0]
    assert p["proposer"] == "admin"
    assert p["votes_for"] == 0 and p["votes_against"] == 0
    assert p["executed"] is False
    assert st["events"][-1]["event"] == "ProposalCreated"


def test_create_requires_description() -> None:
    st = _state()
    with pytest.raises(InvalidArgumentError):
        _call(st, "GOV_PROPOSAL_CREATE", "admin", {"description": "  "})


def test_votes_are_counted_per_call() -> None:
    st = _state()
    pid = _propose(st)
    _call(st, "GOV_VOTE_CAST", "alice", {"proposal_id": pid, "support": True})
    _call(st, "GOV_VOTE_CAST", "bob", {"proposal_id": pid, "support": False})
    # A repeat vote by the same identity counts again.
    _call(st, "GOV_VOTE_CAST", "alice", {"proposal_id": pid, "support": True})

    p = st["gov"]["proposals"][pid]
    assert p["votes_for"] == 2
    assert p["votes_against"] == 1
    assert st["events"][-1]["args"] == [pid, "alice", True]


def test_vote_on_unknown_proposal_is_not_found() -> None:
    st = _state()
    with pytest.raises(NotFoundError):
        _call(st, "GOV_VOTE_CAST", "alice", {"proposal_id": 3, "support": True})


def test_vote_requires_support_flag() -> None:
    st = _state()
    pid = _propose(st)
    with pytest.raises(InvalidArgumentError) as ei:
        _call(st, "GOV_VOTE_CAST", "alice", {"proposal_id": pid})
    assert ei.value.reason == "missing_support"


@pytest.mark.parametrize("support", ["maybe", "2", {}, [], 1.0])
def test_vote_rejects_malformed_support(support) -> None:
    st = _state()
    pid = _propose(st)
    with pytest.raises(InvalidArgumentError) as ei:
        _call(st, "GOV_VOTE_CAST", "alice", {"proposal_id": pid, "support": support})
    assert ei.value.reason == "bad_support"

    p = st["gov"]["proposals"][pid]
    assert p["votes_for"] == 0
    assert p["votes_against"] == 0


def test_vote_accepts_explicit_string_tokens() -> None:
    st = _state()
    pid = _propose(st)
    _call(st, "GOV_VOTE_CAST", "alice", {"proposal_id": pid, "support": "true"})
    _call(st, "GOV_VOTE_CAST", "bob", {"proposal_id": pid, "support": "False"})

    p = st["gov"]["proposals"][pid]
    assert p["votes_for"] == 1
    assert p["votes_against"] == 1


@pytest.mark.parametrize("proposal_id", [True, 0.5, "zero", -1])
def test_vote_rejects_malformed_proposal_id(proposal_id) -> None:
    st = _state()
    _propose(st)
    with pytest.raises(InvalidArgumentError):
        _call(st, "GOV_VOTE_CAST", "alice", {"proposal_id": proposal_id, "support": True})
    assert st["gov"]["proposals"][0]["votes_for"] == 0


def test_execute_checks_admin_before_parsing_payload() -> None:
    st = _state(min_votes=0)
    _propose(st)
    with pytest.raises(AuthorizationError):
        _call(st, "GOV_EXECUTE", "alice", {"proposal_id": "not-a-number"})
    with pytest.raises(InvalidArgumentError):
        _call(st, "GOV_EXECUTE", "admin", {"proposal_id": 0.5})
    assert st["gov"]["proposals"][0]["executed"] is False


def test_execute_needs_enough_votes() -> None:
    st = _state(min_votes=2)
    pid = _propose(st)
    _call(st, "GOV_VOTE_CAST", "alice", {"proposal_id": pid, "support": True})

    with pytest.raises(InvalidStateError) as ei:
        _call(st, "GOV_EXECUTE", "admin", {"proposal_id": pid})
    assert ei.value.reason == "insufficient_votes"
    assert st["gov"]["proposals"][pid]["executed"] is False


def test_execute_then_proposal_is_closed() -> None:
    st = _state(min_votes=2)
    pid = _propose(st)
    _call(st, "GOV_VOTE_CAST", "alice", {"proposal_id": pid, "support": True})
    _call(st, "GOV_VOTE_CAST", "bob", {"proposal_id": pid, "support": True})

    _call(st, "GOV_EXECUTE", "admin", {"proposal_id": pid})
    p = st["gov"]["proposals"][pid]
    assert p["executed"] is True
    assert p["executed_at_ms"] == 9_000
    assert st["events"][-1] == {"seq": len(st["events"]) - 1, "event": "ProposalExecuted", "args": [pid], "ts_ms": 9_000}

    with pytest.raises(InvalidStateError):
        _call(st, "GOV_EXECUTE", "admin", {"proposal_id": pid})
    with pytest.raises(InvalidStateError):
        _call(st, "GOV_VOTE_CAST", "carol", {"proposal_id": pid, "support": False})


def test_execute_requires_admin() -> None:
    st = _state(min_votes=0)
    pid = _propose(st)
    with pytest.raises(AuthorizationError):
        _call(st, "GOV_EXECUTE", "alice", {"proposal_id": pid})


def test_min_votes_is_admin_tunable() -> None:
    st = _state(min_votes=5)
    pid = _propose(st)
    _call(st, "GOV_MIN_VOTES_SET", "admin", {"min_votes": 0})
    _call(st, "GOV_EXECUTE", "admin", {"proposal_id": pid})
    assert st["gov"]["proposals"][pid]["executed"] is True
