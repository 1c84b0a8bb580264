# src/carbonledger/runtime/apply/governance.py
from __future__ import annotations

from typing import Any, Dict, List, Optional, Set

from carbonledger.runtime.access import ROLE_ADMIN, ROLE_ANY, require_role
from carbonledger.runtime.apply.common import _as_dict, block_ts, require_flag, require_str, require_uint
from carbonledger.runtime.errors import InvalidStateError, NotFoundError
from carbonledger.runtime.events import emit_event
from carbonledger.runtime.params import EngineParams
from carbonledger.runtime.tx_types import TxEnvelope

Json = Dict[str, Any]


def _ensure_root(state: Json) -> List[Json]:
    gov = state.get("gov")
    if not isinstance(gov, dict):
        gov = {}
        state["gov"] = gov
    if not isinstance(gov.get("proposals"), list):
        gov["proposals"] = []
    return gov["proposals"]


def _proposal_id(payload: Json) -> int:
    return require_uint(payload, "proposal_id")


def get_proposal(state: Json, proposal_id: int) -> Json:
    proposals = _ensure_root(state)
    pid = int(proposal_id)
    if pid < 0 or pid >= len(proposals) or not isinstance(proposals[pid], dict):
        raise NotFoundError("proposal_not_found", {"proposal_id": pid})
    return proposals[pid]


def _require_open(pr: Json) -> None:
    if bool(pr.get("executed", False)):
        raise InvalidStateError("proposal_already_executed", {"proposal_id": pr.get("proposal_id")})


def _apply_gov_proposal_create(state: Json, env: TxEnvelope) -> Json:
    require_role(state, env.signer, ROLE_ADMIN)
    description = require_str(_as_dict(env.payload), "description")

    proposals = _ensure_root(state)
    pid = len(proposals)
    ts = block_ts(state, env)
    proposals.append(
        {
            "proposal_id": pid,
            "proposer": str(env.signer),
            "description": description,
            "votes_for": 0,
            "votes_against": 0,
            "executed": False,
            "created_at_ms": ts,
            "executed_at_ms": 0,
        }
    )

    emit_event(state, "ProposalCreated", pid, str(env.signer), description, ts_ms=ts)
    return {"applied": "GOV_PROPOSAL_CREATE", "proposal_id": pid}


def _apply_gov_vote_cast(state: Json, env: TxEnvelope) -> Json:
    require_role(state, env.signer, ROLE_ANY)
    payload = _as_dict(env.payload)
    pr = get_proposal(state, _proposal_id(payload))
    _require_open(pr)

    support = require_flag(payload, "support")

    # Votes are aggregate counters only; a repeat vote by the same identity counts again.
    if support:
        pr["votes_for"] = int(pr.get("votes_for", 0)) + 1
    else:
        pr["votes_against"] = int(pr.get("votes_against", 0)) + 1

    pid = int(pr["proposal_id"])
    emit_event(state, "VoteCast", pid, str(env.signer), bool(support), ts_ms=block_ts(state, env))
    return {
        "applied": "GOV_VOTE_CAST",
        "proposal_id": pid,
        "votes_for": int(pr["votes_for"]),
        "votes_against": int(pr["votes_against"]),
    }


def _apply_gov_execute(state: Json, env: TxEnvelope) -> Json:
    require_role(state, env.signer, ROLE_ADMIN)
    pid = _proposal_id(_as_dict(env.payload))
    pr = get_proposal(state, pid)
    _require_open(pr)

    min_votes = EngineParams.from_state(state).min_votes_for_proposal
    votes_for = int(pr.get("votes_for", 0))
    if votes_for < min_votes:
        raise InvalidStateError("insufficient_votes", {"proposal_id": pid, "votes_for": votes_for, "required": min_votes})

    # Execution only marks the proposal; it carries no parameter changes yet.
    ts = block_ts(state, env)
    pr["executed"] = True
    pr["executed_at_ms"] = ts

    emit_event(state, "ProposalExecuted", pid, ts_ms=ts)
    return {"applied": "GOV_EXECUTE", "proposal_id": pid}


GOV_TX_TYPES: Set[str] = {"GOV_PROPOSAL_CREATE", "GOV_VOTE_CAST", "GOV_EXECUTE"}


def apply_governance(state: Json, env: TxEnvelope) -> Optional[Json]:
    t = str(env.tx_type or "").strip().upper()
    if t not in GOV_TX_TYPES:
        return None

    if t == "GOV_PROPOSAL_CREATE":
        return _apply_gov_proposal_create(state, env)

    if t == "GOV_VOTE_CAST":
        return _apply_gov_vote_cast(state, env)

    if t == "GOV_EXECUTE":
        return _apply_gov_execute(state, env)

    return None


__all__ = ["GOV_TX_TYPES", "apply_governance", "get_proposal"]
