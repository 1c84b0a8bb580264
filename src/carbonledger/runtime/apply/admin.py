# src/carbonledger/runtime/apply/admin.py
from __future__ import annotations

"""Administrator-only parameter changes."""

from typing import Any, Dict, Optional, Set

from carbonledger.ledger.constants import BPS_DENOMINATOR
from carbonledger.runtime.access import ROLE_ADMIN, require_role
from carbonledger.runtime.apply.common import _as_dict, require_uint
from carbonledger.runtime.errors import InvalidArgumentError
from carbonledger.runtime.params import ensure_params
from carbonledger.runtime.tx_types import TxEnvelope

Json = Dict[str, Any]


def _apply_registration_open_toggle(state: Json, env: TxEnvelope) -> Json:
    require_role(state, env.signer, ROLE_ADMIN)
    params = ensure_params(state)
    params["allow_non_admin_registration"] = not bool(params.get("allow_non_admin_registration", False))
    return {"applied": "REGISTRATION_OPEN_TOGGLE", "enabled": params["allow_non_admin_registration"]}


def _apply_gov_min_votes_set(state: Json, env: TxEnvelope) -> Json:
    require_role(state, env.signer, ROLE_ADMIN)
    n = require_uint(_as_dict(env.payload), "min_votes")
    ensure_params(state)["min_votes_for_proposal"] = n
    return {"applied": "GOV_MIN_VOTES_SET", "min_votes": n}


def _apply_fee_bps_set(state: Json, env: TxEnvelope) -> Json:
    require_role(state, env.signer, ROLE_ADMIN)
    bps = require_uint(_as_dict(env.payload), "fee_bps")
    if bps > BPS_DENOMINATOR:
        raise InvalidArgumentError("fee_bps_out_of_range", {"fee_bps": bps, "max": BPS_DENOMINATOR})
    ensure_params(state)["fee_bps"] = bps
    return {"applied": "FEE_BPS_SET", "fee_bps": bps}


def _apply_transfer_fee_set(state: Json, env: TxEnvelope) -> Json:
    require_role(state, env.signer, ROLE_ADMIN)
    fee = require_uint(_as_dict(env.payload), "transfer_fee")
    ensure_params(state)["transfer_fee"] = fee
    return {"applied": "TRANSFER_FEE_SET", "transfer_fee": fee}


ADMIN_TX_TYPES: Set[str] = {
    "REGISTRATION_OPEN_TOGGLE",
    "GOV_MIN_VOTES_SET",
    "FEE_BPS_SET",
    "TRANSFER_FEE_SET",
}


def apply_admin(state: Json, env: TxEnvelope) -> Optional[Json]:
    t = str(env.tx_type or "").strip().upper()
    if t not in ADMIN_TX_TYPES:
        return None

    if t == "REGISTRATION_OPEN_TOGGLE":
        return _apply_registration_open_toggle(state, env)

    if t == "GOV_MIN_VOTES_SET":
        return _apply_gov_min_votes_set(state, env)

    if t == "FEE_BPS_SET":
        return _apply_fee_bps_set(state, env)

    if t == "TRANSFER_FEE_SET":
        return _apply_transfer_fee_set(state, env)

    return None


__all__ = ["ADMIN_TX_TYPES", "apply_admin"]
