# src/carbonledger/runtime/apply/accounts.py
from __future__ import annotations

from typing import Any, Dict, Optional, Set

from carbonledger.ledger.constants import ENGINE_ACCOUNT_ID
from carbonledger.runtime.apply.common import _as_dict, _as_str, require_str, require_uint
from carbonledger.runtime.errors import ApplyError, AuthorizationError, InvalidArgumentError, NotFoundError
from carbonledger.runtime.tx_types import TxEnvelope
from carbonledger.runtime.value import ensure_account, ensure_accounts, move_value

Json = Dict[str, Any]

_RESERVED_ACCOUNTS = {ENGINE_ACCOUNT_ID, "SYSTEM"}


def _set_key_active(acct: Json, pubkey: str, active: bool) -> None:
    keys = acct.get("keys")
    if not isinstance(keys, list):
        keys = []
        acct["keys"] = keys
    for rec in keys:
        if isinstance(rec, dict) and rec.get("pubkey") == pubkey:
            rec["active"] = bool(active)
            return
    keys.append({"pubkey": pubkey, "active": bool(active)})


def _apply_account_register(state: Json, env: TxEnvelope) -> Json:
    account_id = str(env.signer).strip()
    if account_id in _RESERVED_ACCOUNTS:
        raise AuthorizationError("reserved_account", {"account": account_id})

    payload = _as_dict(env.payload)
    pubkey = require_str(payload, "pubkey")

    accounts = ensure_accounts(state)
    existing = accounts.get(account_id)
    if isinstance(existing, dict) and existing.get("keys"):
        raise ApplyError("conflict", "account_already_registered", {"account": account_id})

    acct = ensure_account(state, account_id)
    _set_key_active(acct, pubkey, True)
    return {"applied": "ACCOUNT_REGISTER", "account": account_id}


def _apply_balance_transfer(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    to = _as_str(payload.get("to"))
    if not to:
        raise InvalidArgumentError("missing_to", {"tx_type": env.tx_type})
    if to in _RESERVED_ACCOUNTS:
        raise AuthorizationError("reserved_account", {"to": to})
    amount = require_uint(payload, "amount", positive=True)

    frm = str(env.signer)
    if frm not in ensure_accounts(state):
        raise NotFoundError("from_account_missing", {"from": frm})

    move_value(state, frm, to, amount)
    return {"applied": "BALANCE_TRANSFER", "from": frm, "to": to, "amount": amount}


ACCOUNT_TX_TYPES: Set[str] = {"ACCOUNT_REGISTER", "BALANCE_TRANSFER"}


def apply_accounts(state: Json, env: TxEnvelope) -> Optional[Json]:
    t = str(env.tx_type or "").strip().upper()
    if t not in ACCOUNT_TX_TYPES:
        return None

    if t == "ACCOUNT_REGISTER":
        return _apply_account_register(state, env)

    if t == "BALANCE_TRANSFER":
        return _apply_balance_transfer(state, env)

    return None


__all__ = ["ACCOUNT_TX_TYPES", "apply_accounts"]
