# src/carbonledger/runtime/value.py
from __future__ import annotations

"""Native value rail.

Each account carries a native `balance`. Value attached to a call is moved
from the caller into the ENGINE escrow account when the call starts settling;
payouts then move it from escrow to payees. Any movement that cannot complete
raises ValueTransferError, and because domain apply runs on a snapshot
(`apply_tx_atomic`) the whole call, including credit and supply changes, is
discarded.

An account flagged `locked` refuses incoming value.
"""

from typing import Any, Dict

from carbonledger.ledger.constants import ENGINE_ACCOUNT_ID, MAX_UINT256
from carbonledger.runtime.errors import ValueTransferError

Json = Dict[str, Any]


def _as_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def default_account() -> Json:
    return {"nonce": 0, "balance": 0, "locked": False, "keys": []}


def ensure_accounts(state: Json) -> Json:
    accounts = state.get("accounts")
    if not isinstance(accounts, dict):
        accounts = {}
        state["accounts"] = accounts
    return accounts


def ensure_account(state: Json, account_id: str) -> Json:
    accounts = ensure_accounts(state)
    acct = accounts.get(account_id)
    if not isinstance(acct, dict):
        acct = default_account()
        accounts[account_id] = acct
    return acct


def native_balance(state: Json, account_id: str) -> int:
    accounts = state.get("accounts")
    if not isinstance(accounts, dict):
        return 0
    acct = accounts.get(account_id)
    if not isinstance(acct, dict):
        return 0
    return _as_int(acct.get("balance"), 0)


def move_value(state: Json, frm: str, to: str, amount: int) -> None:
    """Move `amount` native units from `frm` to `to`, or raise without mutating."""
    amt = int(amount)
    if amt < 0:
        raise ValueTransferError("negative_amount", {"amount": amt})
    if amt == 0:
        return

    accounts = ensure_accounts(state)
    src = accounts.get(frm)
    if not isinstance(src, dict):
        raise ValueTransferError("source_account_missing", {"from": frm})

    src_bal = _as_int(src.get("balance"), 0)
    if src_bal < amt:
        raise ValueTransferError("insufficient_native_balance", {"from": frm, "balance": src_bal, "amount": amt})

    dst = accounts.get(to)
    if isinstance(dst, dict) and bool(dst.get("locked", False)):
        raise ValueTransferError("recipient_locked", {"to": to})

    if frm == to:
        return

    dst = ensure_account(state, to)
    dst_bal = _as_int(dst.get("balance"), 0)
    if dst_bal + amt > MAX_UINT256:
        raise ValueTransferError("balance_overflow", {"to": to})

    src["balance"] = src_bal - amt
    dst["balance"] = dst_bal + amt


def collect_attached_value(state: Json, caller: str, value: int) -> int:
    """Escrow the value attached to a call. Returns the escrowed amount."""
    v = int(value)
    if v <= 0:
        return 0
    move_value(state, caller, ENGINE_ACCOUNT_ID, v)
    return v


def pay_from_escrow(state: Json, to: str, amount: int) -> None:
    move_value(state, ENGINE_ACCOUNT_ID, to, amount)


__all__ = [
    "default_account",
    "ensure_accounts",
    "ensure_account",
    "native_balance",
    "move_value",
    "collect_attached_value",
    "pay_from_escrow",
]
