# src/carbonledger/runtime/apply/credits.py
from __future__ import annotations

"""Credit ledger: purchase, retirement and holder-to-holder transfer.

Ordering inside every value-bearing call is fixed:

  1. validate everything (role, project, amounts, balances, payment)
  2. escrow the attached value
  3. finalize local state (supply, balances, transaction log, rewards, events)
  4. pay out from escrow (owner share, admin fee, refund of any excess)

Step 4 runs last so no payout can observe half-applied credit state; if any
payout fails the caller (apply_tx_atomic) discards the whole snapshot.
"""

from typing import Any, Dict, Optional, Set

from carbonledger.ledger.constants import (
    ACTION_PURCHASE,
    ACTION_RETIRE,
    ACTION_TRANSFER,
    BPS_DENOMINATOR,
)
from carbonledger.runtime.access import ROLE_ANY, require_role
from carbonledger.runtime.apply.common import (
    _as_dict,
    block_ts,
    checked_add,
    checked_mul,
    require_str,
    require_uint,
)
from carbonledger.runtime.apply.projects import get_project
from carbonledger.runtime.apply.rewards import accrue
from carbonledger.runtime.errors import (
    InsufficientBalanceError,
    InsufficientPaymentError,
    InvalidArgumentError,
    ValueTransferError,
)
from carbonledger.runtime.events import emit_event
from carbonledger.runtime.params import EngineParams
from carbonledger.runtime.tx_types import TxEnvelope
from carbonledger.runtime.txlog import append_transaction
from carbonledger.runtime.value import collect_attached_value, pay_from_escrow

Json = Dict[str, Any]


def _ensure_balances(state: Json) -> Json:
    root = state.get("credits")
    if not isinstance(root, dict):
        root = {}
        state["credits"] = root
    if not isinstance(root.get("balances"), dict):
        root["balances"] = {}
    return root["balances"]


def credit_balance(state: Json, holder: str, project_id: int) -> int:
    credits = state.get("credits")
    balances = credits.get("balances") if isinstance(credits, dict) else None
    if not isinstance(balances, dict):
        return 0
    per_holder = balances.get(str(holder))
    if not isinstance(per_holder, dict):
        return 0
    try:
        return int(per_holder.get(str(int(project_id)), 0))
    except Exception:
        return 0


def _set_balance(state: Json, holder: str, project_id: int, amount: int) -> None:
    balances = _ensure_balances(state)
    per_holder = balances.setdefault(str(holder), {})
    per_holder[str(int(project_id))] = int(amount)


def compute_fee(total_price: int, fee_bps: int) -> int:
    """fee = floor(total_price * fee_bps / 10000)."""
    return (int(total_price) * int(fee_bps)) // BPS_DENOMINATOR


def _fee_recipient(params: EngineParams, fee: int) -> str:
    if fee > 0 and not params.admin:
        raise ValueTransferError("fee_recipient_missing", {"fee": fee})
    return params.admin


def _project_ref(payload: Json) -> Any:
    pid = payload.get("project_id")
    if pid is None:
        raise InvalidArgumentError("missing_project_id", {})
    return pid


def _apply_credits_purchase(state: Json, env: TxEnvelope) -> Json:
    buyer = str(env.signer)
    require_role(state, buyer, ROLE_ANY)
    payload = _as_dict(env.payload)

    pr = get_project(state, _project_ref(payload))
    pid = int(pr["project_id"])
    amount = require_uint(payload, "amount", positive=True)

    available = int(pr.get("available_credits", 0))
    if amount > available:
        raise InsufficientBalanceError("insufficient_supply", {"project_id": pid, "available": available, "amount": amount})

    total_price = checked_mul(amount, int(pr["price_per_credit"]), "total_price")
    value = int(env.value)
    if value < total_price:
        raise InsufficientPaymentError("insufficient_payment", {"required": total_price, "value": value})

    params = EngineParams.from_state(state)
    fee = compute_fee(total_price, params.fee_bps)
    to_owner = total_price - fee
    admin = _fee_recipient(params, fee)

    collect_attached_value(state, buyer, value)

    pr["available_credits"] = available - amount
    _set_balance(state, buyer, pid, checked_add(credit_balance(state, buyer, pid), amount, "credit_balance"))

    ts = block_ts(state, env)
    append_transaction(state, actor=buyer, project_id=pid, amount=amount, action=ACTION_PURCHASE, timestamp=ts)
    emit_event(state, "CreditsPurchased", buyer, pid, amount, total_price, fee, ts_ms=ts)
    accrue(state, buyer, amount, ts_ms=ts)

    pay_from_escrow(state, str(pr["owner"]), to_owner)
    pay_from_escrow(state, admin, fee)
    refund = value - total_price
    pay_from_escrow(state, buyer, refund)

    return {
        "applied": "CREDITS_PURCHASE",
        "project_id": pid,
        "amount": amount,
        "total_price": total_price,
        "fee": fee,
        "paid_to_owner": to_owner,
        "refund": refund,
    }


def _apply_credits_retire(state: Json, env: TxEnvelope) -> Json:
    holder = str(env.signer)
    require_role(state, holder, ROLE_ANY)
    payload = _as_dict(env.payload)

    pr = get_project(state, _project_ref(payload))
    pid = int(pr["project_id"])
    amount = require_uint(payload, "amount", positive=True)

    bal = credit_balance(state, holder, pid)
    if amount > bal:
        raise InsufficientBalanceError("insufficient_credits", {"project_id": pid, "balance": bal, "amount": amount})

    # Retired credits leave circulation for good; available supply is untouched.
    _set_balance(state, holder, pid, bal - amount)

    ts = block_ts(state, env)
    append_transaction(state, actor=holder, project_id=pid, amount=amount, action=ACTION_RETIRE, timestamp=ts)
    emit_event(state, "CreditsRetired", holder, pid, amount, ts_ms=ts)
    accrue(state, holder, amount, ts_ms=ts)

    return {"applied": "CREDITS_RETIRE", "project_id": pid, "amount": amount}


def _apply_credits_transfer(state: Json, env: TxEnvelope) -> Json:
    sender = str(env.signer)
    require_role(state, sender, ROLE_ANY)
    payload = _as_dict(env.payload)

    pr = get_project(state, _project_ref(payload))
    pid = int(pr["project_id"])
    to = require_str(payload, "to")
    amount = require_uint(payload, "amount", positive=True)

    sender_bal = credit_balance(state, sender, pid)
    if amount > sender_bal:
        raise InsufficientBalanceError("insufficient_credits", {"project_id": pid, "balance": sender_bal, "amount": amount})

    params = EngineParams.from_state(state)
    fee = int(params.transfer_fee)
    value = int(env.value)
    if value < fee:
        raise InsufficientPaymentError("insufficient_transfer_fee", {"required": fee, "value": value})
    admin = _fee_recipient(params, fee)

    collect_attached_value(state, sender, value)

    _set_balance(state, sender, pid, sender_bal - amount)
    _set_balance(state, to, pid, checked_add(credit_balance(state, to, pid), amount, "credit_balance"))

    ts = block_ts(state, env)
    append_transaction(state, actor=sender, project_id=pid, amount=amount, action=ACTION_TRANSFER, timestamp=ts, to=to)
    emit_event(state, "CreditsTransferred", sender, to, pid, amount, ts_ms=ts)
    accrue(state, sender, amount, ts_ms=ts)

    pay_from_escrow(state, admin, fee)
    refund = value - fee
    pay_from_escrow(state, sender, refund)

    return {"applied": "CREDITS_TRANSFER", "project_id": pid, "amount": amount, "to": to, "fee": fee, "refund": refund}


CREDIT_TX_TYPES: Set[str] = {"CREDITS_PURCHASE", "CREDITS_RETIRE", "CREDITS_TRANSFER"}

# Calls that may carry attached native value.
PAYABLE_TX_TYPES: Set[str] = {"CREDITS_PURCHASE", "CREDITS_TRANSFER"}


def apply_credits(state: Json, env: TxEnvelope) -> Optional[Json]:
    t = str(env.tx_type or "").strip().upper()
    if t not in CREDIT_TX_TYPES:
        return None

    if t == "CREDITS_PURCHASE":
        return _apply_credits_purchase(state, env)

    if t == "CREDITS_RETIRE":
        return _apply_credits_retire(state, env)

    if t == "CREDITS_TRANSFER":
        return _apply_credits_transfer(state, env)

    return None


__all__ = [
    "CREDIT_TX_TYPES",
    "PAYABLE_TX_TYPES",
    "apply_credits",
    "compute_fee",
    "credit_balance",
]
