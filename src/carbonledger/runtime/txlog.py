# src/carbonledger/runtime/txlog.py
from __future__ import annotations

"""Append-only transaction log.

Every credit movement is recorded twice: once in the global sequence and once
in the acting holder's sequence. Records are never mutated or removed, so the
holder view always equals the global view filtered by actor.
"""

from typing import Any, Dict, List, Optional

from carbonledger.ledger.constants import ACTION_PURCHASE, ACTION_RETIRE, ACTION_TRANSFER

Json = Dict[str, Any]

ACTIONS = {ACTION_PURCHASE, ACTION_RETIRE, ACTION_TRANSFER}


def _ensure_log(state: Json) -> Json:
    log = state.get("tx_log")
    if not isinstance(log, dict):
        log = {}
        state["tx_log"] = log
    if not isinstance(log.get("global"), list):
        log["global"] = []
    if not isinstance(log.get("by_holder"), dict):
        log["by_holder"] = {}
    return log


def append_transaction(
    state: Json,
    *,
    actor: str,
    project_id: int,
    amount: int,
    action: str,
    timestamp: int,
    to: Optional[str] = None,
) -> Json:
    if action not in ACTIONS:
        raise ValueError(f"unknown action: {action!r}")

    rec: Json = {
        "actor": str(actor),
        "project_id": int(project_id),
        "amount": int(amount),
        "action": action,
        "timestamp": int(timestamp),
    }
    if to is not None:
        rec["to"] = str(to)

    log = _ensure_log(state)
    log["global"].append(rec)
    # Separate dict so a later mutation of one view can never leak into the other.
    log["by_holder"].setdefault(str(actor), []).append(dict(rec))
    return rec


def _page(items: List[Json], offset: int, limit: Optional[int]) -> List[Json]:
    start = max(0, int(offset))
    if limit is None:
        return [dict(x) for x in items[start:]]
    return [dict(x) for x in items[start : start + max(0, int(limit))]]


def all_transactions(state: Json, *, offset: int = 0, limit: Optional[int] = None) -> List[Json]:
    log = state.get("tx_log")
    items = log.get("global") if isinstance(log, dict) else None
    return _page(items if isinstance(items, list) else [], offset, limit)


def holder_transactions(state: Json, holder: str, *, offset: int = 0, limit: Optional[int] = None) -> List[Json]:
    log = state.get("tx_log")
    by_holder = log.get("by_holder") if isinstance(log, dict) else None
    items = by_holder.get(str(holder)) if isinstance(by_holder, dict) else None
    return _page(items if isinstance(items, list) else [], offset, limit)


__all__ = ["append_transaction", "all_transactions", "holder_transactions"]
