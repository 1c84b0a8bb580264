# src/carbonledger/runtime/events.py
from __future__ import annotations

"""Append-only notification stream.

Notifications are the durable external contract of the engine. Each record
stores its arguments positionally in the order fixed by EVENT_FIELDS, so the
persisted form (canonical JSON with sorted keys) never reorders them. Use
`decode_event` to get a name -> value mapping back.
"""

from typing import Any, Dict, List, Tuple

Json = Dict[str, Any]

EVENT_FIELDS: Dict[str, Tuple[str, ...]] = {
    "ProjectRegistered": ("project_id", "owner", "name", "total_credits", "price_per_credit"),
    "ProjectUpdated": ("project_id", "name", "total_credits", "price_per_credit"),
    "CreditsPurchased": ("buyer", "project_id", "amount", "total_price", "fee"),
    "CreditsRetired": ("holder", "project_id", "amount"),
    "CreditsTransferred": ("from", "to", "project_id", "amount"),
    "RewardEarned": ("holder", "points", "total_points", "badge"),
    "BadgeThresholdUpdated": ("badge", "threshold"),
    "ProposalCreated": ("proposal_id", "proposer", "description"),
    "VoteCast": ("proposal_id", "voter", "support"),
    "ProposalExecuted": ("proposal_id",),
}


def _ensure_events(state: Json) -> List[Json]:
    events = state.get("events")
    if not isinstance(events, list):
        events = []
        state["events"] = events
    return events


def emit_event(state: Json, name: str, *args: Any, ts_ms: int = 0) -> Json:
    fields = EVENT_FIELDS.get(name)
    if fields is None:
        raise ValueError(f"unknown event: {name!r}")
    if len(args) != len(fields):
        raise ValueError(f"{name} expects {len(fields)} args, got {len(args)}")

    events = _ensure_events(state)
    rec: Json = {
        "seq": len(events),
        "event": name,
        "args": list(args),
        "ts_ms": int(ts_ms),
    }
    events.append(rec)
    return rec


def decode_event(rec: Json) -> Json:
    name = str(rec.get("event") or "")
    fields = EVENT_FIELDS.get(name, ())
    args = rec.get("args") if isinstance(rec.get("args"), list) else []
    out: Json = {"seq": int(rec.get("seq", 0)), "event": name, "ts_ms": int(rec.get("ts_ms", 0))}
    out.update(dict(zip(fields, args)))
    return out


def events_since(state: Json, seq: int) -> List[Json]:
    events = state.get("events")
    if not isinstance(events, list):
        return []
    return [e for e in events[int(seq):] if isinstance(e, dict)]


__all__ = ["EVENT_FIELDS", "emit_event", "decode_event", "events_since"]
