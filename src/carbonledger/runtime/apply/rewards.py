# src/carbonledger/runtime/apply/rewards.py
from __future__ import annotations

"""Reward points and badges.

Holders earn one point per credit unit they move (purchase, retire, or send).
The badge is derived from the point total by scanning the tier ladder from the
highest tier down; the first threshold the total reaches wins, otherwise the
holder keeps the default tier. Adding a tier only means extending BADGE_TIERS
and its default threshold.
"""

from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from carbonledger.ledger.constants import BADGE_DEFAULT, BADGE_TIERS, MAX_UINT256
from carbonledger.runtime.access import ROLE_ADMIN, require_role
from carbonledger.runtime.apply.common import _as_dict, _as_str, block_ts, require_uint
from carbonledger.runtime.errors import InvalidArgumentError
from carbonledger.runtime.events import emit_event
from carbonledger.runtime.params import ensure_params
from carbonledger.runtime.tx_types import TxEnvelope

Json = Dict[str, Any]


def _ensure_root(state: Json) -> Json:
    root = state.get("rewards")
    if not isinstance(root, dict):
        root = {}
        state["rewards"] = root
    if not isinstance(root.get("by_holder"), dict):
        root["by_holder"] = {}
    if not isinstance(root.get("holders"), list):
        root["holders"] = []
    return root


def tier_ladder(thresholds: Mapping[str, Any]) -> List[Tuple[int, str]]:
    """(threshold, label) pairs, highest tier first."""
    out: List[Tuple[int, str]] = []
    for tier in BADGE_TIERS:
        try:
            out.append((int(thresholds.get(tier, 0)), tier))
        except (TypeError, ValueError):
            continue
    return out


def badge_for(points: int, thresholds: Mapping[str, Any]) -> str:
    for threshold, label in tier_ladder(thresholds):
        if int(points) >= threshold:
            return label
    return BADGE_DEFAULT


def accrue(state: Json, holder: str, amount: int, *, ts_ms: int = 0) -> Json:
    """Add `amount` points to `holder` and refresh the badge."""
    pts = int(amount)
    if pts < 0:
        raise ValueError("reward amount must be non-negative")

    root = _ensure_root(state)
    rec = root["by_holder"].get(holder)
    if not isinstance(rec, dict):
        rec = {"points": 0, "badge": BADGE_DEFAULT}
        root["by_holder"][holder] = rec
        root["holders"].append(holder)

    total = int(rec.get("points", 0)) + pts
    if total > MAX_UINT256:
        raise InvalidArgumentError("reward_points_overflow", {"holder": holder})

    thresholds = ensure_params(state)["badge_thresholds"]
    rec["points"] = total
    rec["badge"] = badge_for(total, thresholds)

    emit_event(state, "RewardEarned", holder, pts, total, rec["badge"], ts_ms=ts_ms)
    return rec


def _apply_badge_threshold_set(state: Json, env: TxEnvelope) -> Json:
    require_role(state, env.signer, ROLE_ADMIN)
    payload = _as_dict(env.payload)

    badge = _as_str(payload.get("badge"))
    if badge not in BADGE_TIERS:
        raise InvalidArgumentError("unknown_badge", {"badge": badge, "known": list(BADGE_TIERS)})
    threshold = require_uint(payload, "threshold")

    ensure_params(state)["badge_thresholds"][badge] = threshold

    emit_event(state, "BadgeThresholdUpdated", badge, threshold, ts_ms=block_ts(state, env))
    return {"applied": "BADGE_THRESHOLD_SET", "badge": badge, "threshold": threshold}


REWARD_TX_TYPES: Set[str] = {"BADGE_THRESHOLD_SET"}


def apply_rewards(state: Json, env: TxEnvelope) -> Optional[Json]:
    t = str(env.tx_type or "").strip().upper()
    if t not in REWARD_TX_TYPES:
        return None

    if t == "BADGE_THRESHOLD_SET":
        return _apply_badge_threshold_set(state, env)

    return None


__all__ = ["REWARD_TX_TYPES", "accrue", "apply_rewards", "badge_for", "tier_ladder"]
