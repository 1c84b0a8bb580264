# src/carbonledger/runtime/params.py
from __future__ import annotations

"""Process-wide engine parameters (the administrator-tunable configuration).

The parameters live in state["params"] so they are committed, persisted and
rolled back together with the rest of the ledger. Only the admin domain
(`carbonledger.runtime.apply.admin`) and the badge threshold operation write
them; everything else reads through `EngineParams.from_state`.
"""

from dataclasses import dataclass, field
from typing import Any, Dict

from carbonledger.ledger.constants import (
    BADGE_TIERS,
    DEFAULT_ALLOW_NON_ADMIN_REGISTRATION,
    DEFAULT_BADGE_THRESHOLDS,
    DEFAULT_FEE_BPS,
    DEFAULT_MIN_VOTES_FOR_PROPOSAL,
    DEFAULT_TRANSFER_FEE,
)

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


@dataclass(frozen=True)
class EngineParams:
    admin: str
    fee_bps: int = DEFAULT_FEE_BPS
    allow_non_admin_registration: bool = DEFAULT_ALLOW_NON_ADMIN_REGISTRATION
    min_votes_for_proposal: int = DEFAULT_MIN_VOTES_FOR_PROPOSAL
    transfer_fee: int = DEFAULT_TRANSFER_FEE
    badge_thresholds: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_BADGE_THRESHOLDS))
    require_signatures: bool = True

    @classmethod
    def from_state(cls, state: Json) -> "EngineParams":
        p = ensure_params(state)
        return cls(
            admin=str(p.get("admin") or ""),
            fee_bps=_as_int(p.get("fee_bps"), DEFAULT_FEE_BPS),
            allow_non_admin_registration=bool(p.get("allow_non_admin_registration")),
            min_votes_for_proposal=_as_int(p.get("min_votes_for_proposal"), DEFAULT_MIN_VOTES_FOR_PROPOSAL),
            transfer_fee=_as_int(p.get("transfer_fee"), DEFAULT_TRANSFER_FEE),
            badge_thresholds={k: _as_int(v, 0) for k, v in p["badge_thresholds"].items()},
            require_signatures=bool(p.get("require_signatures", True)),
        )

    def to_json(self) -> Json:
        return {
            "admin": self.admin,
            "fee_bps": int(self.fee_bps),
            "allow_non_admin_registration": bool(self.allow_non_admin_registration),
            "min_votes_for_proposal": int(self.min_votes_for_proposal),
            "transfer_fee": int(self.transfer_fee),
            "badge_thresholds": dict(self.badge_thresholds),
            "require_signatures": bool(self.require_signatures),
        }


def ensure_params(state: Json) -> Json:
    """Return state["params"], filling in any missing defaults in place."""
    params = state.get("params")
    if not isinstance(params, dict):
        params = {}
        state["params"] = params

    params.setdefault("admin", "")
    params.setdefault("fee_bps", DEFAULT_FEE_BPS)
    params.setdefault("allow_non_admin_registration", DEFAULT_ALLOW_NON_ADMIN_REGISTRATION)
    params.setdefault("min_votes_for_proposal", DEFAULT_MIN_VOTES_FOR_PROPOSAL)
    params.setdefault("transfer_fee", DEFAULT_TRANSFER_FEE)
    params.setdefault("require_signatures", True)

    thresholds = params.get("badge_thresholds")
    if not isinstance(thresholds, dict):
        thresholds = {}
        params["badge_thresholds"] = thresholds
    for tier in BADGE_TIERS:
        thresholds.setdefault(tier, DEFAULT_BADGE_THRESHOLDS[tier])

    return params


__all__ = ["EngineParams", "ensure_params"]
