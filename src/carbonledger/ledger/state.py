from __future__ import annotations

from dataclasses import dataclass, field
import copy
from typing import Any, Dict, List, Optional

from carbonledger.ledger.constants import BADGE_DEFAULT
from carbonledger.runtime.events import decode_event
from carbonledger.runtime.params import EngineParams
from carbonledger.runtime.txlog import all_transactions, holder_transactions


Json = Dict[str, Any]


def _d(x: Any) -> Dict[str, Any]:
    return x if isinstance(x, dict) else {}


def _l(x: Any) -> List[Any]:
    return x if isinstance(x, list) else []


@dataclass(frozen=True, slots=True)
class LedgerView:
    """
    Immutable read-only ledger view used by queries and the API.

    Built from a deep copy of the live state, so holding a view never observes
    a later mutation.
    """

    accounts: Dict[str, Any] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)
    projects: Dict[str, Any] = field(default_factory=dict)
    credits: Dict[str, Any] = field(default_factory=dict)
    rewards: Dict[str, Any] = field(default_factory=dict)
    tx_log: Dict[str, Any] = field(default_factory=dict)
    gov: Dict[str, Any] = field(default_factory=dict)
    events: List[Any] = field(default_factory=list)
    height: int = 0
    last_block_ts_ms: int = 0

    @classmethod
    def from_ledger(cls, state: Dict[str, Any]) -> "LedgerView":
        return cls(
            accounts=copy.deepcopy(_d(state.get("accounts"))),
            params=copy.deepcopy(_d(state.get("params"))),
            projects=copy.deepcopy(_d(state.get("projects"))),
            credits=copy.deepcopy(_d(state.get("credits"))),
            rewards=copy.deepcopy(_d(state.get("rewards"))),
            tx_log=copy.deepcopy(_d(state.get("tx_log"))),
            gov=copy.deepcopy(_d(state.get("gov"))),
            events=copy.deepcopy(_l(state.get("events"))),
            height=int(state.get("height", 0) or 0),
            last_block_ts_ms=int(state.get("last_block_ts_ms", 0) or 0),
        )

    # ----------------------------
    # Accounts / params
    # ----------------------------

    def get_account(self, account_id: str) -> Dict[str, Any]:
        acct = self.accounts.get(account_id)
        return acct if isinstance(acct, dict) else {}

    def get_nonce(self, account_id: str) -> int:
        try:
            return int(self.get_account(account_id).get("nonce", 0))
        except Exception:
            return 0

    def native_balance(self, account_id: str) -> int:
        try:
            return int(self.get_account(account_id).get("balance", 0))
        except Exception:
            return 0

    def engine_params(self) -> EngineParams:
        return EngineParams.from_state({"params": copy.deepcopy(self.params)})

    # ----------------------------
    # Projects / balances
    # ----------------------------

    def get_project(self, project_id: Any) -> Optional[Json]:
        try:
            key = str(int(project_id))
        except (TypeError, ValueError):
            return None
        pr = _d(self.projects.get("by_id")).get(key)
        return dict(pr) if isinstance(pr, dict) else None

    def list_projects(self) -> List[Json]:
        by_id = _d(self.projects.get("by_id"))
        items = [dict(v) for v in by_id.values() if isinstance(v, dict)]
        items.sort(key=lambda p: int(p.get("project_id", 0)))
        return items

    def get_user_credits(self, holder: str, project_id: Any) -> int:
        per_holder = _d(_d(self.credits.get("balances")).get(str(holder)))
        try:
            return int(per_holder.get(str(int(project_id)), 0))
        except (TypeError, ValueError):
            return 0

    # ----------------------------
    # Rewards
    # ----------------------------

    def get_user_reputation(self, holder: str) -> Json:
        rec = _d(_d(self.rewards.get("by_holder")).get(str(holder)))
        return {
            "holder": str(holder),
            "points": int(rec.get("points", 0)),
            "badge": str(rec.get("badge") or BADGE_DEFAULT),
        }

    def get_leaderboard(self, limit: Optional[int] = None) -> List[Json]:
        """Holders by points, highest first; ties keep first-seen order."""
        by_holder = _d(self.rewards.get("by_holder"))
        rows = [self.get_user_reputation(h) for h in _l(self.rewards.get("holders")) if h in by_holder]
        rows.sort(key=lambda r: -int(r["points"]))
        if limit is not None:
            rows = rows[: max(0, int(limit))]
        return rows

    # ----------------------------
    # Transaction log
    # ----------------------------

    def get_all_transactions(self, *, offset: int = 0, limit: Optional[int] = None) -> List[Json]:
        return all_transactions({"tx_log": self.tx_log}, offset=offset, limit=limit)

    def get_user_transactions(self, holder: str, *, offset: int = 0, limit: Optional[int] = None) -> List[Json]:
        return holder_transactions({"tx_log": self.tx_log}, holder, offset=offset, limit=limit)

    # ----------------------------
    # Governance / events
    # ----------------------------

    def list_proposals(self) -> List[Json]:
        return [dict(p) for p in _l(self.gov.get("proposals")) if isinstance(p, dict)]

    def get_proposal(self, proposal_id: Any) -> Optional[Json]:
        proposals = _l(self.gov.get("proposals"))
        try:
            pid = int(proposal_id)
        except (TypeError, ValueError):
            return None
        if pid < 0 or pid >= len(proposals) or not isinstance(proposals[pid], dict):
            return None
        return dict(proposals[pid])

    def get_events(self, *, since: int = 0, limit: Optional[int] = None) -> List[Json]:
        items = [decode_event(e) for e in self.events[max(0, int(since)) :] if isinstance(e, dict)]
        if limit is not None:
            items = items[: max(0, int(limit))]
        return items
