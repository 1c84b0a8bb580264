# src/carbonledger/runtime/state_invariants.py
from __future__ import annotations

"""State invariants / normalization helpers.

Engine state is a nested JSON-like dict mutated deterministically by the
apply_* modules. This module is the single place that:

  - validates the state is dict-like
  - ensures core top-level containers exist (so domain modules can rely on them)

Domain-specific containers remain the responsibility of the corresponding
apply_* module.

`check_credit_conservation` is a read-only audit used by tests and the
executor's startup check.
"""

from collections.abc import MutableMapping
from typing import Any, Dict, List

from carbonledger.ledger.constants import ACTION_RETIRE
from carbonledger.runtime.params import ensure_params

Json = Dict[str, Any]


def ensure_state(st: Any) -> Json:
    """Ensure `st` is a dict and contains core keys.

    Raises:
        TypeError: if st is not a MutableMapping
    """
    if not isinstance(st, MutableMapping):
        raise TypeError(f"state must be MutableMapping, got {type(st)}")

    acc = st.get("accounts")
    if acc is None:
        st["accounts"] = {}
    elif not isinstance(acc, dict):
        raise TypeError(f"state['accounts'] must be dict, got {type(acc)}")

    params = st.get("params")
    if params is not None and not isinstance(params, dict):
        raise TypeError(f"state['params'] must be dict, got {type(params)}")
    ensure_params(st)  # type: ignore[arg-type]

    return st  # type: ignore[return-value]


def check_credit_conservation(st: Json) -> List[str]:
    """Return a list of violations (empty when consistent).

    For every project, the credits held by holders plus the credits retired
    since the last update plus `available` must equal `total`. Retirements are
    read from the transaction log. Projects that were updated are skipped,
    since an update restarts availability at the new total.
    """
    out: List[str] = []
    projects = st.get("projects")
    by_id = projects.get("by_id") if isinstance(projects, dict) else None
    if not isinstance(by_id, dict):
        return out

    credits = st.get("credits")
    balances = credits.get("balances") if isinstance(credits, dict) else {}
    if not isinstance(balances, dict):
        balances = {}

    log = st.get("tx_log")
    entries = log.get("global") if isinstance(log, dict) else []
    if not isinstance(entries, list):
        entries = []

    for key, pr in by_id.items():
        if not isinstance(pr, dict):
            out.append(f"project {key}: malformed record")
            continue
        if int(pr.get("revision", 0)) > 0:
            continue

        total = int(pr.get("total_credits", 0))
        available = int(pr.get("available_credits", 0))
        if available > total:
            out.append(f"project {key}: available {available} exceeds total {total}")

        held = 0
        for per_holder in balances.values():
            if isinstance(per_holder, dict):
                held += int(per_holder.get(str(key), 0))

        retired = sum(
            int(e.get("amount", 0))
            for e in entries
            if isinstance(e, dict) and e.get("action") == ACTION_RETIRE and str(e.get("project_id")) == str(key)
        )

        if available + held + retired != total:
            out.append(
                f"project {key}: available {available} + held {held} + retired {retired} != total {total}"
            )

    return out


__all__ = ["ensure_state", "check_credit_conservation"]
