# src/carbonledger/runtime/domain_apply.py
# ---------------------------------------------------------------------------
# Public, stable import path for applying tx envelopes.
# ---------------------------------------------------------------------------

from __future__ import annotations

import copy
from typing import Any, Dict, Optional

from carbonledger.runtime.domain_dispatch import apply_tx
from carbonledger.runtime.errors import ApplyError
from carbonledger.runtime.tx_types import TxEnvelope

Json = Dict[str, Any]


def _is_registered(state: Json, signer: str) -> bool:
    acct = state.get("accounts", {}).get(signer)
    return isinstance(acct, dict)


def _consume_nonce_if_possible(state: Json, env: TxEnvelope) -> None:
    """Consume nonce as a deliberate side effect.

    Rejected calls still consume the signer's nonce so a bad call cannot be
    replayed and the account never deadlocks on a stuck nonce.

    This function only mutates the account nonce and nothing else.
    """

    signer = str(env.signer or "").strip()
    if not signer or not _is_registered(state, signer):
        return
    state["accounts"][signer]["nonce"] = int(env.nonce)


def apply_tx_atomic(
    state: Json,
    env: Any,
    *,
    consume_nonce_on_fail: bool = True,
) -> Optional[Json]:
    """Apply a tx with fail-atomic semantics.

    On success:
      - state is updated as if apply_tx() ran directly, and the signer nonce
        is advanced.

    On ApplyError:
      - state remains unchanged, except (optionally) nonce consumption.

    No partial application is ever observable: supply, balances, rewards, the
    transaction log, events and native value all move together or not at all.
    """

    env_norm: Any = env
    if isinstance(env, dict):
        env_norm = TxEnvelope.from_json(env)

    # Apply on a deep copy to guarantee atomicity.
    snapshot = copy.deepcopy(state)

    try:
        meta = apply_tx(snapshot, env_norm)
    except ApplyError:
        if consume_nonce_on_fail:
            _consume_nonce_if_possible(state, env_norm)
        raise

    _consume_nonce_if_possible(snapshot, env_norm)

    # Commit by replacing contents in-place so callers holding references
    # to `state` see the updated view.
    state.clear()
    state.update(snapshot)
    return meta


__all__ = ["ApplyError", "apply_tx", "apply_tx_atomic", "Json"]
