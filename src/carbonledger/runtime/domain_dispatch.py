# src/carbonledger/runtime/domain_dispatch.py

from __future__ import annotations

from typing import Any, Callable, Dict, Optional

from carbonledger.runtime.errors import ApplyError, InvalidArgumentError
from carbonledger.runtime.state_invariants import ensure_state
from carbonledger.runtime.tx_types import TxEnvelope

# Domain appliers (each returns Optional[Json]; returning None means "not claimed")
from carbonledger.runtime.apply.accounts import ACCOUNT_TX_TYPES, apply_accounts
from carbonledger.runtime.apply.admin import ADMIN_TX_TYPES, apply_admin
from carbonledger.runtime.apply.credits import CREDIT_TX_TYPES, PAYABLE_TX_TYPES, apply_credits
from carbonledger.runtime.apply.governance import GOV_TX_TYPES, apply_governance
from carbonledger.runtime.apply.projects import PROJECT_TX_TYPES, apply_projects
from carbonledger.runtime.apply.rewards import REWARD_TX_TYPES, apply_rewards

Json = Dict[str, Any]
ApplyFn = Callable[[Json, Any], Optional[Json]]


SUPPORTED_TX_TYPES = frozenset(
    ACCOUNT_TX_TYPES | ADMIN_TX_TYPES | CREDIT_TX_TYPES | GOV_TX_TYPES | PROJECT_TX_TYPES | REWARD_TX_TYPES
)


def _get(env: Any, key: str, default: Any = None) -> Any:
    """Read a field from either a TxEnvelope-like object or a dict.

    Tests and tools pass raw dict envelopes directly into apply_tx(), while
    production code passes a TxEnvelope object.
    """

    if isinstance(env, dict):
        return env.get(key, default)
    return getattr(env, key, default)


def _tx_type(env: Any) -> str:
    return str(_get(env, "tx_type", "") or "").strip().upper()


def _enforce_attached_value(env: Any) -> None:
    """Only payable calls may carry native value, and never a negative amount."""
    t = _tx_type(env)
    try:
        value = int(_get(env, "value", 0) or 0)
    except (TypeError, ValueError):
        raise InvalidArgumentError("bad_value", {"tx_type": t})
    if value < 0:
        raise InvalidArgumentError("negative_value", {"tx_type": t, "value": value})
    if value > 0 and t not in PAYABLE_TX_TYPES:
        raise InvalidArgumentError("value_not_accepted", {"tx_type": t, "value": value})


_APPLIERS: tuple[ApplyFn, ...] = (
    apply_accounts,
    apply_projects,
    apply_credits,
    apply_rewards,
    apply_governance,
    apply_admin,
)


def apply_tx(state: Json, env: Any) -> Json:
    """Dispatch a TxEnvelope to the first domain applier that claims it.

    This mutates `state` in place and may leave it partially updated when a
    domain raises; use `domain_apply.apply_tx_atomic` for fail-atomic apply.
    """

    ensure_state(state)

    env_norm: Any = env
    if isinstance(env, dict):
        env_norm = TxEnvelope.from_json(env)

    t = _tx_type(env_norm)
    if not t:
        raise ApplyError("invalid_tx", "missing_tx_type", {"tx_type": t})

    _enforce_attached_value(env_norm)

    for fn in _APPLIERS:
        try:
            out = fn(state, env_norm)
        except ApplyError:
            raise
        except Exception as e:
            code = getattr(e, "code", None)
            reason = getattr(e, "reason", None)
            details = getattr(e, "details", None)

            if code is not None or reason is not None:
                raise ApplyError(
                    str(code or "domain_error"),
                    str(reason or type(e).__name__),
                    details if details is not None else {"tx_type": t, "domain": fn.__name__},
                ) from e

            raise ApplyError(
                "domain_error",
                type(e).__name__,
                {"tx_type": t, "domain": fn.__name__, "error": str(e)},
            ) from e

        if out is not None:
            return out

    raise ApplyError("tx_unimplemented", "tx_type_not_implemented", {"tx_type": t})


__all__ = ["SUPPORTED_TX_TYPES", "apply_tx"]
