# src/carbonledger/runtime/apply/common.py
from __future__ import annotations

"""Payload helpers shared by the domain apply modules."""

from typing import Any, Dict

from carbonledger.ledger.constants import MAX_UINT256
from carbonledger.runtime.errors import InvalidArgumentError

Json = Dict[str, Any]


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


def _as_str(v: Any) -> str:
    return str(v).strip() if isinstance(v, (str, int)) and not isinstance(v, bool) else ""


def require_uint(payload: Json, key: str, *, positive: bool = False) -> int:
    """Read an unsigned 256-bit integer field.

    Booleans, floats and non-numeric strings are rejected rather than coerced.
    """
    raw = payload.get(key)
    if raw is None:
        raise InvalidArgumentError(f"missing_{key}", {key: raw})
    if isinstance(raw, bool) or isinstance(raw, float):
        raise InvalidArgumentError(f"bad_{key}", {key: raw})
    try:
        v = int(str(raw).strip()) if isinstance(raw, str) else int(raw)
    except (TypeError, ValueError):
        raise InvalidArgumentError(f"bad_{key}", {key: raw})

    if v < 0 or v > MAX_UINT256:
        raise InvalidArgumentError(f"{key}_out_of_range", {key: v})
    if positive and v == 0:
        raise InvalidArgumentError(f"{key}_must_be_positive", {key: v})
    return v


def require_flag(payload: Json, key: str) -> bool:
    """Read a boolean field; only real booleans and explicit tokens are accepted."""
    if key not in payload or payload.get(key) is None:
        raise InvalidArgumentError(f"missing_{key}", {})
    raw = payload.get(key)
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        s = raw.strip().lower()
        if s in {"true", "yes", "1"}:
            return True
        if s in {"false", "no", "0"}:
            return False
    raise InvalidArgumentError(f"bad_{key}", {key: raw})


def require_str(payload: Json, key: str) -> str:
    v = _as_str(payload.get(key))
    if not v:
        raise InvalidArgumentError(f"missing_{key}", {})
    return v


def checked_mul(a: int, b: int, what: str) -> int:
    out = int(a) * int(b)
    if out > MAX_UINT256:
        raise InvalidArgumentError(f"{what}_overflow", {"a": a, "b": b})
    return out


def checked_add(a: int, b: int, what: str) -> int:
    out = int(a) + int(b)
    if out > MAX_UINT256:
        raise InvalidArgumentError(f"{what}_overflow", {"a": a, "b": b})
    return out


def block_ts(state: Json, env: Any) -> int:
    ts = getattr(env, "ts_ms", 0)
    try:
        ts = int(ts or 0)
    except Exception:
        ts = 0
    if ts > 0:
        return ts
    try:
        return int(state.get("last_block_ts_ms", 0) or 0)
    except Exception:
        return 0


__all__ = [
    "_as_dict",
    "_as_str",
    "require_uint",
    "require_flag",
    "require_str",
    "checked_mul",
    "checked_add",
    "block_ts",
]
