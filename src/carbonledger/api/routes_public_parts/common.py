from __future__ import annotations

from typing import Any, Dict

from fastapi import Request

from carbonledger.api.errors import ApiError
from carbonledger.ledger.state import LedgerView

Json = Dict[str, Any]


def _executor(request: Request):
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        raise ApiError.internal("not_ready", "executor not attached to app.state", {})
    return ex


def _view(request: Request) -> LedgerView:
    return _executor(request).view()


def _int_param(v: Any, default: int) -> int:
    """Parse an int-ish query param safely."""
    if v is None:
        return int(default)
    try:
        s = str(v).strip()
        if s == "":
            return int(default)
        return int(s)
    except Exception:
        return int(default)


def _page_params(request: Request, *, default_limit: int = 50, max_limit: int = 500) -> tuple[int, int]:
    qp = request.query_params
    offset = max(0, _int_param(qp.get("offset"), 0))
    limit = max(1, min(max_limit, _int_param(qp.get("limit"), default_limit)))
    return offset, limit
