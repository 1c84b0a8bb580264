from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from carbonledger.api.routes_public_parts.common import _int_param, _page_params, _view

router = APIRouter()

Json = Dict[str, Any]


@router.get("/transactions")
def all_transactions(request: Request) -> Json:
    offset, limit = _page_params(request)
    return {"ok": True, "items": _view(request).get_all_transactions(offset=offset, limit=limit)}


@router.get("/leaderboard")
def leaderboard(request: Request) -> Json:
    limit = max(1, min(500, _int_param(request.query_params.get("limit"), 100)))
    return {"ok": True, "items": _view(request).get_leaderboard(limit)}


@router.get("/events")
def events(request: Request) -> Json:
    """Notifications in emission order; ?since=<seq> skips earlier ones."""
    qp = request.query_params
    since = max(0, _int_param(qp.get("since"), 0))
    limit = max(1, min(1000, _int_param(qp.get("limit"), 200)))
    return {"ok": True, "items": _view(request).get_events(since=since, limit=limit)}


@router.get("/params")
def params(request: Request) -> Json:
    ledger = _view(request)
    return {"ok": True, "params": ledger.engine_params().to_json(), "height": ledger.height}
