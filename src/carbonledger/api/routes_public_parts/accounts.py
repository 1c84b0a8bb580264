from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from carbonledger.api.errors import ApiError
from carbonledger.api.routes_public_parts.common import _page_params, _view

router = APIRouter()

Json = Dict[str, Any]


@router.get("/accounts/{account}")
def get_account(request: Request, account: str) -> Json:
    ledger = _view(request)
    acct = ledger.get_account(account)
    if not acct:
        raise ApiError.not_found("not_found", "account not found", {"account": account})
    return {
        "ok": True,
        "account": account,
        "nonce": ledger.get_nonce(account),
        "balance": ledger.native_balance(account),
        "locked": bool(acct.get("locked", False)),
    }


@router.get("/accounts/{account}/credits/{project_id}")
def get_user_credits(request: Request, account: str, project_id: int) -> Json:
    ledger = _view(request)
    return {
        "ok": True,
        "account": account,
        "project_id": project_id,
        "credits": ledger.get_user_credits(account, project_id),
    }


@router.get("/accounts/{account}/reputation")
def get_user_reputation(request: Request, account: str) -> Json:
    rep = _view(request).get_user_reputation(account)
    return {"ok": True, "account": account, "points": rep["points"], "badge": rep["badge"]}


@router.get("/accounts/{account}/transactions")
def get_user_transactions(request: Request, account: str) -> Json:
    offset, limit = _page_params(request)
    items = _view(request).get_user_transactions(account, offset=offset, limit=limit)
    return {"ok": True, "account": account, "items": items}
