# src/carbonledger/api/routes_public_parts/gov.py
from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from carbonledger.api.errors import ApiError
from carbonledger.api.routes_public_parts.common import _view

router = APIRouter()

Json = Dict[str, Any]


@router.get("/gov/proposals")
def gov_proposals(request: Request) -> Json:
    ledger = _view(request)
    return {
        "ok": True,
        "min_votes_for_proposal": ledger.engine_params().min_votes_for_proposal,
        "items": ledger.list_proposals(),
    }


@router.get("/gov/proposals/{proposal_id}")
def gov_proposal(request: Request, proposal_id: int) -> Json:
    p = _view(request).get_proposal(proposal_id)
    if p is None:
        raise ApiError.not_found("not_found", "proposal not found", {"proposal_id": proposal_id})
    return {"ok": True, "proposal": p}
