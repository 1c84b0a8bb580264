from __future__ import annotations

import time
from typing import Any, Dict

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
def health(request: Request) -> Dict[str, Any]:
    ex = getattr(request.app.state, "executor", None)
    out: Dict[str, Any] = {"ok": True, "ts_ms": int(time.time() * 1000), "executor": ex is not None}
    if ex is not None:
        ledger = ex.view()
        out["chain_id"] = ex.chain_id
        out["height"] = ledger.height
    return out
