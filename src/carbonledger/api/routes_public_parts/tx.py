from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

from carbonledger.api.errors import ApiError, api_error_from_receipt
from carbonledger.api.routes_public_parts.common import _executor, _int_param
from carbonledger.api.schemas import TxSubmitRequest

router = APIRouter()

Json = Dict[str, Any]


@router.post("/tx/submit")
def tx_submit(request: Request, body: TxSubmitRequest) -> Json:
    """Submit a signed call envelope.

    The call is applied synchronously. Rejections map to 4xx with the
    executor's error code in `error.code`.

    Returns:
      { ok, tx_id, height, result }
    """
    ex = _executor(request)

    if body.signer.strip() == "SYSTEM":
        raise ApiError.forbidden(
            "system_tx_forbidden",
            "system calls cannot be submitted through the public tx endpoint",
            {"tx_type": body.tx_type},
        )

    receipt = ex.submit_tx(body.model_dump())
    if not isinstance(receipt, dict) or not receipt.get("ok"):
        raise api_error_from_receipt(receipt if isinstance(receipt, dict) else {})

    return {
        "ok": True,
        "tx_id": receipt.get("tx_id"),
        "height": int(receipt.get("height") or 0),
        "result": receipt.get("result") or {},
    }


@router.get("/tx/calls")
def tx_calls(request: Request) -> Json:
    """Persisted call records, newest first. Optional ?signer= filter."""
    qp = request.query_params
    signer = str(qp.get("signer") or "").strip() or None
    limit = max(1, min(500, _int_param(qp.get("limit"), 100)))
    return {"ok": True, "items": _executor(request).calls(signer=signer, limit=limit)}
