from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


@dataclass(frozen=True, slots=True)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def forbidden(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(403, code, message, details or {})

    @staticmethod
    def not_found(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(404, code, message, details or {})

    @staticmethod
    def conflict(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(409, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})


# Executor receipt error codes -> HTTP status.
_STATUS_BY_CODE: Dict[str, int] = {
    "bad_env": 400,
    "invalid_payload": 400,
    "tx_unimplemented": 400,
    "bad_sig": 403,
    "unknown_signer": 403,
    "forbidden": 403,
    "not_found": 404,
    "bad_nonce": 409,
    "conflict": 409,
    "invalid_state": 409,
    "insufficient_balance": 409,
    "insufficient_payment": 409,
    "transfer_failed": 409,
}


def api_error_from_receipt(receipt: Dict[str, Any]) -> ApiError:
    code = str(receipt.get("error") or "submit_failed")
    return ApiError(
        _STATUS_BY_CODE.get(code, 400),
        code,
        str(receipt.get("reason") or "tx rejected"),
        {"tx_id": receipt.get("tx_id"), "details": receipt.get("details") or {}},
    )


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiError)
    async def _api_error(_request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"ok": False, "error": {"code": exc.code, "message": exc.message, "details": exc.details}},
        )
