from __future__ import annotations

"""Pydantic request schemas for the public API.

These exist only for HTTP input validation; per-call payload rules live in
`carbonledger.runtime.apply`.
"""

from typing import Any, Dict

from pydantic import BaseModel, Field


class TxSubmitRequest(BaseModel):
    tx_type: str = Field(..., min_length=1, description="Call type, e.g. CREDITS_PURCHASE")
    signer: str = Field(..., min_length=1, description="Caller account id")
    nonce: int = Field(..., ge=1, description="Signer nonce; must be current nonce + 1")
    payload: Dict[str, Any] = Field(default_factory=dict)
    value: int = Field(default=0, ge=0, description="Native value attached to the call")
    sig: str = Field(default="", description="Ed25519 signature (hex or base64)")

    model_config = {"extra": "ignore"}
