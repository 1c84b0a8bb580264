from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class TxVerdict:
    """Admission outcome for one envelope, decided before any state is touched."""

    ok: bool
    code: str
    reason: str
    details: Optional[Dict[str, Any]] = None

    @staticmethod
    def admit() -> "TxVerdict":
        return TxVerdict(True, "ok", "admitted")

    @staticmethod
    def reject(code: str, reason: str, details: Optional[Dict[str, Any]] = None) -> "TxVerdict":
        return TxVerdict(False, code, reason, details)


@dataclass(frozen=True)
class TxEnvelope:
    """One authenticated call into the engine.

    `signer` is the caller identity and `value` the native value attached to
    the call. `ts_ms` is the ledger block time stamped by the executor; it is
    not covered by the signature.
    """

    tx_type: str
    signer: str
    nonce: int
    payload: Dict[str, Any]
    value: int = 0
    sig: str = ""
    ts_ms: int = 0

    @staticmethod
    def from_json(j: Any) -> "TxEnvelope":
        if isinstance(j, TxEnvelope):
            return j
        if not isinstance(j, dict):
            j = dict(j)  # type: ignore[arg-type]
        return TxEnvelope(
            tx_type=str(j.get("tx_type", "")),
            signer=str(j.get("signer", "")),
            nonce=int(j.get("nonce", 0)),
            payload=dict(j.get("payload", {}) or {}),
            value=int(j.get("value", 0) or 0),
            sig=str(j.get("sig", "") or ""),
            ts_ms=int(j.get("ts_ms", 0) or 0),
        )

    def with_ts(self, ts_ms: int) -> "TxEnvelope":
        return TxEnvelope(self.tx_type, self.signer, self.nonce, self.payload, self.value, self.sig, int(ts_ms))

    def to_json(self) -> Dict[str, Any]:
        return {
            "tx_type": self.tx_type,
            "signer": self.signer,
            "nonce": self.nonce,
            "payload": self.payload,
            "value": self.value,
            "sig": self.sig,
            "ts_ms": self.ts_ms,
        }
