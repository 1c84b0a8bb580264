# src/carbonledger/runtime/sigverify.py

from __future__ import annotations

import os
from typing import Any, Dict, List

from carbonledger.crypto.sig import canonical_tx_message, verify_ed25519_signature

Json = Dict[str, Any]


def _add_pubkey(out: List[str], seen: set[str], pk: Any) -> None:
    """Add a pubkey to out (deduped) if it's a non-empty string."""
    if not isinstance(pk, str):
        return
    pk2 = pk.strip()
    if not pk2 or pk2 in seen:
        return
    seen.add(pk2)
    out.append(pk2)


def extract_active_keys(acct: Any) -> List[str]:
    """Active pubkeys of an account record: acct["keys"] = [{"pubkey", "active"}, ...]."""
    if not isinstance(acct, dict):
        return []

    out: List[str] = []
    seen: set[str] = set()

    keys = acct.get("keys")
    if isinstance(keys, list):
        for item in keys:
            if isinstance(item, str):
                _add_pubkey(out, seen, item)
                continue
            if not isinstance(item, dict):
                continue
            # default to active unless explicitly False
            if item.get("active", True) is False:
                continue
            _add_pubkey(out, seen, item.get("pubkey"))

    return out


def _unsafe_dev_allows_unsigned() -> bool:
    """Allow unsigned calls ONLY in explicit unsafe dev mode.

    Requirements:
      - CARBON_MODE=dev
      - CARBON_UNSAFE_DEV=1
    """
    mode = (os.environ.get("CARBON_MODE") or "prod").strip().lower()
    unsafe = (os.environ.get("CARBON_UNSAFE_DEV") or "").strip()
    return bool(mode == "dev" and unsafe == "1")


def verify_tx_signature(state: Json, tx: Json) -> bool:
    """Verify a call signature against the signer's active keys.

    Policy:
      - If params disable signatures (require_signatures=False), return True.
      - ACCOUNT_REGISTER for a signer without keys is self-certifying: it must
        verify against the pubkey it registers.
      - Otherwise the signature must verify against one active key; a signer
        with no keys fails closed (unless unsafe dev mode is on).

    NOTE: This function is pure (no I/O).
    """
    if not isinstance(tx, dict):
        return False

    signer = tx.get("signer")
    if not isinstance(signer, str) or not signer.strip():
        return False

    params = state.get("params") if isinstance(state, dict) else None
    if not isinstance(params, dict):
        params = {}

    if not bool(params.get("require_signatures", True)):
        return True

    accounts = state.get("accounts") if isinstance(state, dict) else None
    acct: Dict[str, Any] = {}
    if isinstance(accounts, dict):
        maybe = accounts.get(signer)
        if isinstance(maybe, dict):
            acct = maybe

    active_keys = extract_active_keys(acct)

    payload = tx.get("payload") if isinstance(tx.get("payload"), dict) else {}
    if not active_keys and str(tx.get("tx_type") or "").strip().upper() == "ACCOUNT_REGISTER":
        seed = payload.get("pubkey")
        if isinstance(seed, str) and seed.strip():
            active_keys = [seed.strip()]

    sig = tx.get("sig")
    if not isinstance(sig, str) or not sig.strip():
        return (not active_keys) and _unsafe_dev_allows_unsigned()

    try:
        msg = canonical_tx_message(
            tx_type=str(tx.get("tx_type") or ""),
            signer=signer,
            nonce=int(tx.get("nonce") or 0),
            payload=payload,
            value=int(tx.get("value") or 0),
        )
    except (TypeError, ValueError):
        return False

    if not active_keys:
        return _unsafe_dev_allows_unsigned()

    for pk in active_keys:
        if verify_ed25519_signature(message=msg, sig=sig, pubkey=pk):
            return True

    return False
