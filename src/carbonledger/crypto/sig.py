# src/carbonledger/crypto/sig.py
from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Dict

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey, Ed25519PublicKey

Json = Dict[str, Any]


def decode_key_material(s: str) -> bytes:
    """Decode hex, base64 or base64url text into bytes."""
    text = str(s or "").strip()
    if not text:
        raise ValueError("empty key material")
    try:
        return bytes.fromhex(text)
    except ValueError:
        pass
    padded = text + "=" * (-len(text) % 4)
    try:
        return base64.b64decode(padded.replace("-", "+").replace("_", "/"), validate=True)
    except binascii.Error as e:
        raise ValueError("key material is neither hex nor base64") from e


def canonical_tx_message(
    *,
    tx_type: str,
    signer: str,
    nonce: int,
    payload: Json,
    value: int = 0,
) -> bytes:
    """Bytes covered by a call signature: sorted-key compact JSON of the call."""
    body: Json = {
        "nonce": int(nonce),
        "payload": payload if isinstance(payload, dict) else {},
        "signer": str(signer),
        "tx_type": str(tx_type),
        "value": int(value),
    }
    return json.dumps(body, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def verify_ed25519_signature(*, message: bytes, sig: str, pubkey: str) -> bool:
    try:
        Ed25519PublicKey.from_public_bytes(decode_key_material(pubkey)).verify(decode_key_material(sig), message)
    except (InvalidSignature, ValueError):
        return False
    return True


def sign_ed25519(*, message: bytes, privkey: str, encoding: str = "hex") -> str:
    """Sign with a 32-byte Ed25519 seed (a 64-byte expanded key is cut to its seed).

    encoding: "hex" or "b64".
    """
    seed = decode_key_material(privkey)
    if len(seed) == 64:
        seed = seed[:32]
    if len(seed) != 32:
        raise ValueError("ed25519 private key must be a 32-byte seed")

    raw = Ed25519PrivateKey.from_private_bytes(seed).sign(message)
    if encoding == "hex":
        return raw.hex()
    if encoding in {"b64", "base64"}:
        return base64.b64encode(raw).decode("ascii")
    raise ValueError(f"unsupported signature encoding: {encoding!r}")


def sign_tx_envelope_dict(*, tx: Json, privkey: str, encoding: str = "hex") -> Json:
    """Return a normalized copy of a call envelope dict with `sig` filled in."""
    out = dict(tx)
    out["tx_type"] = str(tx.get("tx_type") or "")
    out["signer"] = str(tx.get("signer") or "")
    out["nonce"] = int(tx.get("nonce") or 0)
    out["payload"] = tx.get("payload") if isinstance(tx.get("payload"), dict) else {}
    out["value"] = int(tx.get("value") or 0)

    msg = canonical_tx_message(
        tx_type=out["tx_type"],
        signer=out["signer"],
        nonce=out["nonce"],
        payload=out["payload"],
        value=out["value"],
    )
    out["sig"] = sign_ed25519(message=msg, privkey=privkey, encoding=encoding)
    return out
