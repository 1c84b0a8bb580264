from __future__ import annotations

import hashlib
from typing import Any, Dict, Optional, Tuple

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from carbonledger.crypto.sig import canonical_tx_message
from carbonledger.runtime.engine_config import GenesisAccount

Json = Dict[str, Any]


def _sha256(b: bytes) -> bytes:
    return hashlib.sha256(b).digest()


def deterministic_ed25519_keypair(*, label: str) -> Tuple[str, Ed25519PrivateKey]:
    """Deterministically derive an Ed25519 keypair from a stable label.

    TEST ONLY.

    Returns:
      (pubkey_hex, private_key)
    """
    seed = _sha256(("carbon-test-ed25519:" + (label or "")).encode("utf-8"))
    sk = Ed25519PrivateKey.from_private_bytes(seed)
    pk_hex = sk.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw).hex()
    return pk_hex, sk


def genesis_account_for(account_id: str, *, balance: int = 0, locked: bool = False) -> GenesisAccount:
    """Genesis account whose key is the deterministic test key for account_id."""
    pubkey_hex, _ = deterministic_ed25519_keypair(label=account_id)
    return GenesisAccount(account=account_id, pubkey=pubkey_hex, balance=int(balance), locked=bool(locked))


def sign_tx_dict(tx: Json, *, label: Optional[str] = None) -> Json:
    """Return tx with a real Ed25519 signature (hex), deterministically derived.

    - Signing key derived from `label` if provided, else from tx['signer'].
    - Signature over canonical_tx_message(...), which covers attached value.
    """
    if not isinstance(tx, dict):
        raise TypeError("tx must be a dict")

    tx_type = str(tx.get("tx_type") or "").strip()
    signer = str(tx.get("signer") or "").strip()
    nonce = int(tx.get("nonce") or 0)
    value = int(tx.get("value") or 0)
    payload = tx.get("payload")
    if not isinstance(payload, dict):
        payload = {}

    _, sk = deterministic_ed25519_keypair(label=(label or signer))
    msg = canonical_tx_message(tx_type=tx_type, signer=signer, nonce=nonce, payload=payload, value=value)

    out = dict(tx)
    out["sig"] = sk.sign(msg).hex()
    return out
