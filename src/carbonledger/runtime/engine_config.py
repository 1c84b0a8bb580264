# src/carbonledger/runtime/engine_config.py
from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from carbonledger.ledger.constants import (
    BADGE_TIERS,
    BPS_DENOMINATOR,
    DEFAULT_ALLOW_NON_ADMIN_REGISTRATION,
    DEFAULT_BADGE_THRESHOLDS,
    DEFAULT_FEE_BPS,
    DEFAULT_MIN_VOTES_FOR_PROPOSAL,
    DEFAULT_TRANSFER_FEE,
    ENGINE_ACCOUNT_ID,
)

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_bool(v: Any, default: bool) -> bool:
    if v is None:
        return bool(default)
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


@dataclass(frozen=True, slots=True)
class GenesisAccount:
    account: str
    pubkey: str = ""
    balance: int = 0
    locked: bool = False


@dataclass(frozen=True)
class EngineConfig:
    chain_id: str
    mode: str  # "dev" | "testnet" | "prod"

    db_path: str
    admin: str

    api_host: str
    api_port: int
    log_level: str

    require_signatures: bool = True

    # Initial administrator-tunable parameters (written into state at genesis).
    fee_bps: int = DEFAULT_FEE_BPS
    transfer_fee: int = DEFAULT_TRANSFER_FEE
    min_votes_for_proposal: int = DEFAULT_MIN_VOTES_FOR_PROPOSAL
    allow_non_admin_registration: bool = DEFAULT_ALLOW_NON_ADMIN_REGISTRATION
    badge_thresholds: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_BADGE_THRESHOLDS))

    genesis_accounts: Tuple[GenesisAccount, ...] = ()


_ALLOWED_MODES = {"dev", "testnet", "prod"}


def validate_engine_config(cfg: EngineConfig) -> None:
    """Fail-fast validation for operator config."""

    if not isinstance(cfg.chain_id, str) or not cfg.chain_id.strip():
        raise ValueError("chain_id must be a non-empty string")

    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if not isinstance(cfg.admin, str) or not cfg.admin.strip():
        raise ValueError("admin must be a non-empty account id")

    if not isinstance(cfg.db_path, str) or not cfg.db_path.strip():
        raise ValueError("db_path must be a non-empty string")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    if not 0 <= int(cfg.fee_bps) <= BPS_DENOMINATOR:
        raise ValueError(f"fee_bps must be 0..{BPS_DENOMINATOR}; got: {cfg.fee_bps}")

    if int(cfg.transfer_fee) < 0:
        raise ValueError(f"transfer_fee must be >= 0; got: {cfg.transfer_fee}")

    if int(cfg.min_votes_for_proposal) < 0:
        raise ValueError(f"min_votes_for_proposal must be >= 0; got: {cfg.min_votes_for_proposal}")

    for tier, threshold in cfg.badge_thresholds.items():
        if tier not in BADGE_TIERS:
            raise ValueError(f"unknown badge tier in badge_thresholds: {tier!r}")
        if int(threshold) < 0:
            raise ValueError(f"badge threshold for {tier} must be >= 0")

    if mode == "prod" and not cfg.require_signatures:
        raise ValueError("require_signatures cannot be disabled in prod mode")

    seen = set()
    for ga in cfg.genesis_accounts:
        if not ga.account.strip():
            raise ValueError("genesis account id must be non-empty")
        if ga.account == ENGINE_ACCOUNT_ID:
            raise ValueError(f"{ENGINE_ACCOUNT_ID} is reserved")
        if ga.account in seen:
            raise ValueError(f"duplicate genesis account: {ga.account!r}")
        if int(ga.balance) < 0:
            raise ValueError(f"genesis balance must be >= 0 for {ga.account!r}")
        seen.add(ga.account)


def default_engine_config() -> EngineConfig:
    return EngineConfig(
        chain_id="carbon-dev",
        # Production-safe defaults: never drop silently into a permissive posture.
        mode="prod",
        db_path="./data/carbonledger.db",
        admin="admin",
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
    )


def _parse_genesis_accounts(raw: Any) -> Tuple[GenesisAccount, ...]:
    if not isinstance(raw, list):
        return ()
    out: List[GenesisAccount] = []
    for rec in raw:
        if not isinstance(rec, dict):
            continue
        acct = str(rec.get("account") or "").strip()
        if not acct:
            continue
        out.append(
            GenesisAccount(
                account=acct,
                pubkey=str(rec.get("pubkey") or "").strip(),
                balance=_as_int(rec.get("balance"), 0),
                locked=_as_bool(rec.get("locked"), False),
            )
        )
    return tuple(out)


def _read_raw(path: Path) -> Json:
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in {".yaml", ".yml"}:
        import yaml

        raw = yaml.safe_load(text)
    else:
        raw = json.loads(text)
    if not isinstance(raw, dict):
        raise ValueError("engine config must be a mapping")
    return raw


def read_engine_config_file(path: str) -> EngineConfig:
    raw = _read_raw(Path(path))
    d = default_engine_config()

    thresholds = dict(d.badge_thresholds)
    raw_thresholds = raw.get("badge_thresholds")
    if isinstance(raw_thresholds, dict):
        for k, v in raw_thresholds.items():
            thresholds[str(k)] = _as_int(v, -1)

    cfg = EngineConfig(
        chain_id=_as_str(raw.get("chain_id"), d.chain_id),
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        db_path=_as_str(raw.get("db_path"), d.db_path),
        admin=_as_str(raw.get("admin"), d.admin),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        log_level=_as_str(raw.get("log_level"), d.log_level),
        require_signatures=_as_bool(raw.get("require_signatures"), d.require_signatures),
        fee_bps=_as_int(raw.get("fee_bps"), d.fee_bps),
        transfer_fee=_as_int(raw.get("transfer_fee"), d.transfer_fee),
        min_votes_for_proposal=_as_int(raw.get("min_votes_for_proposal"), d.min_votes_for_proposal),
        allow_non_admin_registration=_as_bool(
            raw.get("allow_non_admin_registration"), d.allow_non_admin_registration
        ),
        badge_thresholds=thresholds,
        genesis_accounts=_parse_genesis_accounts(raw.get("genesis_accounts")),
    )

    validate_engine_config(cfg)
    return cfg


def load_engine_config(*, config_path: Optional[str] = None) -> EngineConfig:
    p = config_path or os.environ.get("CARBON_CONFIG_PATH")
    if p:
        return read_engine_config_file(p)

    d = default_engine_config()
    cfg = EngineConfig(
        chain_id=os.environ.get("CARBON_CHAIN_ID", d.chain_id),
        mode=os.environ.get("CARBON_MODE", d.mode).strip().lower(),
        db_path=os.environ.get("CARBON_DB_PATH", d.db_path),
        admin=os.environ.get("CARBON_ADMIN", d.admin),
        api_host=os.environ.get("CARBON_API_HOST", d.api_host),
        api_port=_as_int(os.environ.get("CARBON_API_PORT"), d.api_port),
        log_level=os.environ.get("CARBON_LOG_LEVEL", d.log_level),
    )
    validate_engine_config(cfg)
    return cfg


def genesis_state(cfg: EngineConfig) -> Json:
    """Initial ledger state for a fresh database."""
    accounts: Json = {ENGINE_ACCOUNT_ID: {"nonce": 0, "balance": 0, "locked": False, "keys": []}}
    for ga in cfg.genesis_accounts:
        accounts[ga.account] = {
            "nonce": 0,
            "balance": int(ga.balance),
            "locked": bool(ga.locked),
            "keys": [{"pubkey": ga.pubkey, "active": True}] if ga.pubkey else [],
        }

    thresholds = dict(DEFAULT_BADGE_THRESHOLDS)
    thresholds.update({k: int(v) for k, v in cfg.badge_thresholds.items()})

    return {
        "chain_id": cfg.chain_id,
        "height": 0,
        "last_block_ts_ms": 0,
        "accounts": accounts,
        "params": {
            "admin": cfg.admin,
            "fee_bps": int(cfg.fee_bps),
            "allow_non_admin_registration": bool(cfg.allow_non_admin_registration),
            "min_votes_for_proposal": int(cfg.min_votes_for_proposal),
            "transfer_fee": int(cfg.transfer_fee),
            "badge_thresholds": thresholds,
            "require_signatures": bool(cfg.require_signatures),
        },
    }


__all__ = [
    "EngineConfig",
    "GenesisAccount",
    "default_engine_config",
    "genesis_state",
    "load_engine_config",
    "read_engine_config_file",
    "validate_engine_config",
]
