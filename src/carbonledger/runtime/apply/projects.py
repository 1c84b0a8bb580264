# src/carbonledger/runtime/apply/projects.py
from __future__ import annotations

from typing import Any, Dict, Optional, Set

from carbonledger.runtime.access import ROLE_OWNER, ROLE_REGISTRANT, require_role
from carbonledger.runtime.apply.common import _as_dict, block_ts, require_str, require_uint
from carbonledger.runtime.errors import NotFoundError
from carbonledger.runtime.events import emit_event
from carbonledger.runtime.tx_types import TxEnvelope

Json = Dict[str, Any]


def _ensure_root(state: Json) -> Json:
    root = state.get("projects")
    if not isinstance(root, dict):
        root = {}
        state["projects"] = root
    if not isinstance(root.get("by_id"), dict):
        root["by_id"] = {}
    if not isinstance(root.get("next_id"), int) or int(root["next_id"]) < 1:
        root["next_id"] = 1
    return root


def get_project(state: Json, project_id: Any) -> Json:
    """Return the live project record.

    A malformed id raises InvalidArgumentError; a well-formed id with no
    record raises NotFoundError.
    """
    root = _ensure_root(state)
    pid = require_uint({"project_id": project_id}, "project_id")
    pr = root["by_id"].get(str(pid))
    if not isinstance(pr, dict):
        raise NotFoundError("project_not_found", {"project_id": pid})
    return pr


def _terms(payload: Json) -> tuple[str, int, int]:
    name = require_str(payload, "name")
    total = require_uint(payload, "total_credits", positive=True)
    price = require_uint(payload, "price_per_credit", positive=True)
    return name, total, price


def _apply_project_register(state: Json, env: TxEnvelope) -> Json:
    require_role(state, env.signer, ROLE_REGISTRANT)
    name, total, price = _terms(_as_dict(env.payload))

    root = _ensure_root(state)
    pid = int(root["next_id"])
    ts = block_ts(state, env)

    root["by_id"][str(pid)] = {
        "project_id": pid,
        "owner": str(env.signer),
        "name": name,
        "total_credits": total,
        "available_credits": total,
        "price_per_credit": price,
        "created_at_ms": ts,
        "updated_at_ms": ts,
        "revision": 0,
    }
    root["next_id"] = pid + 1

    emit_event(state, "ProjectRegistered", pid, str(env.signer), name, total, price, ts_ms=ts)
    return {"applied": "PROJECT_REGISTER", "project_id": pid}


def _apply_project_update(state: Json, env: TxEnvelope) -> Json:
    payload = _as_dict(env.payload)
    pr = get_project(state, payload.get("project_id"))
    require_role(state, env.signer, ROLE_OWNER, owner=str(pr.get("owner") or ""))
    name, total, price = _terms(payload)

    # Supply accounting is replaced wholesale: availability restarts at the new
    # total even if credits of the old issuance were already sold.
    pr["name"] = name
    pr["total_credits"] = total
    pr["available_credits"] = total
    pr["price_per_credit"] = price
    ts = block_ts(state, env)
    pr["updated_at_ms"] = ts
    pr["revision"] = int(pr.get("revision", 0)) + 1

    pid = int(pr["project_id"])
    emit_event(state, "ProjectUpdated", pid, name, total, price, ts_ms=ts)
    return {"applied": "PROJECT_UPDATE", "project_id": pid}


PROJECT_TX_TYPES: Set[str] = {"PROJECT_REGISTER", "PROJECT_UPDATE"}


def apply_projects(state: Json, env: TxEnvelope) -> Optional[Json]:
    t = str(env.tx_type or "").strip().upper()
    if t not in PROJECT_TX_TYPES:
        return None

    if t == "PROJECT_REGISTER":
        return _apply_project_register(state, env)

    if t == "PROJECT_UPDATE":
        return _apply_project_update(state, env)

    return None


__all__ = ["PROJECT_TX_TYPES", "apply_projects", "get_project"]
