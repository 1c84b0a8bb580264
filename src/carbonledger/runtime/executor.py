from __future__ import annotations

import copy
import logging
import threading
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

from carbonledger.ledger.state import LedgerView
from carbonledger.runtime.domain_apply import ApplyError, apply_tx_atomic
from carbonledger.runtime.engine_config import EngineConfig, default_engine_config, genesis_state
from carbonledger.runtime.events import decode_event, events_since
from carbonledger.runtime.ledger_logging import log_event
from carbonledger.runtime.metrics import inc_counter, set_gauge
from carbonledger.runtime.sigverify import verify_tx_signature
from carbonledger.runtime.sqlite_db import SqliteDB, SqliteLedgerStore
from carbonledger.runtime.state_invariants import check_credit_conservation, ensure_state
from carbonledger.runtime.tx_id import compute_tx_id_from_envelope
from carbonledger.runtime.tx_types import TxEnvelope, TxVerdict

Json = Dict[str, Any]

log = logging.getLogger("carbonledger.executor")


def _now_ms() -> int:
    return int(time.time() * 1000)


def _ensure_parent(path: str) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)


def _safe_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


class ExecutorError(RuntimeError):
    pass


class CarbonExecutor:
    """Single-writer engine executor backed by SQLite.

    Every submitted call runs admission, apply and persistence while holding
    one process-wide lock, so calls never interleave and no reader sees a
    partially applied call. The in-memory state is only replaced after the
    SQLite write transaction commits.
    """

    def __init__(
        self,
        *,
        db_path: str,
        chain_id: str,
        config: Optional[EngineConfig] = None,
        clock=None,
    ) -> None:
        self.chain_id = str(chain_id)
        self.db_path = str(db_path)
        _ensure_parent(self.db_path)

        self._cfg = config or default_engine_config()
        self._clock = clock or _now_ms
        self._lock = threading.Lock()

        self._db = SqliteDB(path=self.db_path)
        self._store = SqliteLedgerStore(db=self._db)

        if self._store.exists():
            self.state = self._store.read()
        else:
            self.state = genesis_state(self._cfg)
            self.state["chain_id"] = self.chain_id
            self._store.write(self.state)

        st_chain_id = str(self.state.get("chain_id") or "").strip()
        if st_chain_id and st_chain_id != self.chain_id:
            raise ExecutorError(
                f"chain_id mismatch: db={st_chain_id!r} executor={self.chain_id!r}. Refuse to start."
            )

        ensure_state(self.state)
        self._check_conservation_fail_closed()

    def _check_conservation_fail_closed(self) -> None:
        problems = check_credit_conservation(self.state)
        if problems:
            raise ExecutorError("ledger_invariant_violation: " + "; ".join(problems) + ". Refuse to start.")

    # ----------------------------
    # Public accessors
    # ----------------------------

    def read_state(self) -> Json:
        with self._lock:
            return copy.deepcopy(self.state)

    def view(self) -> LedgerView:
        with self._lock:
            return LedgerView.from_ledger(self.state)

    def calls(self, *, signer: Optional[str] = None, limit: int = 100) -> List[Json]:
        return self._store.calls(signer=signer, limit=limit)

    # ----------------------------
    # Admission
    # ----------------------------

    def _admit(self, env: TxEnvelope, raw: Json) -> TxVerdict:
        signer = str(env.signer or "").strip()
        if not signer:
            return TxVerdict.reject("bad_env", "missing_signer")
        if not str(env.tx_type or "").strip():
            return TxVerdict.reject("bad_env", "missing_tx_type")

        accounts = self.state.get("accounts", {})
        acct = accounts.get(signer) if isinstance(accounts, dict) else None
        if not isinstance(acct, dict) and env.tx_type.strip().upper() != "ACCOUNT_REGISTER":
            return TxVerdict.reject("unknown_signer", "account_not_registered", {"signer": signer})

        expected = _safe_int(acct.get("nonce"), 0) + 1 if isinstance(acct, dict) else 1
        if int(env.nonce) != expected:
            return TxVerdict.reject("bad_nonce", "unexpected_nonce", {"expected": expected, "got": int(env.nonce)})

        if not verify_tx_signature(self.state, raw):
            return TxVerdict.reject("bad_sig", "signature_invalid", {"signer": signer})

        return TxVerdict.admit()

    # ----------------------------
    # Call submission
    # ----------------------------

    def submit_tx(self, raw: Json) -> Json:
        """Admit, apply and persist one call envelope.

        Returns a receipt dict:
          {ok: True, tx_id, height, result}
          {ok: False, tx_id, error, reason, details}
        """
        if not isinstance(raw, dict):
            return {"ok": False, "error": "bad_env", "reason": "not_object", "details": {}}
        try:
            env = TxEnvelope.from_json(raw)
        except (TypeError, ValueError) as e:
            return {"ok": False, "error": "bad_env", "reason": "malformed", "details": {"error": str(e)}}

        with self._lock:
            tx_id = compute_tx_id_from_envelope(self.chain_id, env)
            verdict = self._admit(env, raw)
            if not verdict.ok:
                inc_counter("tx_admission_rejected")
                log_event(log, "tx_admission_rejected", tx_id=tx_id, tx_type=env.tx_type, signer=env.signer,
                          code=verdict.code, reason=verdict.reason)
                return {"ok": False, "tx_id": tx_id, "error": verdict.code, "reason": verdict.reason,
                        "details": verdict.details or {}}
            return self._apply_and_commit(env, tx_id)

    def _apply_and_commit(self, env: TxEnvelope, tx_id: str) -> Json:
        work = copy.deepcopy(self.state)
        ts = max(int(self._clock()), _safe_int(work.get("last_block_ts_ms"), 0))
        height = _safe_int(work.get("height"), 0) + 1
        stamped = env.with_ts(ts)
        events_before = len(work.get("events") or [])

        call: Json = {
            "tx_id": tx_id,
            "height": height,
            "tx_type": env.tx_type,
            "signer": env.signer,
            "envelope": env.to_json(),
            "ts_ms": ts,
        }

        try:
            meta = apply_tx_atomic(work, stamped)
        except ApplyError as e:
            # Nonce was consumed on `work`; persist that plus the rejected call.
            call.update({"ok": False, "code": e.code, "reason": e.reason})
            self._store.commit(work, call)
            self.state = work
            inc_counter("tx_rejected")
            log_event(log, "tx_rejected", tx_id=tx_id, tx_type=env.tx_type, signer=env.signer,
                      code=e.code, reason=e.reason, details=e.details)
            return {"ok": False, "tx_id": tx_id, "error": e.code, "reason": e.reason, "details": e.details or {}}

        work["height"] = height
        work["last_block_ts_ms"] = ts
        call.update({"ok": True, "code": "ok", "reason": "applied"})
        self._store.commit(work, call)
        self.state = work

        inc_counter("tx_applied")
        set_gauge("height", height)
        log_event(log, "tx_applied", tx_id=tx_id, tx_type=env.tx_type, signer=env.signer, height=height)
        for rec in events_since(work, events_before):
            log_event(log, "ledger_event", **{"notification": decode_event(rec)})

        return {"ok": True, "tx_id": tx_id, "height": height, "result": meta}
