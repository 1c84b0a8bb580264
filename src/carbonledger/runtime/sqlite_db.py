# src/carbonledger/runtime/sqlite_db.py
from __future__ import annotations

import json
import os
import random
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

Json = Dict[str, Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


def _canon_json(obj: Any) -> str:
    """Canonical JSON encoding.

    Do not coerce unknown types (e.g. default=str): a non-JSON value leaking into
    the ledger snapshot must fail loudly instead of persisting something lossy.
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _env_int(name: str, default: int) -> int:
    try:
        raw = str(os.environ.get(name, "")).strip()
        return int(raw) if raw else int(default)
    except Exception:
        return int(default)


_SYNC_LEVELS = ("OFF", "NORMAL", "FULL", "EXTRA")


def _synchronous_level() -> str:
    """PRAGMA synchronous level: FULL in prod, NORMAL elsewhere.

    CARBON_SQLITE_SYNCHRONOUS overrides when it names a valid level.
    """
    mode = (os.environ.get("CARBON_MODE") or "prod").strip().lower()
    fallback = "FULL" if mode == "prod" else "NORMAL"
    level = (os.environ.get("CARBON_SQLITE_SYNCHRONOUS") or fallback).strip().upper()
    return level if level in _SYNC_LEVELS else fallback


def _is_busy(e: sqlite3.OperationalError) -> bool:
    msg = str(e).lower()
    return "locked" in msg or "busy" in msg


class SqliteDB:
    """One SQLite file holding the ledger snapshot and the call log.

    Connections are opened per use and never shared between threads. Writers
    serialize on BEGIN IMMEDIATE; `write_tx` retries that statement with
    jittered backoff while another writer holds the lock.
    """

    SCHEMA_VERSION = 1

    def __init__(self, *, path: str) -> None:
        self.path = str(path)

    def _connect(self) -> sqlite3.Connection:
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        timeout_ms = _env_int("CARBON_SQLITE_CONNECT_TIMEOUT_MS", 30_000)

        # isolation_level=None: transactions are issued explicitly.
        con = sqlite3.connect(self.path, timeout=timeout_ms / 1000.0, isolation_level=None, check_same_thread=False)
        con.row_factory = sqlite3.Row

        journal = str(con.execute("PRAGMA journal_mode=WAL;").fetchone()[0]).lower()
        if journal != "wal" and (os.environ.get("CARBON_SQLITE_ALLOW_NON_WAL") or "").strip() != "1":
            con.close()
            raise RuntimeError(f"sqlite journal_mode is {journal!r}, expected 'wal'")

        con.execute(f"PRAGMA synchronous={_synchronous_level()};")
        con.execute("PRAGMA temp_store=MEMORY;")
        con.execute(f"PRAGMA busy_timeout={max(0, _env_int('CARBON_SQLITE_BUSY_TIMEOUT_MS', timeout_ms))};")
        return con

    def init_schema(self) -> None:
        with self.write_tx() as con:
            con.execute("CREATE TABLE IF NOT EXISTS meta (key TEXT PRIMARY KEY, value TEXT NOT NULL);")
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS ledger_state (
                  id INTEGER PRIMARY KEY CHECK (id = 1),
                  height INTEGER NOT NULL,
                  state_json TEXT NOT NULL,
                  updated_ts_ms INTEGER NOT NULL
                );
                """
            )
            # Rows are only ever inserted.
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS calls (
                  seq INTEGER PRIMARY KEY AUTOINCREMENT,
                  tx_id TEXT NOT NULL,
                  height INTEGER NOT NULL,
                  tx_type TEXT NOT NULL,
                  signer TEXT NOT NULL,
                  ok INTEGER NOT NULL,
                  code TEXT NOT NULL,
                  reason TEXT NOT NULL,
                  envelope_json TEXT NOT NULL,
                  ts_ms INTEGER NOT NULL
                );
                """
            )
            con.execute("CREATE INDEX IF NOT EXISTS idx_calls_signer ON calls(signer);")
            con.execute("CREATE INDEX IF NOT EXISTS idx_calls_tx_id ON calls(tx_id);")

            row = con.execute("SELECT value FROM meta WHERE key='schema_version';").fetchone()
            if row is None:
                con.execute("INSERT INTO meta(key, value) VALUES('schema_version', ?);", (str(self.SCHEMA_VERSION),))
            elif str(row["value"]) != str(self.SCHEMA_VERSION):
                raise RuntimeError(
                    f"sqlite schema_version is {row['value']!r}, this build expects {self.SCHEMA_VERSION}. Refuse to start."
                )

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        con = self._connect()
        try:
            yield con
        finally:
            con.close()

    @staticmethod
    def _begin_immediate(con: sqlite3.Connection) -> None:
        give_up_at = _now_ms() + max(250, _env_int("CARBON_SQLITE_WRITE_DEADLINE_MS", 30_000))
        delay_s = max(1, _env_int("CARBON_SQLITE_WRITE_BACKOFF_BASE_MS", 5)) / 1000.0
        cap_s = max(delay_s, _env_int("CARBON_SQLITE_WRITE_BACKOFF_MAX_MS", 250) / 1000.0)
        while True:
            try:
                con.execute("BEGIN IMMEDIATE;")
                return
            except sqlite3.OperationalError as e:
                if not _is_busy(e) or _now_ms() >= give_up_at:
                    raise
            time.sleep(delay_s * random.uniform(0.5, 1.5))
            delay_s = min(cap_s, delay_s * 2)

    @contextmanager
    def write_tx(self) -> Iterator[sqlite3.Connection]:
        """Write transaction: commit on normal exit, roll back on any exception."""
        with self.connection() as con:
            self._begin_immediate(con)
            try:
                yield con
            except BaseException:
                con.execute("ROLLBACK;")
                raise
            con.execute("COMMIT;")


class SqliteLedgerStore:
    """Ledger snapshot + call log persisted in SQLite.

    This provides:
      - read(): load latest ledger snapshot
      - write(st): overwrite the snapshot atomically
      - commit(st, call): overwrite the snapshot and append one call record in
        a single write transaction
      - calls(): read back the append-only call log

    The authoritative snapshot is a single row.
    """

    def __init__(self, *, db: SqliteDB) -> None:
        self._db = db
        self._db.init_schema()

    def exists(self) -> bool:
        with self._db.connection() as con:
            return con.execute("SELECT 1 FROM ledger_state WHERE id=1;").fetchone() is not None

    def read(self) -> Json:
        with self._db.connection() as con:
            row = con.execute("SELECT state_json FROM ledger_state WHERE id=1;").fetchone()
            if row is None:
                raise FileNotFoundError("sqlite ledger_state is missing")
            st = json.loads(str(row["state_json"]))
            if not isinstance(st, dict):
                raise ValueError("ledger_state is not a JSON object")
            return st

    @staticmethod
    def _upsert_snapshot(con: sqlite3.Connection, st: Json) -> None:
        con.execute(
            """
            INSERT INTO ledger_state(id, height, state_json, updated_ts_ms)
            VALUES(1, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
              height=excluded.height,
              state_json=excluded.state_json,
              updated_ts_ms=excluded.updated_ts_ms;
            """,
            (int(st.get("height", 0)), _canon_json(st), _now_ms()),
        )

    def write(self, st: Json) -> None:
        if not isinstance(st, dict):
            raise ValueError("ledger write expects dict")
        with self._db.write_tx() as con:
            self._upsert_snapshot(con, st)

    def commit(self, st: Optional[Json], call: Json) -> None:
        """Append `call` to the call log; also persist `st` when given.

        Rejected calls still change the snapshot (nonce consumption), so the
        executor passes the state for those too.
        """
        with self._db.write_tx() as con:
            if st is not None:
                self._upsert_snapshot(con, st)
            con.execute(
                """
                INSERT INTO calls(tx_id, height, tx_type, signer, ok, code, reason, envelope_json, ts_ms)
                VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    str(call.get("tx_id") or ""),
                    int(call.get("height", 0)),
                    str(call.get("tx_type") or ""),
                    str(call.get("signer") or ""),
                    1 if call.get("ok") else 0,
                    str(call.get("code") or ""),
                    str(call.get("reason") or ""),
                    _canon_json(call.get("envelope") or {}),
                    int(call.get("ts_ms", 0)),
                ),
            )

    def calls(self, *, signer: Optional[str] = None, limit: int = 100) -> List[Json]:
        lim = max(1, min(10_000, int(limit)))
        with self._db.connection() as con:
            if signer:
                rows = con.execute(
                    "SELECT * FROM calls WHERE signer=? ORDER BY seq ASC LIMIT ?;", (str(signer), lim)
                ).fetchall()
            else:
                rows = con.execute("SELECT * FROM calls ORDER BY seq ASC LIMIT ?;", (lim,)).fetchall()
        return [
            {
                "seq": int(r["seq"]),
                "tx_id": str(r["tx_id"]),
                "height": int(r["height"]),
                "tx_type": str(r["tx_type"]),
                "signer": str(r["signer"]),
                "ok": bool(r["ok"]),
                "code": str(r["code"]),
                "reason": str(r["reason"]),
                "ts_ms": int(r["ts_ms"]),
            }
            for r in rows
        ]
