"""Append-only SQLite log: one row per completed roundtable session."""

import json
import logging
import sqlite3
import threading
from pathlib import Path

from roundtable.models import DiscussionRecord, SessionResult

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS roundtable_discussions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL UNIQUE,
    symbol TEXT NOT NULL,
    depth TEXT NOT NULL,
    round1_json TEXT NOT NULL,
    round2_json TEXT,
    decision_json TEXT NOT NULL,
    consensus_level TEXT NOT NULL,
    duration_ms INTEGER NOT NULL,
    action_taken TEXT NOT NULL,
    timings_json TEXT,
    created_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%d %H:%M:%f', 'now'))
);
CREATE INDEX IF NOT EXISTS idx_discussions_symbol_created
    ON roundtable_discussions(symbol, created_at);
"""

_COLUMNS = (
    "session_id, symbol, depth, round1_json, round2_json, decision_json, "
    "consensus_level, duration_ms, action_taken, timings_json"
)


def _timing_to_dict(timing) -> dict:
    return {
        "role": timing.role,
        "round": timing.round,
        "durationMs": timing.duration_ms,
        "status": timing.status,
    }


def record_from_result(result: SessionResult) -> DiscussionRecord:
    """Serialize a SessionResult into the row shape stored in the log."""
    return DiscussionRecord(
        session_id=result.session_id,
        symbol=result.symbol,
        depth=result.depth,
        round1_json=json.dumps([o.to_wire() for o in result.round1], ensure_ascii=False),
        round2_json=(
            json.dumps([r.to_wire() for r in result.round2], ensure_ascii=False)
            if result.round2 is not None
            else None
        ),
        decision_json=json.dumps(result.decision.to_wire(), ensure_ascii=False),
        consensus_level=result.consensus_level,
        duration_ms=result.total_duration_ms,
        action_taken=result.decision.action.value,
        timings_json=json.dumps([_timing_to_dict(t) for t in result.timings]),
    )


def _row_to_record(row: sqlite3.Row) -> DiscussionRecord:
    return DiscussionRecord(
        session_id=row["session_id"],
        symbol=row["symbol"],
        depth=row["depth"],
        round1_json=row["round1_json"],
        round2_json=row["round2_json"],
        decision_json=row["decision_json"],
        consensus_level=row["consensus_level"],
        duration_ms=row["duration_ms"],
        action_taken=row["action_taken"],
        timings_json=row["timings_json"],
        created_at=row["created_at"],
    )


class DiscussionLog:
    """Rows are keyed by session id and never updated in place.

    Safe to call from a worker thread; one lock serializes use of the connection.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def insert(self, record: DiscussionRecord) -> None:
        """Append one row.

        Raises:
            sqlite3.IntegrityError: session id already logged.
        """
        with self._lock, self._conn:
            self._conn.execute(
                f"INSERT INTO roundtable_discussions ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.session_id,
                    record.symbol,
                    record.depth,
                    record.round1_json,
                    record.round2_json,
                    record.decision_json,
                    record.consensus_level,
                    record.duration_ms,
                    record.action_taken,
                    record.timings_json,
                ),
            )
        logger.debug("Discussion %s logged", record.session_id)

    def append_result(self, result: SessionResult) -> DiscussionRecord:
        record = record_from_result(result)
        self.insert(record)
        return record

    def get(self, session_id: str) -> DiscussionRecord | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM roundtable_discussions WHERE session_id = ?", (session_id,)
            ).fetchone()
        return _row_to_record(row) if row else None

    def recent(self, symbol: str, limit: int = 5) -> list[DiscussionRecord]:
        """Newest first."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM roundtable_discussions WHERE symbol = ? ORDER BY created_at DESC, id DESC LIMIT ?",
                (symbol, limit),
            ).fetchall()
        return [_row_to_record(r) for r in rows]

    def count(self) -> int:
        with self._lock:
            return self._conn.execute("SELECT COUNT(*) FROM roundtable_discussions").fetchone()[0]
