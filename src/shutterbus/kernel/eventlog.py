"""SQLite-backed append-only event log."""

from __future__ import annotations

import json
import os
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from shutterbus.kernel.types import EventRecord, new_id, now_ms

TimeBound = Union[datetime, int, None]


class EventLog:
    """Append-only event storage.

    Writes are serialized with a lock to keep ordering deterministic in tests.
    """

    def __init__(self, db_path: Path, read_only: bool = False) -> None:
        self._db_path = Path(db_path)
        self._lock = threading.Lock()
        if read_only:
            uri = "file:{0}?mode=ro".format(self._db_path.resolve().as_posix())
            self._conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
        else:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        if not read_only:
            self._init_db()

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _init_db(self) -> None:
        cursor = self._conn.cursor()
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS events (
                event_id TEXT PRIMARY KEY,
                ts_ms INTEGER NOT NULL,
                pid INTEGER NOT NULL,
                component TEXT NOT NULL,
                event_kind TEXT NOT NULL,
                payload_json TEXT NOT NULL
            )
            """
        )
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_events_ts ON events (ts_ms)")
        self._conn.commit()

    def append(
        self,
        component: str,
        event_kind: str,
        payload: Any = None,
        ts_ms: Optional[int] = None,
    ) -> EventRecord:
        record = EventRecord(
            event_id=new_id("evt"),
            pid=os.getpid(),
            ts_ms=int(ts_ms if ts_ms is not None else now_ms()),
            component=str(component),
            event_kind=str(event_kind),
            payload=_normalize_payload(event_kind, payload),
        )
        with self._lock:
            self._conn.execute(
                """
                INSERT INTO events (event_id, ts_ms, pid, component, event_kind, payload_json)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    record.event_id,
                    record.ts_ms,
                    record.pid,
                    record.component,
                    record.event_kind,
                    json.dumps(record.payload, ensure_ascii=True, default=str),
                ),
            )
            self._conn.commit()
        return record

    def query(self, from_time: TimeBound = None, to_time: TimeBound = None) -> List[EventRecord]:
        """Events ascending by timestamp, bounds inclusive."""
        clauses: List[str] = []
        params: List[int] = []
        if from_time is not None:
            clauses.append("ts_ms >= ?")
            params.append(_to_ms(from_time))
        if to_time is not None:
            clauses.append("ts_ms <= ?")
            params.append(_to_ms(to_time))
        where = " WHERE " + " AND ".join(clauses) if clauses else ""
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM events{0} ORDER BY ts_ms ASC, rowid ASC".format(where),
                params,
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "EventLog":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> EventRecord:
        return EventRecord(
            event_id=row["event_id"],
            pid=row["pid"],
            ts_ms=row["ts_ms"],
            component=row["component"],
            event_kind=row["event_kind"],
            payload=json.loads(row["payload_json"]),
        )


def _normalize_payload(event_kind: str, payload: Any) -> Dict[str, Any]:
    if payload is None:
        return {}
    if isinstance(payload, dict):
        return dict(payload)
    return {str(event_kind): payload}


def _to_ms(value: Union[datetime, int]) -> int:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    return int(value)
