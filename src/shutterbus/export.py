"""CSV export of event log entries within a trailing time window."""

from __future__ import annotations

import csv
import json
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from shutterbus.kernel.eventlog import EventLog
from shutterbus.ui.render import format_timestamp

DEFAULT_OUTPUT_FILE = "events_export.csv"
CSV_HEADER = ("Process Id", "Timestamp", "Component", "EventType", "Data")
USAGE_LINES = (
    "Usage: shutterbus export <logPath> <window> [outputFile]",
    "Example: shutterbus export events.db 24h events.csv",
)
INVALID_WINDOW_MESSAGE = "Invalid window format. Use <number><h|d|m> (e.g., 24h, 7d, 30m)."

_WINDOW_RE = re.compile(r"(\d+)([hdm])")
_WINDOW_UNITS = {"h": "hours", "d": "days", "m": "minutes"}


def parse_window(text: str) -> Optional[timedelta]:
    """``<positive integer>(h|d|m)`` to a timedelta; ``None`` when malformed."""
    match = _WINDOW_RE.fullmatch(str(text or "").strip())
    if match is None:
        return None
    amount = int(match.group(1))
    if amount <= 0:
        return None
    return timedelta(**{_WINDOW_UNITS[match.group(2)]: amount})


def export_events_to_csv(
    log_path: Path,
    from_time: datetime,
    output_file: Path,
    to_time: Optional[datetime] = None,
) -> int:
    with EventLog(Path(log_path), read_only=True) as log:
        records = log.query(from_time=from_time, to_time=to_time)

    with Path(output_file).open("w", newline="", encoding="utf-8") as fp:
        writer = csv.writer(fp)
        writer.writerow(CSV_HEADER)
        for record in records:
            writer.writerow(
                [
                    record.pid,
                    format_timestamp(record.ts_ms),
                    record.component,
                    record.event_kind,
                    json.dumps(record.payload, ensure_ascii=True, sort_keys=True),
                ]
            )
    return len(records)


def window_start(window: timedelta, now: Optional[datetime] = None) -> datetime:
    return (now or datetime.now(tz=timezone.utc)) - window
