"""Structured debug log writer with size-based rotation."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from shutterbus.kernel.types import Message, message_payload, now_ms


class DebugLogWriter:
    """Best-effort JSONL debug log writer with rotation.

    Write failures are counted and reported by ``status()``; they never raise.
    """

    def __init__(
        self,
        *,
        logs_dir: Path,
        enabled: bool,
        max_file_bytes: int = 10 * 1024 * 1024,
        max_files: int = 5,
    ) -> None:
        self._logs_dir = Path(logs_dir)
        self._enabled = bool(enabled)
        self._max_file_bytes = max(1, int(max_file_bytes or 0))
        self._max_files = max(1, int(max_files or 0))
        self._write_errors = 0
        self._lock = threading.Lock()
        if self._enabled:
            try:
                self._logs_dir.mkdir(parents=True, exist_ok=True)
            except Exception:
                self._write_errors += 1

    @classmethod
    def disabled(cls) -> "DebugLogWriter":
        return cls(logs_dir=Path("."), enabled=False)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def active_log_file(self) -> Path:
        return self._logs_dir / "debug.log.jsonl"

    def write_message(
        self,
        message: Message,
        *,
        component: str,
        identity: Optional[str] = None,
        level: str = "info",
    ) -> None:
        self.write_entry(
            level=level,
            component=component,
            kind="event",
            identity=identity,
            event_kind=message.kind.value,
            message="event:{0}".format(message.kind.value),
            data=message_payload(message),
        )

    def write_entry(
        self,
        *,
        level: str,
        component: str,
        kind: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        identity: Optional[str] = None,
        event_kind: Optional[str] = None,
        ts_ms: Optional[int] = None,
    ) -> None:
        if not self._enabled:
            return

        record = {
            "ts_ms": int(ts_ms if ts_ms is not None else now_ms()),
            "level": str(level or "info"),
            "component": str(component or "bus"),
            "kind": str(kind or "diagnostic"),
            "identity": str(identity or ""),
            "event_kind": str(event_kind or ""),
            "message": str(message or ""),
            "data": dict(data or {}),
        }

        with self._lock:
            try:
                line = json.dumps(
                    record,
                    ensure_ascii=True,
                    separators=(",", ":"),
                    default=str,
                )
                payload = (line + "\n").encode("utf-8")
                self._logs_dir.mkdir(parents=True, exist_ok=True)
                self._rotate_if_needed_locked(len(payload))
                with self.active_log_file.open("ab") as fp:
                    fp.write(payload)
            except Exception:
                self._write_errors += 1

    def status(self) -> Dict[str, Any]:
        with self._lock:
            if not self._enabled:
                return {
                    "logs_enabled": False,
                    "logs_dir": str(self._logs_dir),
                    "logs_active_file": str(self.active_log_file),
                    "logs_active_size_bytes": 0,
                    "logs_rotated_files": [],
                    "logs_write_errors": self._write_errors,
                }

            active = self.active_log_file
            active_size = active.stat().st_size if active.exists() else 0
            rotated = []
            for index in range(1, self._max_files + 1):
                path = self._rotated_file(index)
                if path.exists():
                    rotated.append(str(path))

            return {
                "logs_enabled": True,
                "logs_dir": str(self._logs_dir),
                "logs_active_file": str(active),
                "logs_active_size_bytes": int(active_size),
                "logs_max_file_bytes": self._max_file_bytes,
                "logs_max_files": self._max_files,
                "logs_rotated_files": rotated,
                "logs_write_errors": int(self._write_errors),
            }

    def _rotate_if_needed_locked(self, incoming_size: int) -> None:
        current_size = 0
        if self.active_log_file.exists():
            current_size = int(self.active_log_file.stat().st_size)
        if current_size + int(incoming_size) <= self._max_file_bytes:
            return
        self._rotate_locked()

    def _rotate_locked(self) -> None:
        oldest = self._rotated_file(self._max_files)
        oldest.unlink(missing_ok=True)

        for index in range(self._max_files - 1, 0, -1):
            src = self._rotated_file(index)
            dst = self._rotated_file(index + 1)
            if not src.exists():
                continue
            src.replace(dst)

        if self.active_log_file.exists():
            self.active_log_file.replace(self._rotated_file(1))

    def _rotated_file(self, index: int) -> Path:
        return Path("{0}.{1}".format(self.active_log_file, index))
