from __future__ import annotations

import json

from shutterbus.kernel.debug_log import DebugLogWriter
from shutterbus.shutter.messages import SensorChanged, ShutterState


def test_debug_log_rotation_respects_size_and_max_files(tmp_path):
    writer = DebugLogWriter(
        logs_dir=tmp_path / "logs",
        enabled=True,
        max_file_bytes=256,
        max_files=2,
    )

    for idx in range(40):
        writer.write_entry(
            level="info",
            component="bus",
            kind="diagnostic",
            identity="001",
            message="rotation-{0}".format(idx),
            data={"blob": "x" * 80, "idx": idx},
        )

    status = writer.status()
    assert status["logs_enabled"] is True
    assert status["logs_active_size_bytes"] > 0
    assert status["logs_max_file_bytes"] == 256
    assert status["logs_max_files"] == 2
    assert len(status["logs_rotated_files"]) <= 2
    assert not (tmp_path / "logs" / "debug.log.jsonl.3").exists()


def test_debug_log_fail_open_tracks_write_errors(tmp_path):
    blocked_path = tmp_path / "not-a-dir"
    blocked_path.write_text("file", encoding="utf-8")
    writer = DebugLogWriter(
        logs_dir=blocked_path,
        enabled=True,
        max_file_bytes=1024,
        max_files=2,
    )

    writer.write_entry(
        level="info",
        component="bus",
        kind="diagnostic",
        message="should not raise",
    )

    status = writer.status()
    assert status["logs_write_errors"] >= 1


def test_debug_log_writes_message_entries(tmp_path):
    writer = DebugLogWriter(logs_dir=tmp_path / "logs", enabled=True)

    writer.write_message(
        SensorChanged(shutter_id="001", actual_state=ShutterState.OPEN),
        component="listener",
        identity="001",
    )

    entry = json.loads(writer.active_log_file.read_text(encoding="utf-8").strip())
    assert entry["kind"] == "event"
    assert entry["event_kind"] == "SensorChanged"
    assert entry["identity"] == "001"
    assert entry["data"] == {"shutter_id": "001", "actual_state": "Open"}


def test_disabled_writer_creates_nothing(tmp_path):
    writer = DebugLogWriter(logs_dir=tmp_path / "logs", enabled=False)
    writer.write_entry(level="info", component="bus", kind="diagnostic", message="ignored")

    assert not (tmp_path / "logs").exists()
    assert writer.status()["logs_enabled"] is False
