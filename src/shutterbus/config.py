"""Configuration loading for shutterbus."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

try:  # pragma: no cover - exercised on Python 3.11+
    import tomllib
except ModuleNotFoundError:  # pragma: no cover - fallback for Python 3.9/3.10
    import tomli as tomllib  # type: ignore[no-redef]

from shutterbus.shutter.messages import ShutterTimings

CONFIG_FILE_NAME = "shutterbus.toml"

DEFAULT_MAX_WORKERS = 8
DEFAULT_OPEN_FEEDBACK_DELAY_SEC = 2.45
DEFAULT_CLOSE_FEEDBACK_DELAY_SEC = 1.45
DEFAULT_CONFIRM_TIMEOUT_SEC = 3.0
DEFAULT_QUERY_TIMEOUT_SEC = 5.0
DEFAULT_EVENT_LOG_PATH = "events.db"
DEFAULT_LOGS_ENABLED = True
DEFAULT_LOGS_DIR = "logs"
DEFAULT_LOGS_MAX_FILE_BYTES = 10 * 1024 * 1024
DEFAULT_LOGS_MAX_FILES = 5


class ConfigError(RuntimeError):
    """Raised when a configuration file exists but cannot be parsed."""


@dataclass
class Settings:
    """Resolved settings for one process."""

    base_dir: Path
    max_workers: int = DEFAULT_MAX_WORKERS
    open_feedback_delay: float = DEFAULT_OPEN_FEEDBACK_DELAY_SEC
    close_feedback_delay: float = DEFAULT_CLOSE_FEEDBACK_DELAY_SEC
    confirm_timeout: float = DEFAULT_CONFIRM_TIMEOUT_SEC
    query_timeout: float = DEFAULT_QUERY_TIMEOUT_SEC
    event_log_path: str = DEFAULT_EVENT_LOG_PATH
    logs_enabled: bool = DEFAULT_LOGS_ENABLED
    logs_dir: str = DEFAULT_LOGS_DIR
    logs_max_file_bytes: int = DEFAULT_LOGS_MAX_FILE_BYTES
    logs_max_files: int = DEFAULT_LOGS_MAX_FILES

    @property
    def timings(self) -> ShutterTimings:
        return ShutterTimings(
            open_feedback_delay=self.open_feedback_delay,
            close_feedback_delay=self.close_feedback_delay,
            confirm_timeout=self.confirm_timeout,
        )

    @property
    def event_log_file(self) -> Path:
        return self._resolve(self.event_log_path)

    @property
    def logs_path(self) -> Path:
        return self._resolve(self.logs_dir)

    def _resolve(self, value: str) -> Path:
        path = Path(value).expanduser()
        if path.is_absolute():
            return path
        return self.base_dir / path


def resolve_config_path(config_path: Optional[Path] = None, workspace_dir: Optional[Path] = None) -> Path:
    if config_path is not None:
        return Path(config_path).expanduser().resolve()
    return (workspace_dir or Path.cwd()).resolve() / CONFIG_FILE_NAME


def load_settings(config_path: Optional[Path] = None, workspace_dir: Optional[Path] = None) -> Settings:
    path = resolve_config_path(config_path, workspace_dir)
    base_dir = path.parent
    if not path.is_file():
        return Settings(base_dir=base_dir)
    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError("invalid config file {0}: {1}".format(path, exc)) from exc
    return _parse_settings_data(data, base_dir)


def _section(data: Dict[str, object], name: str) -> Dict[str, object]:
    value = data.get(name)
    return value if isinstance(value, dict) else {}


def _parse_settings_data(data: Dict[str, object], base_dir: Path) -> Settings:
    bus = _section(data, "bus")
    shutter = _section(data, "shutter")
    event_log = _section(data, "event_log")
    logs = _section(data, "logs")
    return Settings(
        base_dir=base_dir,
        max_workers=_safe_positive_int(bus.get("max_workers"), DEFAULT_MAX_WORKERS),
        open_feedback_delay=_safe_positive_float(
            shutter.get("open_feedback_delay"),
            DEFAULT_OPEN_FEEDBACK_DELAY_SEC,
        ),
        close_feedback_delay=_safe_positive_float(
            shutter.get("close_feedback_delay"),
            DEFAULT_CLOSE_FEEDBACK_DELAY_SEC,
        ),
        confirm_timeout=_safe_positive_float(shutter.get("confirm_timeout"), DEFAULT_CONFIRM_TIMEOUT_SEC),
        query_timeout=_safe_positive_float(shutter.get("query_timeout"), DEFAULT_QUERY_TIMEOUT_SEC),
        event_log_path=_safe_text(event_log.get("path"), DEFAULT_EVENT_LOG_PATH),
        logs_enabled=_safe_bool(logs.get("enabled"), DEFAULT_LOGS_ENABLED),
        logs_dir=_safe_text(logs.get("dir"), DEFAULT_LOGS_DIR),
        logs_max_file_bytes=_safe_positive_int(logs.get("max_file_bytes"), DEFAULT_LOGS_MAX_FILE_BYTES),
        logs_max_files=_safe_positive_int(logs.get("max_files"), DEFAULT_LOGS_MAX_FILES),
    )


def _safe_positive_int(value: object, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        converted = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if converted <= 0:
        return default
    return converted


def _safe_positive_float(value: object, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        converted = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    if converted <= 0:
        return default
    return converted


def _safe_bool(value: object, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "on"}:
            return True
        if normalized in {"0", "false", "no", "off"}:
            return False
    return default


def _safe_text(value: object, default: str) -> str:
    text = str(value or "").strip()
    return text or default


def render_default_config() -> str:
    lines = [
        "[bus]",
        "max_workers = {0}".format(DEFAULT_MAX_WORKERS),
        "",
        "[shutter]",
        "open_feedback_delay = {0}".format(DEFAULT_OPEN_FEEDBACK_DELAY_SEC),
        "close_feedback_delay = {0}".format(DEFAULT_CLOSE_FEEDBACK_DELAY_SEC),
        "confirm_timeout = {0}".format(DEFAULT_CONFIRM_TIMEOUT_SEC),
        "query_timeout = {0}".format(DEFAULT_QUERY_TIMEOUT_SEC),
        "",
        "[event_log]",
        'path = "{0}"'.format(DEFAULT_EVENT_LOG_PATH),
        "",
        "[logs]",
        "enabled = {0}".format(str(DEFAULT_LOGS_ENABLED).lower()),
        'dir = "{0}"'.format(DEFAULT_LOGS_DIR),
        "max_file_bytes = {0}".format(DEFAULT_LOGS_MAX_FILE_BYTES),
        "max_files = {0}".format(DEFAULT_LOGS_MAX_FILES),
        "",
    ]
    return "\n".join(lines)


def initialize_config(config_path: Optional[Path] = None, force: bool = False) -> Path:
    path = resolve_config_path(config_path)
    if path.exists() and not force:
        raise ConfigError("config already exists: {0} (use --force to overwrite)".format(path))
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_default_config(), encoding="utf-8")
    return path
