"""Presentation helpers for shutterbus CLI output."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, TextIO

from rich.console import Console
from rich.text import Text

_LEVEL_STYLES = {
    "info": "cyan",
    "warn": "yellow",
    "error": "bold red",
    "success": "green",
}


def render_notice(level: str, text: str) -> str:
    prefix_map = {
        "info": "Info",
        "warn": "Warning",
        "error": "Error",
        "success": "Success",
    }
    prefix = prefix_map.get(level, "Info")
    return "{0}: {1}".format(prefix, text)


def format_timestamp(ts_ms: int) -> str:
    """``yyyy-MM-dd HH:mm:ss.fff`` in UTC."""
    moment = datetime.fromtimestamp(ts_ms / 1000.0, tz=timezone.utc)
    return "{0}.{1:03d}".format(moment.strftime("%Y-%m-%d %H:%M:%S"), moment.microsecond // 1000)


def _is_tty(stream: TextIO, forced: Optional[bool]) -> bool:
    if forced is not None:
        return forced
    isatty = getattr(stream, "isatty", None)
    if callable(isatty):
        try:
            return bool(isatty())
        except Exception:
            return False
    return False


def render_step(
    stream: TextIO,
    source: str,
    text: str,
    level: str = "info",
    ts_ms: Optional[int] = None,
    is_tty: Optional[bool] = None,
) -> None:
    moment = ts_ms if ts_ms is not None else int(datetime.now(tz=timezone.utc).timestamp() * 1000)
    stamp = format_timestamp(moment)

    if _is_tty(stream, is_tty):
        console = Console(file=stream, highlight=False, soft_wrap=True)
        line = Text()
        line.append("[{0}] ".format(stamp), style="dim")
        line.append("[{0}] ".format(source), style=_LEVEL_STYLES.get(level, "cyan"))
        line.append(text)
        console.print(line)
        return

    stream.write("[{0}] [{1}] {2}\n".format(stamp, source, text))
    stream.flush()
