from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import TextIO

from lifecycle_report.domain.logging import LOG_LEVELS, LogMessage
from lifecycle_report.ports.log_sink import LogSink


class StdoutLogSink(LogSink):
    # Replay diagnostics as JSON lines on stdout.
    def emit(self, message: LogMessage) -> None:
        print(_render(message))


class JsonlLogSink(LogSink):
    # Appends one rendered record per line to a log file kept open until close().
    def __init__(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        self._path = path
        self._stream: TextIO = path.open("a", encoding="utf-8")

    @property
    def path(self) -> Path:
        return self._path

    def emit(self, message: LogMessage) -> None:
        print(_render(message), file=self._stream, flush=True)

    def close(self) -> None:
        if not self._stream.closed:
            self._stream.close()


class LevelFilterLogSink(LogSink):
    # Forwards messages at or above min_level to the wrapped sink.
    def __init__(self, inner: LogSink, *, min_level: str = "info") -> None:
        if min_level not in LOG_LEVELS:
            raise ValueError(f"min_level must be one of {LOG_LEVELS}")
        self._inner = inner
        self._threshold = LOG_LEVELS.index(min_level)

    def emit(self, message: LogMessage) -> None:
        if LOG_LEVELS.index(message.level) >= self._threshold:
            self._inner.emit(message)

    def close(self) -> None:
        close = getattr(self._inner, "close", None)
        if close is not None:
            close()


def build_log_sink(kind: str, *, path: str | None = None, level: str = "info") -> LogSink | None:
    # Maps logging config onto a sink; "none" disables logging entirely.
    if kind == "none":
        return None
    if kind == "stdout":
        return LevelFilterLogSink(StdoutLogSink(), min_level=level)
    if kind == "jsonl":
        if not path:
            raise ValueError("logging.path must be a non-empty string for the jsonl sink")
        return LevelFilterLogSink(JsonlLogSink(Path(path)), min_level=level)
    raise ValueError(f"unknown log sink kind: {kind}")


def _render(message: LogMessage) -> str:
    # Field values that are not JSON-native (enums, paths) are rendered with str().
    record = {
        "level": message.level,
        "message": message.message,
        "timestamp": _format_timestamp(message.timestamp),
        "fields": message.fields,
    }
    return json.dumps(record, separators=(",", ":"), ensure_ascii=False, default=str)


def _format_timestamp(value: datetime) -> str:
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")
