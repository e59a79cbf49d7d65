from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from lifecycle_report.domain.messages import LifecycleMessage
from lifecycle_report.usecases.codec import EventDecodeError, decode_event


@dataclass(frozen=True, slots=True)
class FileEventSource:
    # Streams (context id, message) pairs from a JSONL event log in file order.
    path: Path

    def read(self) -> Iterable[tuple[str | None, LifecycleMessage]]:
        with self.path.open("r", encoding="utf-8") as handle:
            for line_no, line in enumerate(handle, start=1):
                text = line.strip()
                if not text:
                    continue
                try:
                    payload = json.loads(text)
                except json.JSONDecodeError as exc:
                    raise EventDecodeError(f"{self.path}:{line_no}: not valid JSON") from exc
                try:
                    yield decode_event(payload)
                except EventDecodeError as exc:
                    raise EventDecodeError(f"{self.path}:{line_no}: {exc}") from exc
