from __future__ import annotations

from typing import Protocol, runtime_checkable

from lifecycle_report.domain.logging import LogMessage


# LogSink is the structured logging port used by replay and registry.
@runtime_checkable
class LogSink(Protocol):
    def emit(self, message: LogMessage) -> None:
        """Consume one LogMessage."""
        raise NotImplementedError("LogSink is a port; use a concrete adapter.")
