from __future__ import annotations

import re
from collections.abc import Mapping
from types import MappingProxyType

from lifecycle_report.domain.logging import LogMessage
from lifecycle_report.domain.messages import LifecycleMessage
from lifecycle_report.kernel.replay import DEFAULT_AFTER_ALL_PATTERN, ReplayStateMachine
from lifecycle_report.kernel.session import Session
from lifecycle_report.ports.log_sink import LogSink
from lifecycle_report.ports.report_backend import ReportBackend

DEFAULT_CONTEXT_ID = "0-0"


class SessionRegistry:
    """Maps execution-context ids to sessions sharing one report backend.

    Sessions are created lazily on first use. ``drain_all`` replays them one at a
    time, so backend calls of different sessions are never interleaved.
    """

    def __init__(
        self,
        backend: ReportBackend,
        *,
        log_sink: LogSink | None = None,
        default_context_id: str = DEFAULT_CONTEXT_ID,
        after_all_pattern: re.Pattern[str] = DEFAULT_AFTER_ALL_PATTERN,
    ) -> None:
        if not default_context_id:
            raise ValueError("default_context_id must be a non-empty string")
        self._backend = backend
        self._log_sink = log_sink
        self._default_context_id = default_context_id
        self._machine = ReplayStateMachine(backend, log_sink=log_sink, after_all_pattern=after_all_pattern)
        self._sessions: dict[str, Session] = {}
        self._draining = False

    @property
    def default_context_id(self) -> str:
        return self._default_context_id

    @property
    def sessions(self) -> Mapping[str, Session]:
        return MappingProxyType(self._sessions)

    @property
    def is_synchronised(self) -> bool:
        # False while drain_all is replaying sessions.
        return not self._draining

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, context_id: object) -> bool:
        return context_id in self._sessions

    def get_or_create(self, context_id: str | None = None) -> Session:
        key = context_id or self._default_context_id
        session = self._sessions.get(key)
        if session is None:
            session = Session(context_id=key)
            self._sessions[key] = session
        return session

    def push_message(self, context_id: str | None, message: LifecycleMessage) -> None:
        self.get_or_create(context_id).push(message)

    async def drain_all(self) -> None:
        # Sessions replay one after another; backend calls of two sessions never interleave.
        self._draining = True
        try:
            for context_id in list(self._sessions):
                session = self._sessions[context_id]
                await self._machine.replay(session)
                del self._sessions[context_id]
                if self._log_sink is not None:
                    self._log_sink.emit(
                        LogMessage(
                            level="info",
                            message="session drained",
                            fields={"context_id": context_id, "messages": len(session.messages)},
                        )
                    )
        finally:
            self._draining = False
