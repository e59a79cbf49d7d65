from __future__ import annotations

import re

from lifecycle_report.domain.logging import LogMessage
from lifecycle_report.domain.messages import (
    HookEnd,
    HookStart,
    LifecycleMessage,
    StepStart,
    StepStop,
    SuiteEnd,
    SuiteStart,
    TestEnd,
    TestInfo,
    TestScopedMessage,
    Status,
    TestStart,
)
from lifecycle_report.kernel.session import Session, pop_or_none, top_or_none
from lifecycle_report.ports.log_sink import LogSink
from lifecycle_report.ports.report_backend import FixtureResult, ReportBackend, TestResult

DEFAULT_AFTER_ALL_PATTERN = re.compile(r"after all", re.IGNORECASE)


class ReplayStateMachine:
    """Converts a session's message log into ordered report backend calls.

    One pass over the log, strictly in append order. Every backend coroutine is
    awaited before the next message is consumed, so calls for one session never
    overlap. A message that starts a node while a node of the same or an outer
    kind is open first finalizes the open node ("finalize before open").

    Backend exceptions propagate unchanged and abort the rest of the pass.
    """

    def __init__(
        self,
        backend: ReportBackend,
        *,
        log_sink: LogSink | None = None,
        after_all_pattern: re.Pattern[str] = DEFAULT_AFTER_ALL_PATTERN,
    ) -> None:
        self._backend = backend
        self._log_sink = log_sink
        self._after_all_pattern = after_all_pattern

    async def replay(self, session: Session) -> None:
        messages = session.messages
        total = len(messages)
        for idx, message in enumerate(messages):
            await self._dispatch(session, message, is_last=idx == total - 1)

        # End-of-log drain: nothing stays open once the log is consumed.
        while session.fixtures:
            fixture = session.fixtures.pop()
            await self._backend.stop_fixture(fixture, stop=None, duration=None)
            self._log("debug", "fixture stopped without hook_end", context_id=session.context_id)
        if session.current_test is not None:
            await self._write_last_test(session, reason="end_of_log")
        while session.scopes:
            await self._close_scope(session)

        self._log(
            "info",
            "replay finished",
            context_id=session.context_id,
            messages=total,
        )

    async def _dispatch(self, session: Session, message: LifecycleMessage, *, is_last: bool) -> None:
        if isinstance(message, SuiteStart):
            await self._start_suite(session)
        elif isinstance(message, SuiteEnd):
            await self._end_suite(session, write=is_last)
        elif isinstance(message, TestStart):
            await self._start_test(session, message)
        elif isinstance(message, TestInfo):
            self._add_test_info(session, message)
        elif isinstance(message, TestEnd):
            await self._end_test(session, message, write=is_last)
        elif isinstance(message, HookStart):
            await self._start_hook(session, message)
        elif isinstance(message, HookEnd):
            await self._end_hook(session, message)
        else:
            await self._apply_to_current_test(session, message)

    async def _open_scope(self, session: Session) -> None:
        session.scopes.append(self._backend.start_scope())

    async def _close_scope(self, session: Session) -> None:
        scope = pop_or_none(session.scopes)
        if scope is not None:
            await self._backend.write_scope(scope)

    async def _write_last_test(self, session: Session, *, reason: str) -> None:
        # Finalizing closes the test's own scope before the test itself is written.
        test = session.current_test
        if test is None:
            return
        await self._close_scope(session)
        await self._backend.write_test(test)
        if test in session.executables:
            # A test finalized before its test_end never gets popped by one.
            session.executables.remove(test)
            self._log("debug", "test finalized without test_end", context_id=session.context_id, reason=reason)
        session.current_test = None
        session.open_steps = 0

    async def _start_suite(self, session: Session) -> None:
        if session.current_test is not None:
            await self._write_last_test(session, reason="suite_start")
        await self._open_scope(session)

    async def _end_suite(self, session: Session, *, write: bool) -> None:
        await self._close_scope(session)
        if write:
            await self._write_last_test(session, reason="last_message")

    async def _start_test(self, session: Session, message: TestStart) -> None:
        if session.current_test is not None:
            await self._write_last_test(session, reason="test_start")
        await self._open_scope(session)

        test = self._backend.start_test(name=message.name, start=message.start, scopes=tuple(session.scopes))
        session.executables.append(test)
        session.current_test = test
        session.open_steps = 0

    def _add_test_info(self, session: Session, message: TestInfo) -> None:
        test = top_or_none(session.executables)
        if test is None:
            return

        def _mutate(result: TestResult) -> None:
            result.full_name = message.full_name

        self._backend.update_test(test, _mutate)

    async def _end_test(self, session: Session, message: TestEnd, *, write: bool) -> None:
        test = pop_or_none(session.executables)
        if test is None:
            return

        await self._close_open_steps(session, message.status, message.stop)

        def _mutate(result: TestResult) -> None:
            result.status = message.status
            if message.stage is not None:
                result.stage = message.stage
            if message.status_details is not None:
                result.status_details = message.status_details

        self._backend.update_test(test, _mutate)
        await self._backend.stop_test(test, stop=message.stop, duration=message.duration)

        if write:
            await self._write_last_test(session, reason="last_message")

    async def _close_open_steps(self, session: Session, status: Status, stop: int) -> None:
        # Steps left open are closed with the test's terminal status and stop time.
        test = session.current_test
        if test is None:
            return
        while session.open_steps > 0:
            await self._backend.apply_messages(test, [StepStop(status=status, stop=stop)])
            session.open_steps -= 1
            self._log("debug", "step force-closed", context_id=session.context_id, status=status.value)

    async def _start_hook(self, session: Session, message: HookStart) -> None:
        if self._after_all_pattern.search(message.name) and session.current_test is not None:
            await self._write_last_test(session, reason="after_all_hook")

        fixture = self._backend.start_fixture(
            top_or_none(session.scopes),
            message.hook_kind,
            name=message.name,
            start=message.start,
        )
        if fixture is not None:
            session.fixtures.append(fixture)
        else:
            self._log("debug", "fixture declined by backend", context_id=session.context_id, name=message.name)

    async def _end_hook(self, session: Session, message: HookEnd) -> None:
        fixture = pop_or_none(session.fixtures)
        if fixture is None:
            return

        def _mutate(result: FixtureResult) -> None:
            result.status = message.status
            if message.status_details is not None:
                result.status_details = message.status_details

        self._backend.update_fixture(fixture, _mutate)
        await self._backend.stop_fixture(fixture, stop=message.stop, duration=message.duration)

    async def _apply_to_current_test(self, session: Session, message: TestScopedMessage) -> None:
        test = session.current_test
        if test is None:
            self._log(
                "debug",
                "message dropped without open test",
                context_id=session.context_id,
                kind=message.kind.value,
            )
            return
        if isinstance(message, StepStart):
            session.open_steps += 1
        elif isinstance(message, StepStop):
            session.open_steps = max(0, session.open_steps - 1)
        await self._backend.apply_messages(test, [message])

    def _log(self, level: str, text: str, **fields: object) -> None:
        if self._log_sink is None:
            return
        self._log_sink.emit(LogMessage(level=level, message=text, fields=dict(fields)))
