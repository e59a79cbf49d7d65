from __future__ import annotations

import uuid
from collections.abc import Sequence

from lifecycle_report.domain.messages import (
    Attachment,
    HookKind,
    Metadata,
    Stage,
    StepStart,
    StepStop,
    TestScopedMessage,
)
from lifecycle_report.ports.report_backend import (
    AttachmentRef,
    FixtureMutator,
    FixtureResult,
    ReportBackend,
    ScopeResult,
    StepResult,
    TestMutator,
    TestResult,
)

_EXTENSIONS = {
    "text/plain": ".txt",
    "text/csv": ".csv",
    "text/html": ".html",
    "application/json": ".json",
    "application/xml": ".xml",
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "video/webm": ".webm",
}


class UnknownHandleError(KeyError):
    # Raised when a backend call names a handle that is not open.
    pass


class InMemoryReportBackend(ReportBackend):
    """Report backend keeping every node in memory.

    Open nodes live in handle tables until written or stopped. Written tests and
    scopes are appended to ``written_tests`` / ``written_scopes``; every call is
    logged in ``calls`` as ``(operation, handle)`` so callers can check ordering.
    Subclasses persist nodes by overriding the ``_persist_*`` hooks.
    """

    def __init__(self) -> None:
        self._scopes: dict[str, ScopeResult] = {}
        self._tests: dict[str, TestResult] = {}
        self._fixtures: dict[str, FixtureResult] = {}
        self._step_stacks: dict[str, list[StepResult]] = {}
        self.attachments: dict[str, bytes] = {}
        self.written_tests: list[TestResult] = []
        self.written_scopes: list[ScopeResult] = []
        self.calls: list[tuple[str, str]] = []

    def start_scope(self) -> str:
        scope = str(uuid.uuid4())
        self._scopes[scope] = ScopeResult(uuid=scope)
        self.calls.append(("start_scope", scope))
        return scope

    async def write_scope(self, scope: str) -> None:
        result = self._take(self._scopes, scope, "scope")
        self.calls.append(("write_scope", scope))
        await self._persist_scope(result)
        self.written_scopes.append(result)

    def start_test(self, *, name: str, start: int, scopes: Sequence[str]) -> str:
        test = str(uuid.uuid4())
        self._tests[test] = TestResult(uuid=test, name=name, start=start)
        self._step_stacks[test] = []
        for scope in scopes:
            container = self._scopes.get(scope)
            if container is not None:
                container.children.append(test)
        self.calls.append(("start_test", test))
        return test

    def update_test(self, test: str, mutator: TestMutator) -> None:
        mutator(self._get(self._tests, test, "test"))
        self.calls.append(("update_test", test))

    async def stop_test(self, test: str, *, stop: int | None, duration: int | None) -> None:
        result = self._get(self._tests, test, "test")
        _apply_stop(result, stop, duration)
        self.calls.append(("stop_test", test))

    async def write_test(self, test: str) -> None:
        result = self._take(self._tests, test, "test")
        self._step_stacks.pop(test, None)
        self.calls.append(("write_test", test))
        await self._persist_test(result)
        self.written_tests.append(result)

    def start_fixture(self, scope: str | None, kind: HookKind, *, name: str, start: int) -> str | None:
        container = self._scopes.get(scope) if scope is not None else None
        if container is None:
            return None
        fixture = str(uuid.uuid4())
        result = FixtureResult(uuid=fixture, name=name, hook_kind=kind, start=start)
        if kind is HookKind.BEFORE:
            container.befores.append(result)
        else:
            container.afters.append(result)
        self._fixtures[fixture] = result
        self.calls.append(("start_fixture", fixture))
        return fixture

    def update_fixture(self, fixture: str, mutator: FixtureMutator) -> None:
        mutator(self._get(self._fixtures, fixture, "fixture"))
        self.calls.append(("update_fixture", fixture))

    async def stop_fixture(self, fixture: str, *, stop: int | None, duration: int | None) -> None:
        # The fixture record stays referenced by its scope; only the handle is released.
        result = self._take(self._fixtures, fixture, "fixture")
        _apply_stop(result, stop, duration)
        self.calls.append(("stop_fixture", fixture))

    async def apply_messages(self, test: str, messages: Sequence[TestScopedMessage]) -> None:
        result = self._get(self._tests, test, "test")
        stack = self._step_stacks.setdefault(test, [])
        for message in messages:
            if isinstance(message, StepStart):
                step = StepResult(name=message.name, start=message.start)
                (stack[-1].steps if stack else result.steps).append(step)
                stack.append(step)
            elif isinstance(message, StepStop):
                if not stack:
                    continue
                step = stack.pop()
                step.status = message.status
                step.stop = message.stop
                step.stage = Stage.FINISHED
                if message.status_details is not None:
                    step.status_details = message.status_details
            elif isinstance(message, Metadata):
                result.labels.extend(message.labels)
                result.parameters.extend(message.parameters)
            elif isinstance(message, Attachment):
                source = f"{uuid.uuid4()}-attachment{_EXTENSIONS.get(message.content_type, '')}"
                ref = AttachmentRef(name=message.name, source=source, content_type=message.content_type)
                (stack[-1].attachments if stack else result.attachments).append(ref)
                self.attachments[source] = message.content
                await self._persist_attachment(source, message.content)
        self.calls.append(("apply_messages", test))

    def open_test(self, test: str) -> TestResult:
        return self._get(self._tests, test, "test")

    async def _persist_scope(self, result: ScopeResult) -> None:
        return None

    async def _persist_test(self, result: TestResult) -> None:
        return None

    async def _persist_attachment(self, source: str, content: bytes) -> None:
        return None

    @staticmethod
    def _get(table: dict, handle: str, what: str):
        try:
            return table[handle]
        except KeyError:
            raise UnknownHandleError(f"unknown {what} handle: {handle}") from None

    @staticmethod
    def _take(table: dict, handle: str, what: str):
        try:
            return table.pop(handle)
        except KeyError:
            raise UnknownHandleError(f"unknown {what} handle: {handle}") from None


def _apply_stop(result: TestResult | FixtureResult, stop: int | None, duration: int | None) -> None:
    if stop is not None:
        result.stop = stop
    if duration is not None:
        result.duration = duration
    elif result.stop is not None:
        result.duration = max(0, result.stop - result.start)
    if result.stage is Stage.RUNNING:
        result.stage = Stage.FINISHED
