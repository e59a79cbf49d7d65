from __future__ import annotations

import re
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import PurePath

from lifecycle_report.domain.messages import (
    Attachment,
    HookEnd,
    HookKind,
    HookStart,
    Label,
    LabelName,
    LifecycleMessage,
    Metadata,
    Parameter,
    Stage,
    Status,
    StatusDetails,
    StepStart,
    StepStop,
    SuiteEnd,
    SuiteStart,
    TestEnd,
    TestInfo,
    TestStart,
)
from lifecycle_report.kernel.registry import SessionRegistry
from lifecycle_report.kernel.session import Session

_BEFORE_HOOK = re.compile(r"before", re.IGNORECASE)
DEFAULT_LANGUAGE = "python"
DEFAULT_FRAMEWORK = "lifecycle-report"


def now_ms() -> int:
    return int(datetime.now(tz=UTC).timestamp() * 1000)


class LifecycleRecorder:
    """Producer facade that turns framework callbacks into lifecycle messages.

    Messages go to the session of the active execution context (see
    ``use_context``). Where a framework reports an outcome without the matching
    start (a failing test that never started, a hook failing outside any test)
    the recorder consults the session's pending predicates and synthesizes the
    missing start so the replay machine always has a node to attach to.
    """

    def __init__(
        self,
        registry: SessionRegistry,
        *,
        clock: Callable[[], int] = now_ms,
        language: str = DEFAULT_LANGUAGE,
        framework: str = DEFAULT_FRAMEWORK,
    ) -> None:
        self._registry = registry
        self._clock = clock
        self._language = language
        self._framework = framework
        self._context_id: str | None = None
        self._suite_names: dict[str, list[str]] = {}
        self._packages: dict[str, str] = {}

    @property
    def context_id(self) -> str:
        return self._context_id or self._registry.default_context_id

    @property
    def session(self) -> Session:
        return self._registry.get_or_create(self.context_id)

    def use_context(self, context_id: str | None) -> None:
        # Switches the execution context subsequent calls record into.
        self._context_id = context_id

    def suite_labels(self) -> tuple[Label, ...]:
        # parentSuite / suite / subSuite derived from the open suite names.
        names = self._suite_names.get(self.context_id, [])
        if not names:
            return ()
        labels = [Label(LabelName.PARENT_SUITE.value, names[0])]
        if len(names) > 1:
            labels.append(Label(LabelName.SUITE.value, names[1]))
        if len(names) > 2:
            labels.append(Label(LabelName.SUB_SUITE.value, " > ".join(names[2:])))
        return tuple(labels)

    def start_suite(self, name: str, *, feature: bool = False) -> None:
        self._suite_names.setdefault(self.context_id, []).append(name)
        self._push(SuiteStart(name=name, is_feature=feature))

    def end_suite(self) -> None:
        self._push(SuiteEnd())
        names = self._suite_names.get(self.context_id)
        if names:
            names.pop()

    def start_test(self, name: str, *, start: int | None = None) -> None:
        self._push(TestStart(name=name, start=self._time(start)))
        labels = list(self.test_labels())
        feature = self.session.current_feature
        if feature is not None:
            labels.append(Label(LabelName.FEATURE.value, feature))
        self._push(Metadata(labels=tuple(labels)))

    def test_labels(self) -> tuple[Label, ...]:
        # Labels every test started in the active context carries.
        labels = list(self.suite_labels())
        package = self._packages.get(self.context_id)
        if package is not None:
            labels.append(Label(LabelName.PACKAGE.value, package))
        labels.append(Label(LabelName.LANGUAGE.value, self._language))
        labels.append(Label(LabelName.FRAMEWORK.value, self._framework))
        labels.append(Label(LabelName.THREAD.value, self.context_id))
        return tuple(labels)

    def add_test_info(self, full_name: str, *, file: str | None = None) -> None:
        self._push(TestInfo(full_name=full_name))
        if not file:
            return
        # The test file names the package of this and every later test in the context.
        package = _package_name(file)
        self._packages[self.context_id] = package
        if self.session.has_pending_test:
            self._push(Metadata(labels=(Label(LabelName.PACKAGE.value, package),)))

    def add_labels(self, *labels: Label) -> None:
        if labels:
            self._push(Metadata(labels=tuple(labels)))

    def add_parameters(self, *parameters: Parameter) -> None:
        if parameters:
            self._push(Metadata(parameters=tuple(parameters)))

    def end_test(
        self,
        status: Status,
        *,
        stage: Stage | None = Stage.FINISHED,
        stop: int | None = None,
        duration: int | None = None,
        details: StatusDetails | None = None,
    ) -> None:
        self._push(
            TestEnd(
                status=status,
                stop=self._time(stop),
                stage=stage,
                duration=duration,
                status_details=details,
            )
        )

    def pass_test(self, *, stop: int | None = None, duration: int | None = None) -> None:
        self.end_test(Status.PASSED, stop=stop, duration=duration)

    def fail_test(
        self,
        name: str,
        *,
        status: Status = Status.FAILED,
        details: StatusDetails | None = None,
        start: int | None = None,
        stop: int | None = None,
        duration: int | None = None,
    ) -> None:
        # A failure reported before its test started gets a synthesized start.
        if not self.session.has_pending_test:
            self.start_test(name, start=start)
        self.end_test(status, stop=stop, duration=duration, details=details)

    def skip_test(self, name: str | None = None, *, start: int | None = None) -> None:
        if not self.session.has_pending_test:
            if name is None:
                raise ValueError("skip_test needs a test name when no test is pending")
            self.start_test(name, start=start)
        self.end_test(Status.SKIPPED, stage=Stage.PENDING)

    def mark_retried(self) -> None:
        self._push(Metadata(labels=(Label(LabelName.TAG.value, "retried"),)))

    def start_step(self, name: str, *, start: int | None = None) -> None:
        self._push(StepStart(name=name, start=self._time(start)))

    def end_step(
        self,
        status: Status = Status.PASSED,
        *,
        stop: int | None = None,
        details: StatusDetails | None = None,
    ) -> None:
        self._push(StepStop(status=status, stop=self._time(stop), status_details=details))

    def start_hook(self, name: str, *, kind: HookKind | None = None, start: int | None = None) -> bool:
        # Hooks outside any suite are not reported.
        if not self.session.has_pending_suite:
            return False
        self._push(HookStart(name=name, hook_kind=kind or _hook_kind(name), start=self._time(start)))
        return True

    def end_hook(
        self,
        name: str,
        *,
        error: StatusDetails | None = None,
        kind: HookKind | None = None,
        start: int | None = None,
        stop: int | None = None,
        duration: int | None = None,
    ) -> bool:
        session = self.session
        if not session.has_pending_suite:
            return False
        hook_kind = kind or _hook_kind(name)
        stop_time = self._time(stop)

        if error is not None and not session.has_pending_test and not session.has_pending_hook:
            # Failing hook with nothing open: report it as a broken test wrapping the fixture.
            start_time = self._time(start)
            self.start_test(name, start=start_time)
            self._push(HookStart(name=name, hook_kind=hook_kind, start=start_time))
            self._push(HookEnd(status=Status.BROKEN, stop=stop_time, duration=duration, status_details=error))
            self.end_test(Status.BROKEN, stop=stop_time, duration=duration)
            return True

        if error is not None and not session.has_pending_hook:
            self._push(HookStart(name=name, hook_kind=hook_kind, start=self._time(start)))

        self._push(
            HookEnd(
                status=Status.BROKEN if error is not None else Status.PASSED,
                stop=stop_time,
                duration=duration,
                status_details=error,
            )
        )
        return True

    def attach(self, name: str, content: bytes | str, content_type: str = "text/plain") -> None:
        data = content.encode("utf-8") if isinstance(content, str) else content
        self._push(Attachment(name=name, content=data, content_type=content_type))

    def _push(self, message: LifecycleMessage) -> None:
        self._registry.push_message(self.context_id, message)

    def _time(self, value: int | None) -> int:
        return self._clock() if value is None else value


def _hook_kind(name: str) -> HookKind:
    return HookKind.BEFORE if _BEFORE_HOOK.search(name) else HookKind.AFTER


def _package_name(file: str) -> str:
    path = PurePath(file)
    return ".".join(part for part in path.with_suffix("").parts if part != path.anchor)
