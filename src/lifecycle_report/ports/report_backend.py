from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from lifecycle_report.domain.messages import (
    HookKind,
    Label,
    Parameter,
    Stage,
    Status,
    StatusDetails,
    TestScopedMessage,
)

# Result records are the mutable view a backend hands to update_test/update_fixture mutators.


@dataclass(slots=True)
class AttachmentRef:
    name: str
    source: str
    content_type: str


@dataclass(slots=True)
class StepResult:
    name: str
    start: int
    stop: int | None = None
    status: Status | None = None
    status_details: StatusDetails | None = None
    stage: Stage = Stage.RUNNING
    steps: list[StepResult] = field(default_factory=list)
    attachments: list[AttachmentRef] = field(default_factory=list)


@dataclass(slots=True)
class TestResult:
    __test__ = False
    uuid: str
    name: str
    start: int
    full_name: str | None = None
    stop: int | None = None
    duration: int | None = None
    status: Status | None = None
    status_details: StatusDetails | None = None
    stage: Stage = Stage.RUNNING
    labels: list[Label] = field(default_factory=list)
    parameters: list[Parameter] = field(default_factory=list)
    steps: list[StepResult] = field(default_factory=list)
    attachments: list[AttachmentRef] = field(default_factory=list)


@dataclass(slots=True)
class FixtureResult:
    uuid: str
    name: str
    hook_kind: HookKind
    start: int
    stop: int | None = None
    duration: int | None = None
    status: Status | None = None
    status_details: StatusDetails | None = None
    stage: Stage = Stage.RUNNING


@dataclass(slots=True)
class ScopeResult:
    uuid: str
    children: list[str] = field(default_factory=list)
    befores: list[FixtureResult] = field(default_factory=list)
    afters: list[FixtureResult] = field(default_factory=list)


TestMutator = Callable[[TestResult], None]
FixtureMutator = Callable[[FixtureResult], None]


# ReportBackend persists the report tree; the replay machine only sequences calls against it.
# Callers never issue concurrent or out-of-order calls for one handle.
@runtime_checkable
class ReportBackend(Protocol):
    def start_scope(self) -> str:
        """Open a grouping scope and return its handle."""
        raise NotImplementedError("ReportBackend is a port; use a concrete adapter.")

    async def write_scope(self, scope: str) -> None:
        """Persist the scope and release its handle."""
        raise NotImplementedError("ReportBackend is a port; use a concrete adapter.")

    def start_test(self, *, name: str, start: int, scopes: Sequence[str]) -> str:
        """Open a test linked to every scope in the given path."""
        raise NotImplementedError("ReportBackend is a port; use a concrete adapter.")

    def update_test(self, test: str, mutator: TestMutator) -> None:
        """Apply an in-place change to an open test."""
        raise NotImplementedError("ReportBackend is a port; use a concrete adapter.")

    async def stop_test(self, test: str, *, stop: int | None, duration: int | None) -> None:
        """Record the stop time of a test."""
        raise NotImplementedError("ReportBackend is a port; use a concrete adapter.")

    async def write_test(self, test: str) -> None:
        """Persist the test and release its handle."""
        raise NotImplementedError("ReportBackend is a port; use a concrete adapter.")

    def start_fixture(self, scope: str | None, kind: HookKind, *, name: str, start: int) -> str | None:
        """Open a fixture under a scope; may decline by returning None."""
        raise NotImplementedError("ReportBackend is a port; use a concrete adapter.")

    def update_fixture(self, fixture: str, mutator: FixtureMutator) -> None:
        """Apply an in-place change to an open fixture."""
        raise NotImplementedError("ReportBackend is a port; use a concrete adapter.")

    async def stop_fixture(self, fixture: str, *, stop: int | None, duration: int | None) -> None:
        """Record the stop time of a fixture."""
        raise NotImplementedError("ReportBackend is a port; use a concrete adapter.")

    async def apply_messages(self, test: str, messages: Sequence[TestScopedMessage]) -> None:
        """Apply step, metadata and attachment messages to an open test."""
        raise NotImplementedError("ReportBackend is a port; use a concrete adapter.")
