from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Union


class MessageKind(str, Enum):
    # Wire names of lifecycle messages; producers and the event codec share them.
    SUITE_START = "suite_start"
    SUITE_END = "suite_end"
    TEST_START = "test_start"
    TEST_INFO = "test_info"
    TEST_END = "test_end"
    HOOK_START = "hook_start"
    HOOK_END = "hook_end"
    STEP_START = "step_start"
    STEP_STOP = "step_stop"
    METADATA = "metadata"
    ATTACHMENT = "attachment"


class Status(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    BROKEN = "broken"
    SKIPPED = "skipped"
    UNKNOWN = "unknown"


class Stage(str, Enum):
    SCHEDULED = "scheduled"
    RUNNING = "running"
    FINISHED = "finished"
    PENDING = "pending"
    INTERRUPTED = "interrupted"


class HookKind(str, Enum):
    BEFORE = "before"
    AFTER = "after"


class LabelName(str, Enum):
    # Well-known label names understood by report viewers.
    FEATURE = "feature"
    SUITE = "suite"
    PARENT_SUITE = "parentSuite"
    SUB_SUITE = "subSuite"
    PACKAGE = "package"
    THREAD = "thread"
    LANGUAGE = "language"
    FRAMEWORK = "framework"
    TAG = "tag"


@dataclass(frozen=True, slots=True)
class StatusDetails:
    message: str | None = None
    trace: str | None = None


@dataclass(frozen=True, slots=True)
class Label:
    name: str
    value: str


@dataclass(frozen=True, slots=True)
class Parameter:
    name: str
    value: str


def _require_name(name: str, kind: MessageKind) -> None:
    if not name:
        raise ValueError(f"{kind.value} requires a non-empty name")


def _require_time(value: int | None, field_name: str, kind: MessageKind) -> None:
    if value is not None and value < 0:
        raise ValueError(f"{kind.value}.{field_name} must be non-negative")


@dataclass(frozen=True, slots=True)
class SuiteStart:
    kind: ClassVar[MessageKind] = MessageKind.SUITE_START
    name: str
    is_feature: bool = False

    def __post_init__(self) -> None:
        _require_name(self.name, self.kind)


@dataclass(frozen=True, slots=True)
class SuiteEnd:
    kind: ClassVar[MessageKind] = MessageKind.SUITE_END


@dataclass(frozen=True, slots=True)
class TestStart:
    kind: ClassVar[MessageKind] = MessageKind.TEST_START
    # Keeps pytest from collecting this dataclass when imported into test modules.
    __test__: ClassVar[bool] = False
    name: str
    start: int

    def __post_init__(self) -> None:
        _require_name(self.name, self.kind)
        _require_time(self.start, "start", self.kind)


@dataclass(frozen=True, slots=True)
class TestInfo:
    kind: ClassVar[MessageKind] = MessageKind.TEST_INFO
    __test__: ClassVar[bool] = False
    full_name: str


@dataclass(frozen=True, slots=True)
class TestEnd:
    kind: ClassVar[MessageKind] = MessageKind.TEST_END
    __test__: ClassVar[bool] = False
    status: Status
    stop: int
    stage: Stage | None = None
    duration: int | None = None
    status_details: StatusDetails | None = None

    def __post_init__(self) -> None:
        _require_time(self.stop, "stop", self.kind)
        _require_time(self.duration, "duration", self.kind)


@dataclass(frozen=True, slots=True)
class HookStart:
    kind: ClassVar[MessageKind] = MessageKind.HOOK_START
    name: str
    hook_kind: HookKind
    start: int

    def __post_init__(self) -> None:
        _require_name(self.name, self.kind)
        _require_time(self.start, "start", self.kind)


@dataclass(frozen=True, slots=True)
class HookEnd:
    kind: ClassVar[MessageKind] = MessageKind.HOOK_END
    status: Status
    stop: int
    duration: int | None = None
    status_details: StatusDetails | None = None

    def __post_init__(self) -> None:
        _require_time(self.stop, "stop", self.kind)
        _require_time(self.duration, "duration", self.kind)


@dataclass(frozen=True, slots=True)
class StepStart:
    kind: ClassVar[MessageKind] = MessageKind.STEP_START
    name: str
    start: int

    def __post_init__(self) -> None:
        _require_name(self.name, self.kind)
        _require_time(self.start, "start", self.kind)


@dataclass(frozen=True, slots=True)
class StepStop:
    kind: ClassVar[MessageKind] = MessageKind.STEP_STOP
    status: Status
    stop: int
    status_details: StatusDetails | None = None

    def __post_init__(self) -> None:
        _require_time(self.stop, "stop", self.kind)


@dataclass(frozen=True, slots=True)
class Metadata:
    kind: ClassVar[MessageKind] = MessageKind.METADATA
    labels: tuple[Label, ...] = ()
    parameters: tuple[Parameter, ...] = ()


@dataclass(frozen=True, slots=True)
class Attachment:
    # Content stays raw bytes; encoding names how the backend should serialize it.
    kind: ClassVar[MessageKind] = MessageKind.ATTACHMENT
    name: str
    content: bytes
    content_type: str
    encoding: str = "base64"

    def __post_init__(self) -> None:
        _require_name(self.name, self.kind)


LifecycleMessage = Union[
    SuiteStart,
    SuiteEnd,
    TestStart,
    TestInfo,
    TestEnd,
    HookStart,
    HookEnd,
    StepStart,
    StepStop,
    Metadata,
    Attachment,
]

# Messages forwarded verbatim to the open test by the replay machine.
TestScopedMessage = Union[StepStart, StepStop, Metadata, Attachment]
