from .logging import LOG_LEVELS, LogMessage
from .messages import (
    Attachment,
    HookEnd,
    HookKind,
    HookStart,
    Label,
    LabelName,
    LifecycleMessage,
    MessageKind,
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
    TestScopedMessage,
    TestStart,
)

__all__ = [
    "LOG_LEVELS",
    "Attachment",
    "HookEnd",
    "HookKind",
    "HookStart",
    "Label",
    "LabelName",
    "LifecycleMessage",
    "LogMessage",
    "MessageKind",
    "Metadata",
    "Parameter",
    "Stage",
    "Status",
    "StatusDetails",
    "StepStart",
    "StepStop",
    "SuiteEnd",
    "SuiteStart",
    "TestEnd",
    "TestInfo",
    "TestScopedMessage",
    "TestStart",
]
