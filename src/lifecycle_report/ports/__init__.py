from .log_sink import LogSink
from .report_backend import (
    AttachmentRef,
    FixtureMutator,
    FixtureResult,
    ReportBackend,
    ScopeResult,
    StepResult,
    TestMutator,
    TestResult,
)

__all__ = [
    "AttachmentRef",
    "FixtureMutator",
    "FixtureResult",
    "LogSink",
    "ReportBackend",
    "ScopeResult",
    "StepResult",
    "TestMutator",
    "TestResult",
]
