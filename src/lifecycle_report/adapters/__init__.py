from .event_source import FileEventSource
from .log_sinks import JsonlLogSink, LevelFilterLogSink, StdoutLogSink, build_log_sink
from .memory_backend import InMemoryReportBackend, UnknownHandleError
from .results_dir_backend import ReportWriteError, ResultsDirectoryReportBackend

# Public adapter exports are optional but make wiring simpler.
__all__ = [
    "FileEventSource",
    "InMemoryReportBackend",
    "JsonlLogSink",
    "LevelFilterLogSink",
    "ReportWriteError",
    "ResultsDirectoryReportBackend",
    "StdoutLogSink",
    "UnknownHandleError",
    "build_log_sink",
]
