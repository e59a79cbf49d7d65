from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from pathlib import Path

from lifecycle_report.adapters.event_source import FileEventSource
from lifecycle_report.adapters.log_sinks import build_log_sink
from lifecycle_report.adapters.memory_backend import InMemoryReportBackend
from lifecycle_report.adapters.results_dir_backend import ResultsDirectoryReportBackend
from lifecycle_report.config.loader import load_config
from lifecycle_report.kernel.registry import SessionRegistry
from lifecycle_report.usecases.config_models import AppConfig

# Thin wrapper: parse flags, wire adapters from config, feed the event log, drain once.


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Replay a test lifecycle event log into a report")
    parser.add_argument("--config", required=True, help="Path to YAML config")
    parser.add_argument("--input", required=True, help="Path to JSONL lifecycle event log")
    parser.add_argument("--results-dir", help="Override backend results directory")
    parser.add_argument(
        "--log",
        choices=["none", "stdout", "jsonl"],
        help="Override structured log sink",
    )
    parser.add_argument("--log-path", help="Override JSONL log file path")
    return parser


def parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    # Caller passes argv for testability.
    return build_parser().parse_args(argv)


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> None:
    # CLI overrides take precedence over config values.
    if args.results_dir is not None:
        config.backend.kind = "results_dir"
        config.backend.results_dir = args.results_dir
    if args.log_path is not None:
        config.logging.path = args.log_path
        if args.log is None:
            config.logging.sink = "jsonl"
    if args.log is not None:
        config.logging.sink = args.log


def build_backend(config: AppConfig) -> InMemoryReportBackend:
    if config.backend.kind == "memory":
        return InMemoryReportBackend()
    return ResultsDirectoryReportBackend(Path(config.backend.results_dir))


async def replay_event_log(config: AppConfig, source: FileEventSource) -> InMemoryReportBackend:
    backend = build_backend(config)
    log_sink = build_log_sink(config.logging.sink, path=config.logging.path, level=config.logging.level)
    registry = SessionRegistry(
        backend,
        log_sink=log_sink,
        default_context_id=config.runtime.default_context_id,
        after_all_pattern=config.runtime.compiled_after_all_pattern(),
    )
    try:
        for context_id, message in source.read():
            registry.push_message(context_id, message)
        await registry.drain_all()
        if config.environment and isinstance(backend, ResultsDirectoryReportBackend):
            await backend.write_environment_info(config.environment)
    finally:
        close = getattr(log_sink, "close", None)
        if close is not None:
            close()
    return backend


def run(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    config = load_config(Path(args.config))
    apply_overrides(config, args)
    asyncio.run(replay_event_log(config, FileEventSource(Path(args.input))))
    return 0
