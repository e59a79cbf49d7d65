from __future__ import annotations

import asyncio
import json
from collections.abc import Mapping
from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path

from lifecycle_report.adapters.memory_backend import InMemoryReportBackend
from lifecycle_report.ports.report_backend import ScopeResult, TestResult

# Result files use the viewer schema: camelCase keys, attachment content type under "type".
_KEY_ALIASES = {"content_type": "type"}


class ReportWriteError(RuntimeError):
    # Wraps I/O failures of the results directory; propagates out of replay.
    pass


class ResultsDirectoryReportBackend(InMemoryReportBackend):
    # Persists written nodes as JSON files in a results directory (one file per node).
    def __init__(self, results_dir: Path) -> None:
        super().__init__()
        self._results_dir = results_dir
        self._results_dir.mkdir(parents=True, exist_ok=True)

    @property
    def results_dir(self) -> Path:
        return self._results_dir

    async def _persist_scope(self, result: ScopeResult) -> None:
        await self._write_json(f"{result.uuid}-container.json", _to_json(result))

    async def _persist_test(self, result: TestResult) -> None:
        await self._write_json(f"{result.uuid}-result.json", _to_json(result))

    async def _persist_attachment(self, source: str, content: bytes) -> None:
        await self._write(source, content)

    async def write_environment_info(self, info: Mapping[str, str]) -> None:
        # environment.properties uses key = value lines, sorted for stable output.
        text = "".join(f"{key} = {info[key]}\n" for key in sorted(info))
        await self._write("environment.properties", text.encode("utf-8"))

    async def _write_json(self, name: str, payload: object) -> None:
        data = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
        await self._write(name, data.encode("utf-8"))

    async def _write(self, name: str, content: bytes) -> None:
        path = self._results_dir / name
        try:
            await asyncio.to_thread(path.write_bytes, content)
        except OSError as exc:
            raise ReportWriteError(f"failed to write {path}") from exc


def _to_json(result: object) -> object:
    # Unset fields are dropped, so an unassigned status is omitted rather than defaulted.
    if not is_dataclass(result):
        raise TypeError(f"expected a result dataclass, got {type(result).__name__}")
    return _prune(asdict(result))


def _prune(value: object) -> object:
    if isinstance(value, dict):
        return {_json_key(key): _prune(item) for key, item in value.items() if item is not None}
    if isinstance(value, (list, tuple)):
        return [_prune(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    return value


def _json_key(name: str) -> str:
    alias = _KEY_ALIASES.get(name)
    if alias is not None:
        return alias
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)
