from __future__ import annotations

import json
from pathlib import Path

import pytest

from lifecycle_report.adapters.results_dir_backend import ReportWriteError, ResultsDirectoryReportBackend
from lifecycle_report.domain.messages import (
    Attachment,
    HookEnd,
    HookKind,
    HookStart,
    Stage,
    Status,
    StatusDetails,
    SuiteEnd,
    SuiteStart,
    TestEnd,
    TestInfo,
    TestStart,
)
from lifecycle_report.kernel.registry import SessionRegistry


@pytest.mark.asyncio
async def test_replay_writes_result_and_container_files(tmp_path: Path) -> None:
    backend = ResultsDirectoryReportBackend(tmp_path / "results")
    registry = SessionRegistry(backend)
    for message in (
        SuiteStart(name="suite"),
        HookStart(name='"before all" hook', hook_kind=HookKind.BEFORE, start=1),
        HookEnd(status=Status.PASSED, stop=2),
        TestStart(name="t1", start=3),
        Attachment(name="log", content=b"console", content_type="text/plain"),
        TestEnd(
            status=Status.FAILED,
            stop=9,
            stage=Stage.FINISHED,
            status_details=StatusDetails(message="nope"),
        ),
        SuiteEnd(),
    ):
        registry.push_message("0-1", message)

    await registry.drain_all()

    results = sorted((tmp_path / "results").glob("*-result.json"))
    containers = sorted((tmp_path / "results").glob("*-container.json"))
    assert len(results) == 1
    assert len(containers) == 2

    payload = json.loads(results[0].read_text(encoding="utf-8"))
    assert payload["name"] == "t1"
    assert payload["status"] == "failed"
    assert payload["stage"] == "finished"
    assert payload["statusDetails"] == {"message": "nope"}
    source = payload["attachments"][0]["source"]
    assert (tmp_path / "results" / source).read_bytes() == b"console"

    befores = [json.loads(path.read_text(encoding="utf-8"))["befores"] for path in containers]
    assert [fixture["name"] for group in befores for fixture in group] == ['"before all" hook']


@pytest.mark.asyncio
async def test_result_files_use_camel_case_keys(tmp_path: Path) -> None:
    # Report viewers read fullName/statusDetails/hookKind; attachment content type is stored as "type".
    backend = ResultsDirectoryReportBackend(tmp_path)
    registry = SessionRegistry(backend)
    for message in (
        SuiteStart(name="suite"),
        HookStart(name='"before each" hook', hook_kind=HookKind.BEFORE, start=1),
        HookEnd(status=Status.BROKEN, stop=2, status_details=StatusDetails(message="setup", trace="tb")),
        TestStart(name="t1", start=3),
        TestInfo(full_name="specs/login.py#t1"),
        Attachment(name="shot", content=b"png", content_type="image/png"),
        TestEnd(status=Status.FAILED, stop=9, status_details=StatusDetails(message="nope", trace="tb")),
    ):
        registry.push_message("0-1", message)

    await registry.drain_all()

    (result_path,) = tmp_path.glob("*-result.json")
    result = json.loads(result_path.read_text(encoding="utf-8"))
    assert result["fullName"] == "specs/login.py#t1"
    assert result["statusDetails"] == {"message": "nope", "trace": "tb"}
    assert result["attachments"][0]["type"] == "image/png"
    assert not [key for key in result if "_" in key]

    fixtures = [
        fixture
        for path in tmp_path.glob("*-container.json")
        for fixture in json.loads(path.read_text(encoding="utf-8"))["befores"]
    ]
    assert fixtures[0]["hookKind"] == "before"
    assert fixtures[0]["statusDetails"]["message"] == "setup"


@pytest.mark.asyncio
async def test_unset_status_is_omitted(tmp_path: Path) -> None:
    backend = ResultsDirectoryReportBackend(tmp_path)
    test = backend.start_test(name="t1", start=1, scopes=[])
    await backend.write_test(test)

    payload = json.loads((tmp_path / f"{test}-result.json").read_text(encoding="utf-8"))
    assert "status" not in payload
    assert payload["stage"] == "running"


@pytest.mark.asyncio
async def test_environment_info_is_sorted(tmp_path: Path) -> None:
    backend = ResultsDirectoryReportBackend(tmp_path)
    await backend.write_environment_info({"python": "3.12", "os": "linux"})
    assert (tmp_path / "environment.properties").read_text(encoding="utf-8") == "os = linux\npython = 3.12\n"


@pytest.mark.asyncio
async def test_io_failure_is_wrapped(tmp_path: Path) -> None:
    backend = ResultsDirectoryReportBackend(tmp_path / "results")
    scope = backend.start_scope()
    # Replace the directory with a file so the write fails.
    (tmp_path / "results").rmdir()
    (tmp_path / "results").write_text("not a dir", encoding="utf-8")

    with pytest.raises(ReportWriteError):
        await backend.write_scope(scope)
