from __future__ import annotations

import pytest

from lifecycle_report.adapters.memory_backend import InMemoryReportBackend
from lifecycle_report.domain.messages import (
    Attachment,
    HookEnd,
    HookKind,
    HookStart,
    Label,
    MessageKind,
    Metadata,
    Parameter,
    Stage,
    Status,
    StatusDetails,
    TestEnd,
    TestStart,
)
from lifecycle_report.kernel.registry import SessionRegistry
from lifecycle_report.usecases.recorder import LifecycleRecorder


def _recorder() -> tuple[SessionRegistry, LifecycleRecorder]:
    registry = SessionRegistry(InMemoryReportBackend())
    return registry, LifecycleRecorder(registry, clock=lambda: 1000, language="python", framework="pytest")


def _runtime_labels(context_id: str = "0-0") -> tuple[Label, ...]:
    return (Label("language", "python"), Label("framework", "pytest"), Label("thread", context_id))


def _kinds(recorder: LifecycleRecorder) -> list[str]:
    return [message.kind.value for message in recorder.session.messages]


def test_start_test_labels_feature_and_suites() -> None:
    _, recorder = _recorder()
    recorder.start_suite("Login", feature=True)
    recorder.start_suite("valid credentials")
    recorder.start_test("logs in")

    labels = recorder.session.messages[-1]
    assert isinstance(labels, Metadata)
    assert labels.labels == (
        Label("parentSuite", "Login"),
        Label("suite", "valid credentials"),
        *_runtime_labels(),
        Label("feature", "Login"),
    )
    assert recorder.session.messages[-2] == TestStart(name="logs in", start=1000)


def test_sub_suites_are_joined() -> None:
    _, recorder = _recorder()
    for name in ("a", "b", "c", "d"):
        recorder.start_suite(name)
    assert recorder.suite_labels()[-1] == Label("subSuite", "c > d")
    recorder.end_suite()
    assert recorder.suite_labels()[-1] == Label("subSuite", "c")


def test_thread_label_follows_the_active_context() -> None:
    registry, recorder = _recorder()
    recorder.use_context("0-3")
    recorder.start_test("t1")

    session = registry.get_or_create("0-3")
    assert session.messages[-1] == Metadata(labels=_runtime_labels("0-3"))
    assert registry.get_or_create().messages == []


def test_language_and_framework_default_to_this_runtime() -> None:
    registry = SessionRegistry(InMemoryReportBackend())
    recorder = LifecycleRecorder(registry, clock=lambda: 1000)
    labels = {label.name: label.value for label in recorder.test_labels()}
    assert labels == {"language": "python", "framework": "lifecycle-report", "thread": "0-0"}


def test_test_file_sets_package_for_the_context() -> None:
    # The package label goes to the running test now and to every later test of the same context.
    registry, recorder = _recorder()
    recorder.start_test("t1")
    recorder.add_test_info("tests/checkout/test_pay.py#t1", file="tests/checkout/test_pay.py")
    assert recorder.session.messages[-1] == Metadata(labels=(Label("package", "tests.checkout.test_pay"),))

    recorder.pass_test()
    recorder.start_test("t2")
    assert Label("package", "tests.checkout.test_pay") in recorder.session.messages[-1].labels

    recorder.use_context("0-1")
    recorder.start_test("other worker")
    assert all(label.name != "package" for label in registry.get_or_create("0-1").messages[-1].labels)


def test_test_info_without_file_only_sets_full_name() -> None:
    _, recorder = _recorder()
    recorder.start_test("t1")
    recorder.add_test_info("suite t1")
    assert _kinds(recorder) == ["test_start", "metadata", "test_info"]


def test_fail_test_synthesizes_missing_start() -> None:
    _, recorder = _recorder()
    recorder.fail_test("broken login", details=StatusDetails(message="boom"))

    assert _kinds(recorder) == ["test_start", "metadata", "test_end"]
    end = recorder.session.messages[-1]
    assert isinstance(end, TestEnd)
    assert end.status is Status.FAILED
    assert end.status_details == StatusDetails(message="boom")


def test_fail_test_reuses_pending_test() -> None:
    _, recorder = _recorder()
    recorder.start_test("t1")
    recorder.fail_test("t1")
    assert _kinds(recorder) == ["test_start", "metadata", "test_end"]


def test_skip_test_with_and_without_pending_test() -> None:
    _, recorder = _recorder()
    recorder.skip_test("skipped one")
    recorder.start_test("pending one")
    recorder.skip_test()

    ends = [m for m in recorder.session.messages if isinstance(m, TestEnd)]
    assert [(e.status, e.stage) for e in ends] == [(Status.SKIPPED, Stage.PENDING)] * 2
    with pytest.raises(ValueError):
        recorder.skip_test()


def test_hooks_outside_suites_are_ignored() -> None:
    _, recorder = _recorder()
    assert recorder.start_hook('"before all" hook') is False
    assert recorder.end_hook('"before all" hook') is False
    assert recorder.session.messages == []


def test_hook_kind_is_inferred_from_name() -> None:
    _, recorder = _recorder()
    recorder.start_suite("suite")
    recorder.start_hook('"before each" hook')
    recorder.end_hook('"before each" hook')
    recorder.start_hook('"after all" hook')

    starts = [m for m in recorder.session.messages if isinstance(m, HookStart)]
    assert [s.hook_kind for s in starts] == [HookKind.BEFORE, HookKind.AFTER]


def test_failing_hook_with_nothing_open_becomes_broken_test() -> None:
    _, recorder = _recorder()
    recorder.start_suite("suite")
    error = StatusDetails(message="db down", trace="tb")
    recorder.end_hook('"before all" hook', error=error, duration=5)

    assert _kinds(recorder) == ["suite_start", "test_start", "metadata", "hook_start", "hook_end", "test_end"]
    hook_end = recorder.session.messages[4]
    test_end = recorder.session.messages[5]
    assert isinstance(hook_end, HookEnd) and isinstance(test_end, TestEnd)
    assert hook_end.status is Status.BROKEN
    assert hook_end.status_details == error
    assert test_end.status is Status.BROKEN
    assert not recorder.session.has_pending_test


def test_failing_hook_inside_test_gets_synthesized_start() -> None:
    _, recorder = _recorder()
    recorder.start_suite("suite")
    recorder.start_test("t1")
    recorder.end_hook('"after each" hook', error=StatusDetails(message="cleanup failed"))

    assert _kinds(recorder)[-2:] == ["hook_start", "hook_end"]
    assert recorder.session.messages[-1].status is Status.BROKEN


def test_passing_hook_end_closes_pending_hook() -> None:
    _, recorder = _recorder()
    recorder.start_suite("suite")
    recorder.start_hook('"before all" hook')
    recorder.end_hook('"before all" hook')

    assert _kinds(recorder) == ["suite_start", "hook_start", "hook_end"]
    assert recorder.session.messages[-1].status is Status.PASSED
    assert not recorder.session.has_pending_hook


def test_steps_attachments_and_metadata() -> None:
    _, recorder = _recorder()
    recorder.start_test("t1")
    recorder.start_step("click")
    recorder.attach("log", "hello")
    recorder.end_step(Status.FAILED)
    recorder.add_labels(Label("owner", "qa"))
    recorder.add_parameters(Parameter("browser", "firefox"))
    recorder.add_labels()
    recorder.mark_retried()

    kinds = [m.kind for m in recorder.session.messages]
    assert kinds == [
        MessageKind.TEST_START,
        MessageKind.METADATA,
        MessageKind.STEP_START,
        MessageKind.ATTACHMENT,
        MessageKind.STEP_STOP,
        MessageKind.METADATA,
        MessageKind.METADATA,
        MessageKind.METADATA,
    ]
    attachment = recorder.session.messages[3]
    assert isinstance(attachment, Attachment)
    assert attachment.content == b"hello"
    assert recorder.session.messages[-1] == Metadata(labels=(Label("tag", "retried"),))


@pytest.mark.asyncio
async def test_recorded_run_replays_into_settled_report() -> None:
    backend = InMemoryReportBackend()
    registry = SessionRegistry(backend)
    recorder = LifecycleRecorder(registry, clock=lambda: 1000)
    recorder.start_suite("Checkout", feature=True)
    recorder.start_hook('"before all" hook')
    recorder.end_hook('"before all" hook')
    recorder.start_test("pays")
    recorder.start_step("submit")
    recorder.pass_test(stop=1200)
    recorder.start_test("refunds")
    recorder.fail_test("refunds", details=StatusDetails(message="500"))
    recorder.end_suite()

    await registry.drain_all()

    names = {test.name: test for test in backend.written_tests}
    assert names["pays"].status is Status.PASSED
    assert names["pays"].steps[0].status is Status.PASSED
    assert names["refunds"].status is Status.FAILED
    assert Label("feature", "Checkout") in names["refunds"].labels
    assert len(registry) == 0
