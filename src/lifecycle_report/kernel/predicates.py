from __future__ import annotations

from collections.abc import Sequence

from lifecycle_report.domain.messages import LifecycleMessage, MessageKind, SuiteStart

# Pending predicates are pure functions over a message log; the log is the only state they read.


def _last_index(messages: Sequence[LifecycleMessage], kind: MessageKind) -> int:
    for idx in range(len(messages) - 1, -1, -1):
        if messages[idx].kind is kind:
            return idx
    return -1


def _is_pending(messages: Sequence[LifecycleMessage], start: MessageKind, end: MessageKind) -> bool:
    # Pending iff the last start comes strictly after the last end (-1 when absent).
    return _last_index(messages, start) > _last_index(messages, end)


def has_pending_suite(messages: Sequence[LifecycleMessage]) -> bool:
    return _is_pending(messages, MessageKind.SUITE_START, MessageKind.SUITE_END)


def has_pending_test(messages: Sequence[LifecycleMessage]) -> bool:
    return _is_pending(messages, MessageKind.TEST_START, MessageKind.TEST_END)


def has_pending_step(messages: Sequence[LifecycleMessage]) -> bool:
    return _is_pending(messages, MessageKind.STEP_START, MessageKind.STEP_STOP)


def has_pending_hook(messages: Sequence[LifecycleMessage]) -> bool:
    return _is_pending(messages, MessageKind.HOOK_START, MessageKind.HOOK_END)


def current_feature(messages: Sequence[LifecycleMessage]) -> str | None:
    """Return the name of the most recent feature-level suite start.

    Later ``suite_end`` messages are not consulted: tests that follow a feature
    suite keep its label until another feature suite starts.
    """
    for idx in range(len(messages) - 1, -1, -1):
        message = messages[idx]
        if isinstance(message, SuiteStart) and message.is_feature:
            return message.name
    return None
