from __future__ import annotations

from dataclasses import dataclass, field

from lifecycle_report.domain.messages import LifecycleMessage
from lifecycle_report.kernel import predicates


@dataclass(slots=True)
class Session:
    # One session per execution context; the message log is append-only and authoritative.
    context_id: str
    messages: list[LifecycleMessage] = field(default_factory=list)
    scopes: list[str] = field(default_factory=list)
    executables: list[str] = field(default_factory=list)
    fixtures: list[str] = field(default_factory=list)
    current_test: str | None = None
    open_steps: int = 0

    def push(self, message: LifecycleMessage) -> None:
        self.messages.append(message)

    @property
    def has_pending_suite(self) -> bool:
        return predicates.has_pending_suite(self.messages)

    @property
    def has_pending_test(self) -> bool:
        return predicates.has_pending_test(self.messages)

    @property
    def has_pending_step(self) -> bool:
        return predicates.has_pending_step(self.messages)

    @property
    def has_pending_hook(self) -> bool:
        return predicates.has_pending_hook(self.messages)

    @property
    def current_feature(self) -> str | None:
        return predicates.current_feature(self.messages)

    @property
    def is_settled(self) -> bool:
        # True when no scope, test, fixture or step is left open.
        return (
            not self.scopes
            and not self.executables
            and not self.fixtures
            and self.current_test is None
            and self.open_steps == 0
        )


def pop_or_none(stack: list[str]) -> str | None:
    # Popping an empty stack is a no-op.
    if not stack:
        return None
    return stack.pop()


def top_or_none(stack: list[str]) -> str | None:
    if not stack:
        return None
    return stack[-1]
