from .predicates import (
    current_feature,
    has_pending_hook,
    has_pending_step,
    has_pending_suite,
    has_pending_test,
)
from .registry import DEFAULT_CONTEXT_ID, SessionRegistry
from .replay import DEFAULT_AFTER_ALL_PATTERN, ReplayStateMachine
from .session import Session

# Kernel exports cover the replay core only; adapters live elsewhere.
__all__ = [
    "DEFAULT_AFTER_ALL_PATTERN",
    "DEFAULT_CONTEXT_ID",
    "ReplayStateMachine",
    "Session",
    "SessionRegistry",
    "current_feature",
    "has_pending_hook",
    "has_pending_step",
    "has_pending_suite",
    "has_pending_test",
]
