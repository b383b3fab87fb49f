"""Entry points for checking histories for linearizability.

A ``timeout`` is in seconds; 0 or None means no limit. When a check times
out, the result is ``CheckResult.UNKNOWN`` and a false positive is possible.
"""

from __future__ import annotations

from typing import Optional

from .checker import LinearizationInfo, check_events_info, check_operations_info
from .model import CheckResult, Event, Model, Operation


def check_operations(model: Model, history: list[Operation]) -> bool:
    result, _ = check_operations_info(model, history, False, 0)
    return result is CheckResult.OK


def check_operations_timeout(
    model: Model, history: list[Operation], timeout: Optional[float]
) -> CheckResult:
    result, _ = check_operations_info(model, history, False, timeout)
    return result


def check_operations_verbose(
    model: Model, history: list[Operation], timeout: Optional[float]
) -> tuple[CheckResult, LinearizationInfo]:
    return check_operations_info(model, history, True, timeout)


def check_events(model: Model, history: list[Event]) -> bool:
    result, _ = check_events_info(model, history, False, 0)
    return result is CheckResult.OK


def check_events_timeout(
    model: Model, history: list[Event], timeout: Optional[float]
) -> CheckResult:
    result, _ = check_events_info(model, history, False, timeout)
    return result


def check_events_verbose(
    model: Model, history: list[Event], timeout: Optional[float]
) -> tuple[CheckResult, LinearizationInfo]:
    return check_events_info(model, history, True, timeout)