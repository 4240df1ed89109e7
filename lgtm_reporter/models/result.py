"""Models for queued test results."""

from dataclasses import dataclass
from typing import Literal

from lgtm_reporter.models.runner import TestError

type ResultStatus = Literal["passed", "failed", "skipped", "blocked"]
type RunStatus = Literal["pending", "in_progress", "passed", "failed", "blocked"]

RESULT_STATUSES: frozenset[ResultStatus] = frozenset(
    ["passed", "failed", "skipped", "blocked"]
)


@dataclass(frozen=True, kw_only=True)
class QueuedResult:
    """One pending submission unit.

    ``sequence`` is assigned by the queue at enqueue time and decides which
    report wins when the same case is reported more than once. ``duration``
    is in milliseconds, as the API expects.
    """

    sequence: int
    test_case_id: str
    status: ResultStatus
    duration: int
    comment: str | None
    test_title: str
    error: TestError | None = None
