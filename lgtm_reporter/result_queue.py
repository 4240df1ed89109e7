"""Append-only buffer of per-test results with last-write-wins dedup."""

import itertools
import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

from lgtm_reporter.models.result import RESULT_STATUSES, QueuedResult, ResultStatus
from lgtm_reporter.models.runner import TestError

log = logging.getLogger(__name__)


@dataclass(kw_only=True)
class ResultQueue:
    """Results reported during the run, consumed once at the end.

    Precondition: repeated reports for the same case (runner retries) are
    enqueued in the order they were executed. Each entry is stamped with a
    monotonic sequence number at enqueue time and ``deduplicated`` keeps, per
    case, the entry with the highest one.
    """

    entries: list[QueuedResult] = field(default_factory=list)
    _sequence: Iterator[int] = field(default_factory=itertools.count, repr=False)

    def __len__(self) -> int:
        return len(self.entries)

    def enqueue(
        self,
        test_case_id: str | None,
        status: ResultStatus,
        duration: int,
        comment: str | None,
        test_title: str,
        error: TestError | None = None,
    ) -> QueuedResult | None:
        """Queue a result; no-op for tests without a case mapping."""
        if test_case_id is None:
            return None
        if status not in RESULT_STATUSES:
            raise ValueError(f"Invalid result status: {status!r}")

        entry = QueuedResult(
            sequence=next(self._sequence),
            test_case_id=test_case_id,
            status=status,
            duration=duration,
            comment=comment,
            test_title=test_title,
            error=error,
        )
        self.entries.append(entry)
        log.debug("Queued result: %s -> %s (%dms)", test_title, status, duration)
        return entry

    def deduplicated(self) -> Sequence[QueuedResult]:
        """One result per case: the latest report wins.

        Cases keep the position of their first report.
        """
        latest: dict[str, QueuedResult] = {}
        for entry in self.entries:
            current = latest.get(entry.test_case_id)
            if current is None or entry.sequence > current.sequence:
                latest[entry.test_case_id] = entry
        return list(latest.values())
