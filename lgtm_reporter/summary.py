"""Summary of a synchronized run."""

import logging
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from lgtm_reporter.models.result import QueuedResult, ResultStatus, RunStatus

STATUS_SYMBOLS: dict[ResultStatus, str] = {
    "passed": "✓",
    "failed": "✗",
    "skipped": "-",
    "blocked": "!",
}


@dataclass(frozen=True, kw_only=True)
class RunSummary:
    """Outcome of a synchronized run, computed from local results."""

    run_number: int
    status: RunStatus
    passed: int
    failed: int
    skipped: int
    blocked: int
    duration: float
    submitted: int
    logs_uploaded: int
    defects_created: int
    url: str

    @property
    def total(self) -> int:
        """Number of distinct cases with a result."""
        return self.passed + self.failed + self.skipped + self.blocked

    def line(self) -> str:
        """One-line human readable summary."""
        return (
            f"LGTM test run #{self.run_number} {self.status}: "
            f"{self.passed} passed, {self.failed} failed, "
            f"{self.skipped} skipped, {self.blocked} blocked"
        )


def derive_run_status(statuses: Sequence[ResultStatus]) -> RunStatus:
    """Derive the terminal run status from the results of the run.

    Any failure fails the run; otherwise any blocked result blocks it;
    otherwise it passed. A run of only skipped results counts as passed.
    """
    if "failed" in statuses:
        return "failed"
    if "blocked" in statuses:
        return "blocked"
    return "passed"


def build_summary(
    *,
    run_number: int,
    results: Sequence[QueuedResult],
    duration: float,
    submitted: int,
    logs_uploaded: int,
    defects_created: int,
    url: str,
) -> RunSummary:
    """Count deduplicated results per status."""
    counts = Counter(result.status for result in results)
    return RunSummary(
        run_number=run_number,
        status=derive_run_status([result.status for result in results]),
        passed=counts["passed"],
        failed=counts["failed"],
        skipped=counts["skipped"],
        blocked=counts["blocked"],
        duration=duration,
        submitted=submitted,
        logs_uploaded=logs_uploaded,
        defects_created=defects_created,
        url=url,
    )


def log_run_summary(log: logging.Logger, summary: RunSummary) -> None:
    """Log a formatted summary of the synchronized run."""
    log.info("=" * 80)
    log.info("LGTM Run Summary:")
    log.info("=" * 80)

    for status in ("passed", "failed", "skipped", "blocked"):
        log.info(
            "%s %s: %d", STATUS_SYMBOLS[status], status, getattr(summary, status)
        )

    log.info(summary.line())
    log.info("Duration: %.1fs", summary.duration)
    log.info(
        "Submitted %d result(s), %d log chunk(s), %d defect(s)",
        summary.submitted,
        summary.logs_uploaded,
        summary.defects_created,
    )
    log.info("View results: %s", summary.url)


def format_summary(summary: RunSummary) -> dict[str, Any]:
    """Format a run summary for JSON output."""
    return {
        "run_number": summary.run_number,
        "status": summary.status,
        "total": summary.total,
        "passed": summary.passed,
        "failed": summary.failed,
        "skipped": summary.skipped,
        "blocked": summary.blocked,
        "duration": summary.duration,
        "submitted": summary.submitted,
        "logs_uploaded": summary.logs_uploaded,
        "defects_created": summary.defects_created,
        "url": summary.url,
    }
