"""Submit deduplicated results to a test run in fixed-size batches."""

import logging
from collections.abc import Iterator, Sequence

from lgtm_reporter.client import LgtmClient
from lgtm_reporter.client.models import ResultEntry
from lgtm_reporter.models.result import QueuedResult

log = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 50


def batched[T](items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """Yield consecutive slices of at most ``size`` items."""
    if size <= 0:
        raise ValueError(f"Batch size must be positive, got {size}")
    for start in range(0, len(items), size):
        yield items[start : start + size]


def to_entry(result: QueuedResult) -> ResultEntry:
    """Convert a queued result to its bulk submission entry."""
    return ResultEntry(
        test_case_id=result.test_case_id,
        status=result.status,
        duration=result.duration,
        comment=result.comment,
    )


async def submit_results(
    client: LgtmClient,
    run_id: str,
    results: Sequence[QueuedResult],
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> int:
    """Submit results batch by batch and return how many the API updated.

    A failed batch is logged and skipped; the remaining batches are still
    sent and the cases of the failed batch stay ``untested`` remotely.
    """
    if not results:
        return 0

    log.info("Submitting %d result(s)...", len(results))
    updated = 0
    entries = [to_entry(result) for result in results]

    for number, batch in enumerate(batched(entries, batch_size), start=1):
        try:
            response = await client.submit_results(run_id, batch)
        except Exception as exc:  # noqa: BLE001
            log.error(
                "Failed to submit results batch %d (%d result(s)): %s",
                number,
                len(batch),
                exc,
            )
            continue
        log.debug("Batch %d: %d result(s) updated", number, response.updated)
        updated += response.updated

    return updated
