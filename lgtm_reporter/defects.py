"""File defects for failed results."""

import logging
from collections.abc import Sequence

from lgtm_reporter.client import LgtmClient
from lgtm_reporter.client.models import NewDefect
from lgtm_reporter.models.result import QueuedResult
from lgtm_reporter.titles import format_error_comment

log = logging.getLogger(__name__)

DEFECT_TITLE_PREFIX = "[pytest] "
FALLBACK_DESCRIPTION = "Test failed during pytest execution"


def build_defect(result: QueuedResult, project_id: str, run_id: str) -> NewDefect:
    """Describe the defect filed for one failed result."""
    return NewDefect(
        title=f"{DEFECT_TITLE_PREFIX}{result.test_title}",
        project_id=project_id,
        description=format_error_comment(result.error) or FALLBACK_DESCRIPTION,
        severity="normal",
        priority="medium",
        defect_type="functional",
        test_case_id=result.test_case_id,
        test_run_id=run_id,
    )


async def file_defects(
    client: LgtmClient,
    project_id: str,
    run_id: str,
    results: Sequence[QueuedResult],
) -> int:
    """Create one defect per failed result and return how many were created.

    ``results`` must already be deduplicated so a test that eventually passed
    on retry files nothing.
    """
    failures = [result for result in results if result.status == "failed"]
    if not failures:
        return 0

    log.info("Creating %d defect(s) for failures...", len(failures))
    created = 0

    for failure in failures:
        try:
            defect = await client.create_defect(
                build_defect(failure, project_id, run_id)
            )
        except Exception as exc:  # noqa: BLE001
            log.warning(
                "Failed to create defect for %r: %s", failure.test_title, exc
            )
            continue
        log.debug("Created defect %s for %r", defect.defect_key, failure.test_title)
        created += 1

    return created
