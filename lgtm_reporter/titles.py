"""Pure helpers deriving titles, case keys and statuses from runner data."""

import logging
import re
from collections.abc import Mapping, Sequence

from pydantic import ValidationError

from lgtm_reporter.models.result import ResultStatus
from lgtm_reporter.models.runner import CaseMetadata, TestError

log = logging.getLogger(__name__)

TITLE_SEPARATOR = " > "
METADATA_PROPERTY = "lgtm"

CASE_KEY_PATTERN = re.compile(r"^[A-Z]+-\d+$", re.IGNORECASE)

STATUS_MAP: Mapping[str, ResultStatus] = {
    "passed": "passed",
    "failed": "failed",
    "timedout": "failed",
    "skipped": "skipped",
    "interrupted": "blocked",
    "rerun": "failed",
}


def build_test_title(path: Sequence[str]) -> str:
    """Join a hierarchical test path into one display title.

    Empty segments (e.g. a root suite) are dropped, so
    ``["tests/test_login.py", "TestLogin", "test_ok"]`` becomes
    ``"tests/test_login.py > TestLogin > test_ok"``.
    """
    return TITLE_SEPARATOR.join(part for part in path if part)


def extract_case_key_from_tag(tags: Sequence[str]) -> str | None:
    """Return the first tag shaped like a case key (``@ENG-42``), uppercased."""
    keys: list[str] = []
    for tag in tags:
        cleaned = tag.removeprefix("@")
        if CASE_KEY_PATTERN.match(cleaned) and cleaned.upper() not in keys:
            keys.append(cleaned.upper())

    if not keys:
        return None
    if len(keys) > 1:
        log.warning("Test carries several case keys %s, using %s", keys, keys[0])
    return keys[0]


def map_runner_status(status: str) -> ResultStatus:
    """Map a runner status to an LGTM result status (unknown means failed)."""
    return STATUS_MAP.get(status, "failed")


def format_error_comment(error: TestError | None) -> str | None:
    """Format a runner error into a result comment."""
    if error is None:
        return None

    parts: list[str] = []
    if error.message:
        parts.append(error.message)
    if error.snippet:
        parts.append(f"\n--- Source ---\n{error.snippet}")
    if error.stack:
        parts.append(f"\n--- Stack ---\n{error.stack}")

    return "\n".join(parts) if parts else None


def extract_case_metadata(
    properties: Sequence[tuple[str, object]],
) -> CaseMetadata | None:
    """Read the runtime case override recorded by a test, if any.

    The override is the first property named ``lgtm``; its value is a mapping
    (or a JSON object string) with ``caseKey`` and/or ``caseId``.
    """
    for name, value in properties:
        if name != METADATA_PROPERTY:
            continue
        try:
            if isinstance(value, str | bytes):
                return CaseMetadata.model_validate_json(value)
            return CaseMetadata.model_validate(value)
        except ValidationError:
            log.debug("Ignoring malformed %s metadata: %r", METADATA_PROPERTY, value)
            return None
    return None


def case_reference(case: str | int) -> dict[str, str | int]:
    """Build the runtime metadata payload for a case key or case number.

    ``42`` and ``"42"`` reference a case number; ``"ENG-42"`` a case key.
    """
    if isinstance(case, int):
        return {"caseId": case}
    if "-" not in case and case.isdigit():
        return {"caseId": int(case)}
    return {"caseKey": case}
