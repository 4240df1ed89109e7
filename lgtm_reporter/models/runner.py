"""Runner-facing types consumed by the reporter lifecycle.

These are deliberately small: any test runner can build them from its own
test and result objects. The pytest adapter lives in ``lgtm_reporter.plugin``.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Literal

from pydantic import Field

from lgtm_reporter.models.base import Model

type RunnerStatus = Literal[
    "passed", "failed", "timedout", "skipped", "interrupted", "rerun"
]


@dataclass(frozen=True, kw_only=True)
class TestItem:
    """A test as known before execution."""

    __test__ = False

    id: str
    title_path: Sequence[str]
    tags: Sequence[str] = ()


@dataclass(frozen=True, kw_only=True)
class TestError:
    """Structured error reported by the runner for a failed test."""

    __test__ = False

    message: str | None = None
    snippet: str | None = None
    stack: str | None = None


@dataclass(frozen=True, kw_only=True)
class TestOutcome:
    """Outcome of one execution attempt of a test.

    ``duration`` is in seconds. ``properties`` carries the runtime metadata
    channel (name/value pairs recorded by the test while it ran).
    """

    __test__ = False

    status: RunnerStatus
    duration: float
    error: TestError | None = None
    stdout: Sequence[str | bytes] = ()
    stderr: Sequence[str | bytes] = ()
    properties: Sequence[tuple[str, object]] = ()


@dataclass(frozen=True, kw_only=True)
class RunOutcome:
    """Outcome of the whole run as reported by the runner.

    The remote run status is derived from the queued results, not from the
    runner exit status.
    """

    duration: float


class CaseMetadata(Model):
    """Case reference recorded at runtime by a test (see ``lgtm_case``)."""

    case_key: str | None = Field(default=None, description="Case key, e.g. ENG-42")
    case_id: int | None = Field(default=None, description="Case number")
