"""pytest plugin synchronizing test results to LGTM.

Enable with ``pytest --lgtm``. Settings come from the ``--lgtm-*`` options
or the ``LGTM_API_URL``, ``LGTM_API_TOKEN`` and ``LGTM_PROJECT_KEY``
environment variables.

Tests are matched to LGTM cases by ``@pytest.mark.lgtm("ENG-42")``, by
title, or by auto-creation. A test can also name its case while running
through the ``lgtm_case`` fixture.
"""

import asyncio
import json
import logging
import sys
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pytest

from lgtm_reporter.logger import configure_logging
from lgtm_reporter.models.runner import (
    RunnerStatus,
    RunOutcome,
    TestError,
    TestItem,
    TestOutcome,
)
from lgtm_reporter.reporter import LgtmReporter
from lgtm_reporter.summary import RunSummary, format_summary
from lgtm_reporter.titles import METADATA_PROPERTY, case_reference

log = logging.getLogger(__name__)

PLUGIN_NAME = "lgtm-reporter"
MARKER = "lgtm"

# option dest -> ReporterConfig field
OPTION_FIELDS = {
    "lgtm_api_url": "api_url",
    "lgtm_api_token": "api_token",
    "lgtm_project_key": "project_key",
    "lgtm_run_name": "run_name",
    "lgtm_environment": "environment",
    "lgtm_cycle": "cycle",
}


def pytest_addoption(parser: pytest.Parser) -> None:
    """Register the ``--lgtm*`` options."""
    group = parser.getgroup("lgtm", "LGTM test management")
    group.addoption(
        "--lgtm",
        action="store_true",
        default=False,
        help="Synchronize test results to LGTM",
    )
    group.addoption(
        "--lgtm-url", dest="lgtm_api_url", help="LGTM base URL (or LGTM_API_URL)"
    )
    group.addoption(
        "--lgtm-token", dest="lgtm_api_token", help="API token (or LGTM_API_TOKEN)"
    )
    group.addoption(
        "--lgtm-project",
        dest="lgtm_project_key",
        help="Project key, e.g. ENG (or LGTM_PROJECT_KEY)",
    )
    group.addoption("--lgtm-run-name", dest="lgtm_run_name", help="Test run name")
    group.addoption(
        "--lgtm-environment", dest="lgtm_environment", help="Environment name"
    )
    group.addoption("--lgtm-cycle", dest="lgtm_cycle", help="Cycle name")
    group.addoption(
        "--lgtm-no-auto-create",
        action="store_true",
        default=False,
        help="Do not create LGTM cases for unmatched tests",
    )
    group.addoption(
        "--lgtm-no-logs",
        action="store_true",
        default=False,
        help="Do not upload captured output as run logs",
    )
    group.addoption(
        "--lgtm-defects",
        action="store_true",
        default=False,
        help="File a defect for every failed test",
    )
    group.addoption(
        "--lgtm-summary-json",
        type=Path,
        default=None,
        help="Write the run summary as JSON to this path",
    )
    group.addoption(
        "--lgtm-debug", action="store_true", default=False, help="Verbose logging"
    )


def pytest_configure(config: pytest.Config) -> None:
    """Register the reporter when ``--lgtm`` is given."""
    config.addinivalue_line(
        "markers", f"{MARKER}(*case_keys): link a test to LGTM cases, e.g. ENG-42"
    )
    if not config.getoption("lgtm") or hasattr(config, "workerinput"):
        return
    # Nothing runs, so there is nothing to report.
    if config.getoption("collectonly"):
        return

    options = reporter_options(config)
    configure_logging(debug=options["debug"], stream=sys.__stderr__)
    reporter = LgtmReporter(options)
    if reporter.debug:
        configure_logging(debug=True)

    config.pluginmanager.register(
        LgtmPlugin(
            reporter=reporter,
            summary_path=config.getoption("lgtm_summary_json"),
        ),
        PLUGIN_NAME,
    )


def reporter_options(config: pytest.Config) -> dict[str, Any]:
    """Translate command line options into reporter options."""
    options: dict[str, Any] = {
        name: config.getoption(dest) for dest, name in OPTION_FIELDS.items()
    }
    options["auto_create_test_cases"] = not config.getoption("lgtm_no_auto_create")
    options["upload_logs"] = not config.getoption("lgtm_no_logs")
    options["auto_create_defects"] = config.getoption("lgtm_defects")
    options["debug"] = config.getoption("lgtm_debug")
    return options


@pytest.fixture
def lgtm_case(
    record_property: Callable[[str, object], None],
) -> Callable[[str | int], None]:
    """Link the running test to an LGTM case by key (``"ENG-42"``) or number."""

    def _link(case: str | int) -> None:
        record_property(METADATA_PROPERTY, case_reference(case))

    return _link


def to_test_item(item: pytest.Item) -> TestItem:
    """Describe a collected pytest item."""
    tags: list[str] = []
    for marker in item.iter_markers():
        if marker.name == MARKER:
            tags.extend(f"@{arg}" for arg in marker.args)
        else:
            tags.append(marker.name)
    return TestItem(id=item.nodeid, title_path=title_path(item.nodeid), tags=tags)


def title_path(nodeid: str) -> list[str]:
    """Split a node id into its path segments.

    Parametrize ids are kept whole on the last segment, even when they
    contain ``::``.
    """
    base, bracket, params = nodeid.partition("[")
    path = base.split("::")
    path[-1] += bracket + params
    return path


def captured_output(report: pytest.TestReport, stream: str) -> str:
    """Output captured during the report's own phase only."""
    title = f"Captured {stream} {report.when}"
    return "".join(content for name, content in report.sections if name == title)


def attempt_status(reports: Sequence[pytest.TestReport]) -> RunnerStatus:
    """Collapse the phase reports of one attempt into a runner status."""
    outcomes = {report.outcome for report in reports}
    if "rerun" in outcomes:
        return "rerun"
    if "failed" in outcomes:
        return "failed"
    if "skipped" in outcomes:
        return "skipped"
    return "passed"


def attempt_error(reports: Sequence[pytest.TestReport]) -> TestError | None:
    """Error of the first failing phase, if any."""
    for report in reports:
        if report.outcome in {"failed", "rerun"} and report.longrepr is not None:
            crash = getattr(report.longrepr, "reprcrash", None)
            return TestError(
                message=getattr(crash, "message", None) or f"{report.when} failed",
                stack=report.longreprtext or None,
            )
    return None


def to_test_outcome(reports: Sequence[pytest.TestReport]) -> TestOutcome:
    """Build the outcome of one attempt from its phase reports."""
    return TestOutcome(
        status=attempt_status(reports),
        duration=sum(report.duration for report in reports),
        error=attempt_error(reports),
        properties=list(reports[-1].user_properties),
    )


def write_summary(path: Path, summary: RunSummary) -> None:
    """Write the run summary as JSON, logging instead of raising on failure."""
    try:
        path.write_text(json.dumps(format_summary(summary), indent=2))
    except OSError as exc:
        log.error("Failed to write LGTM summary to %s: %s", path, exc)


@dataclass(kw_only=True)
class LgtmPlugin:
    """pytest hooks feeding an ``LgtmReporter``.

    Phase reports are grouped per attempt: an attempt ends with its teardown
    report, or early with a ``rerun`` report from pytest-rerunfailures.
    """

    reporter: LgtmReporter
    summary_path: Path | None = None
    items: dict[str, TestItem] = field(default_factory=dict)
    attempts: dict[str, list[pytest.TestReport]] = field(default_factory=dict)
    started_at: float = field(default_factory=time.monotonic)

    @pytest.hookimpl(trylast=True)
    def pytest_collection_finish(self, session: pytest.Session) -> None:
        self.items = {item.nodeid: to_test_item(item) for item in session.items}
        self.started_at = time.monotonic()
        asyncio.run(self.reporter.on_begin(list(self.items.values())))

    def pytest_collectreport(self, report: pytest.CollectReport) -> None:
        if report.failed:
            self.reporter.on_error(f"Collection failed: {report.nodeid}")

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        if (test := self.items.get(report.nodeid)) is None:
            return

        if stdout := captured_output(report, "stdout"):
            self.reporter.on_stdout(stdout, test)
        if stderr := captured_output(report, "stderr"):
            self.reporter.on_stderr(stderr, test)

        reports = self.attempts.setdefault(report.nodeid, [])
        reports.append(report)
        if report.outcome != "rerun" and report.when != "teardown":
            return

        del self.attempts[report.nodeid]
        if report.failed or any(r.when != "teardown" for r in reports):
            self.reporter.on_test_end(test, to_test_outcome(reports))

    def pytest_sessionfinish(self, session: pytest.Session) -> None:
        outcome = RunOutcome(duration=time.monotonic() - self.started_at)
        summary = asyncio.run(self.reporter.on_end(outcome))
        if summary is not None and self.summary_path is not None:
            write_summary(self.summary_path, summary)

    def pytest_terminal_summary(
        self, terminalreporter: pytest.TerminalReporter
    ) -> None:
        if (summary := self.reporter.summary) is None:
            return
        terminalreporter.write_sep("-", "LGTM")
        terminalreporter.write_line(summary.line())
        terminalreporter.write_line(f"View results: {summary.url}")

    def pytest_unconfigure(self, config: pytest.Config) -> None:
        self.reporter.on_exit()
