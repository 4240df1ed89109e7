"""Run lifecycle controller synchronizing runner results to LGTM."""

import logging
from collections.abc import Callable, Mapping, Sequence
from contextlib import AbstractAsyncContextManager
from enum import StrEnum
from typing import Any, Literal

from pydantic import ValidationError

from lgtm_reporter.client import LgtmClient
from lgtm_reporter.client.models import NewTestRun, Project, TestRun
from lgtm_reporter.config import ConfigError, ReporterConfig
from lgtm_reporter.defects import file_defects
from lgtm_reporter.directory import (
    fetch_test_cases,
    resolve_cycle_id,
    resolve_environment_id,
    resolve_project,
)
from lgtm_reporter.logs import LogBuffer, upload_logs
from lgtm_reporter.mapper import CaseMapper
from lgtm_reporter.models.runner import RunOutcome, TestItem, TestOutcome
from lgtm_reporter.result_queue import ResultQueue
from lgtm_reporter.submitter import submit_results
from lgtm_reporter.summary import (
    RunSummary,
    build_summary,
    derive_run_status,
    log_run_summary,
)
from lgtm_reporter.titles import (
    build_test_title,
    extract_case_metadata,
    format_error_comment,
    map_runner_status,
)

log = logging.getLogger(__name__)

type ClientFactory = Callable[
    [ReporterConfig], AbstractAsyncContextManager[LgtmClient]
]


class ReporterState(StrEnum):
    """Lifecycle states of the reporter."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    RUNNING = "running"
    FINALIZING = "finalizing"
    DONE = "done"
    ERRORED = "errored"


class InitializationError(Exception):
    """Raised when the run cannot be set up remotely."""


class LgtmReporter:
    """Synchronizes one test run's results to LGTM.

    The runner drives the lifecycle: ``on_begin`` once with all tests,
    ``on_test_end``/``on_stdout``/``on_stderr`` while tests run, ``on_end``
    once at the end, then ``on_exit``. Network calls happen only in
    ``on_begin`` and ``on_end``; per-test callbacks are in-memory.

    No method raises into the runner. Any failure while setting up moves the
    reporter to ``ERRORED`` and every later callback becomes a no-op.
    """

    def __init__(
        self,
        options: Mapping[str, Any] | None = None,
        *,
        env: Mapping[str, str] | None = None,
        client_factory: ClientFactory = LgtmClient.from_config,
    ) -> None:
        self.state = ReporterState.UNINITIALIZED
        self.init_error: BaseException | None = None
        self.config: ReporterConfig | None = None
        self.project: Project | None = None
        self.run: TestRun | None = None
        self.summary: RunSummary | None = None
        self.mapper = CaseMapper()
        self.queue = ResultQueue()
        self.logs = LogBuffer()
        self.client_factory = client_factory

        try:
            self.config = ReporterConfig.resolve(options, env)
        except (ConfigError, ValidationError) as exc:
            self._fail(exc, "Invalid LGTM reporter configuration")

    @property
    def debug(self) -> bool:
        """Whether debug output (tracebacks included) is enabled."""
        return self.config is not None and self.config.debug

    async def on_begin(self, tests: Sequence[TestItem]) -> None:
        """Resolve the project, map tests and open the remote run."""
        if self.state is ReporterState.ERRORED:
            log.error("LGTM reporter disabled: %s", self.init_error)
            return
        if self.state is not ReporterState.UNINITIALIZED or self.config is None:
            log.warning("Ignoring on_begin in state %s", self.state)
            return

        self.state = ReporterState.INITIALIZING
        log.info(
            'Starting LGTM reporter for project "%s" with %d tests',
            self.config.project_key,
            len(tests),
        )

        try:
            async with self.client_factory(self.config) as client:
                await self._initialize(client, self.config, tests)
        except Exception as exc:  # noqa: BLE001
            self._fail(exc, "Failed to initialize LGTM reporter")

    def on_test_end(self, test: TestItem, outcome: TestOutcome) -> None:
        """Queue the result of one test attempt (in-memory only)."""
        if self.state is not ReporterState.RUNNING or self.config is None:
            return

        try:
            if (metadata := extract_case_metadata(outcome.properties)) is not None:
                self.mapper.apply_override(test.id, metadata)

            if self.config.upload_logs:
                for chunk in outcome.stdout:
                    self.logs.append(test.id, chunk)
                for chunk in outcome.stderr:
                    self.logs.append(test.id, chunk, "stderr")

            title = build_test_title(test.title_path)
            case_id = self.mapper.case_id_for(test.id)
            if case_id is None:
                log.debug("Skipping unmapped test: %s", title)
                return

            self.queue.enqueue(
                case_id,
                map_runner_status(outcome.status),
                round(outcome.duration * 1000),
                format_error_comment(outcome.error),
                title,
                outcome.error,
            )
        except Exception as exc:  # noqa: BLE001
            log.error(
                "Failed to record result of %s: %s", test.id, exc, exc_info=self.debug
            )

    def on_stdout(self, chunk: str | bytes, test: TestItem | None = None) -> None:
        """Buffer standard output produced by a test."""
        self._buffer_output(chunk, test, "stdout")

    def on_stderr(self, chunk: str | bytes, test: TestItem | None = None) -> None:
        """Buffer standard error produced by a test."""
        self._buffer_output(chunk, test, "stderr")

    def on_error(self, message: str) -> None:
        """Report an error raised outside of any test."""
        log.error("Global error: %s", message or "Unknown error")

    async def on_end(self, outcome: RunOutcome) -> RunSummary | None:
        """Flush results, logs and defects, then close the remote run."""
        if self.state is ReporterState.ERRORED:
            log.error("Skipping result upload due to initialization error")
            return None
        if self.state is not ReporterState.RUNNING or self.config is None:
            log.debug("Nothing to synchronize in state %s", self.state)
            return None

        self.state = ReporterState.FINALIZING
        try:
            async with self.client_factory(self.config) as client:
                self.summary = await self._finalize(client, self.config, outcome)
        except Exception as exc:  # noqa: BLE001
            self._fail(exc, "Failed to finalize LGTM results")
            return None

        self.state = ReporterState.DONE
        return self.summary

    def on_exit(self) -> None:
        """Runner is exiting; all work was done in ``on_end``."""
        log.debug("LGTM reporter exiting in state %s", self.state)

    async def _initialize(
        self, client: LgtmClient, config: ReporterConfig, tests: Sequence[TestItem]
    ) -> None:
        self.project = await resolve_project(client, config.project_key)
        if self.project is None:
            raise InitializationError(
                f'Project with key "{config.project_key}" not found'
            )
        log.debug("Resolved project: %s (%s)", self.project.name, self.project.id)

        environment_id = await resolve_environment_id(
            client, self.project.id, config.environment
        )
        cycle_id = await resolve_cycle_id(client, self.project.id, config.cycle)

        self.mapper.index(await fetch_test_cases(client, self.project.id))
        await self.mapper.map_tests(
            tests,
            client,
            self.project.id,
            auto_create=config.auto_create_test_cases,
        )

        if not (case_ids := self.mapper.case_ids()):
            log.warning("No test cases mapped, skipping test run creation")
            self.state = ReporterState.DONE
            return

        self.run = await client.create_test_run(
            NewTestRun(
                name=config.run_name,
                project_id=self.project.id,
                test_case_ids=case_ids,
                environment_id=environment_id,
                cycle_id=cycle_id,
            )
        )
        log.info(
            "Created test run #%d with %d cases",
            self.run.run_number,
            self.run.total_cases,
        )

        await client.update_test_run(self.run.id, "in_progress")
        self.state = ReporterState.RUNNING

    async def _finalize(
        self, client: LgtmClient, config: ReporterConfig, outcome: RunOutcome
    ) -> RunSummary:
        if self.run is None or self.project is None:
            raise InitializationError("Finalizing without a test run")

        results = self.queue.deduplicated()
        submitted = await submit_results(
            client, self.run.id, results, config.batch_size
        )

        logs_uploaded = 0
        if config.upload_logs:
            logs_uploaded = await upload_logs(
                client,
                self.run.id,
                self.logs,
                self.mapper.title_for,
                config.log_chunk_size,
            )

        defects_created = 0
        if config.auto_create_defects:
            defects_created = await file_defects(
                client, self.project.id, self.run.id, results
            )

        status = derive_run_status([result.status for result in results])
        try:
            await client.update_test_run(self.run.id, status)
        except Exception as exc:  # noqa: BLE001
            log.error(
                "Failed to set test run #%d status to %s: %s",
                self.run.run_number,
                status,
                exc,
            )

        summary = build_summary(
            run_number=self.run.run_number,
            results=results,
            duration=outcome.duration,
            submitted=submitted,
            logs_uploaded=logs_uploaded,
            defects_created=defects_created,
            url=config.api_url,
        )
        log_run_summary(log, summary)
        return summary

    def _buffer_output(
        self,
        chunk: str | bytes,
        test: TestItem | None,
        stream: Literal["stdout", "stderr"],
    ) -> None:
        if (
            test is None
            or self.state is not ReporterState.RUNNING
            or self.config is None
            or not self.config.upload_logs
        ):
            return
        self.logs.append(test.id, chunk, stream)

    def _fail(self, exc: BaseException, message: str) -> None:
        self.state = ReporterState.ERRORED
        self.init_error = exc
        log.error("%s: %s", message, exc, exc_info=self.debug)
