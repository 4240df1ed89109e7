"""LGTM test management API client."""

import logging
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any

import aiohttp
from yarl import URL

from lgtm_reporter.client.errors import LgtmApiError
from lgtm_reporter.client.models import (
    BulkSubmitResponse,
    Cycle,
    Defect,
    Environment,
    NewDefect,
    NewTestCase,
    NewTestRun,
    Project,
    ResultEntry,
    RunLog,
    TestCase,
    TestRun,
)
from lgtm_reporter.config import ReporterConfig
from lgtm_reporter.models.result import RunStatus

log = logging.getLogger(__name__)


def api_base_url(api_url: str) -> URL:
    """Return the ``/api/`` root for an LGTM instance URL."""
    return URL(api_url.rstrip("/") + "/api/")


@dataclass(frozen=True, kw_only=True)
class LgtmClient:
    """Thin typed client over the LGTM HTTP/JSON API.

    All paths are relative to ``<api_url>/api/``. Any non-2xx answer raises
    ``LgtmApiError``; callers decide whether that is fatal.
    """

    config: ReporterConfig
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: ReporterConfig
    ) -> AsyncGenerator["LgtmClient", None]:
        """Create client with managed session lifecycle."""
        headers = {
            "Authorization": f"Bearer {config.api_token.get_secret_value()}",
            "Accept": "application/json",
        }
        async with aiohttp.ClientSession(
            base_url=api_base_url(config.api_url),
            headers=headers,
        ) as session:
            yield cls(config=config, session=session)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: Any = None,
    ) -> Any:
        """Send one request and return the decoded JSON body."""
        log.debug("%s %s", method, path)
        async with self.session.request(
            method, path, params=params, json=json
        ) as response:
            if response.status >= 400:
                raise await LgtmApiError.from_response(response)
            return await response.json()

    async def list_projects(self) -> Sequence[Project]:
        """List all projects visible to the token."""
        data = await self.request("GET", "teams")
        return [Project.model_validate(item) for item in data]

    async def list_environments(self, project_id: str) -> Sequence[Environment]:
        """List environments of a project."""
        data = await self.request(
            "GET", "environments", params={"projectId": project_id}
        )
        return [Environment.model_validate(item) for item in data]

    async def list_cycles(self, project_id: str) -> Sequence[Cycle]:
        """List cycles of a project."""
        data = await self.request("GET", "cycles", params={"projectId": project_id})
        return [Cycle.model_validate(item) for item in data]

    async def list_test_cases(self, project_id: str) -> Any:
        """Return the raw test repository tree of a project.

        The tree nests suites and sections; see
        ``lgtm_reporter.directory.flatten_test_case_tree``.
        """
        return await self.request(
            "GET", "test-repo", params={"projectId": project_id}
        )

    async def create_test_case(self, new_case: NewTestCase) -> TestCase:
        """Create a test case."""
        data = await self.request("POST", "test-cases", json=dump(new_case))
        return TestCase.model_validate(data)

    async def create_test_run(self, new_run: NewTestRun) -> TestRun:
        """Create a test run for the given cases."""
        data = await self.request("POST", "test-runs", json=dump(new_run))
        return TestRun.model_validate(data)

    async def update_test_run(self, run_id: str, status: RunStatus) -> TestRun:
        """Move a test run to a new status."""
        data = await self.request(
            "PATCH", f"test-runs/{run_id}", json={"status": status}
        )
        return TestRun.model_validate(data)

    async def submit_results(
        self, run_id: str, entries: Sequence[ResultEntry]
    ) -> BulkSubmitResponse:
        """Upsert results of a run, keyed by test case id."""
        payload = {"results": [dump(entry) for entry in entries], "source": "api"}
        data = await self.request("POST", f"test-runs/{run_id}/results", json=payload)
        return BulkSubmitResponse.model_validate(data)

    async def append_run_log(self, run_id: str, content: str, step: str) -> RunLog:
        """Append one chunk of log text to a run."""
        data = await self.request(
            "POST",
            f"test-runs/{run_id}/logs",
            json={"content": content, "step": step},
        )
        return RunLog.model_validate(data)

    async def create_defect(self, new_defect: NewDefect) -> Defect:
        """Create a defect."""
        data = await self.request("POST", "defects", json=dump(new_defect))
        return Defect.model_validate(data)


def dump(model: Any) -> dict[str, Any]:
    """Serialize a request model to its wire form."""
    result: dict[str, Any] = model.model_dump(
        mode="json", by_alias=True, exclude_none=True
    )
    return result
