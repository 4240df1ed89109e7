"""Shared fixtures."""

from collections.abc import AsyncGenerator, Callable, Generator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from unittest.mock import Mock

import pytest
from aioresponses import aioresponses as aioresponses_cls

from lgtm_reporter.client import LgtmClient
from lgtm_reporter.client.models import Project, TestRun
from lgtm_reporter.config import ReporterConfig

API_URL = "http://lgtm.test"


@pytest.fixture
def aioresponses() -> Generator[aioresponses_cls, None, None]:
    """Mock all aiohttp requests."""
    with aioresponses_cls() as mocked:
        yield mocked


@pytest.fixture
def config() -> ReporterConfig:
    """Create test configuration."""
    return ReporterConfig.resolve(
        {
            "api_url": API_URL,
            "api_token": "lgtm_v1_secret",
            "project_key": "ENG",
            "run_name": "CI run",
        },
        env={},
    )


@pytest.fixture
def client_mock() -> Mock:
    """Create mock client answering with one project and one run."""
    client = Mock(spec=LgtmClient)
    client.list_projects.return_value = [
        Project(id="proj-1", key="ENG", name="Engineering")
    ]
    client.list_environments.return_value = []
    client.list_cycles.return_value = []
    client.list_test_cases.return_value = []
    client.create_test_run.return_value = TestRun(
        id="run-1", run_number=7, total_cases=2
    )
    client.update_test_run.return_value = TestRun(
        id="run-1", run_number=7, status="in_progress"
    )
    return client


@pytest.fixture
def client_factory(
    client_mock: Mock,
) -> Callable[[ReporterConfig], AbstractAsyncContextManager[LgtmClient]]:
    """Client factory yielding the mock client."""

    @asynccontextmanager
    async def _factory(config: ReporterConfig) -> AsyncGenerator[LgtmClient, None]:
        yield client_mock

    return _factory
