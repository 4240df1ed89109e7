"""Pydantic models for LGTM API requests and responses."""

from collections.abc import Sequence
from typing import Literal

from pydantic import Field

from lgtm_reporter.models.base import Model
from lgtm_reporter.models.result import ResultStatus, RunStatus


class Project(Model):
    """A project (team) visible to the API token."""

    id: str
    key: str
    name: str


class Environment(Model):
    """An environment configured in a project."""

    id: str
    name: str


class Cycle(Model):
    """A test cycle configured in a project."""

    id: str
    name: str


class TestCase(Model):
    """A test case record from the test repository."""

    __test__ = False

    id: str
    title: str
    case_key: str
    case_number: int | None = None


class NewTestCase(Model):
    """Request body for creating a test case."""

    title: str
    project_id: str
    type: str = "functional"
    automation_status: Literal["automated"] = "automated"
    layer: str = "unit"
    status: Literal["draft", "active", "deprecated"] = "active"


class TestRun(Model):
    """A test run as returned by create and update calls."""

    __test__ = False

    id: str
    run_number: int
    status: RunStatus = "pending"
    total_cases: int = 0


class NewTestRun(Model):
    """Request body for creating a test run."""

    name: str
    project_id: str
    test_case_ids: Sequence[str]
    environment_id: str | None = None
    cycle_id: str | None = None


class ResultEntry(Model):
    """One entry of a bulk result submission."""

    test_case_id: str
    status: ResultStatus
    duration: int | None = None
    comment: str | None = None


class BulkSubmitResponse(Model):
    """Response of a bulk result submission."""

    updated: int = 0


class RunLog(Model):
    """One stored chunk of run log text."""

    id: str
    chunk_index: int | None = None


class NewDefect(Model):
    """Request body for creating a defect."""

    title: str
    project_id: str
    description: str | None = None
    severity: str = "normal"
    priority: str = "medium"
    defect_type: str = "functional"
    test_case_id: str | None = None
    test_run_id: str | None = None


class Defect(Model):
    """A defect record."""

    id: str
    title: str
    defect_key: str = Field(default="", description="Human readable key, e.g. ENG-D-7")
