"""Resolve the remote project, environment, cycle and case directory."""

import logging
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from lgtm_reporter.client import LgtmClient
from lgtm_reporter.client.models import Project, TestCase

log = logging.getLogger(__name__)

TREE_CHILD_FIELDS = ("children", "tests", "testCases")


async def resolve_project(client: LgtmClient, key: str) -> Project | None:
    """Return the project whose key matches ``key`` case-insensitively, or None.

    A missing project is not an error here; the caller decides it is fatal.
    """
    projects = await client.list_projects()
    wanted = key.upper()
    return next((p for p in projects if p.key.upper() == wanted), None)


async def resolve_environment_id(
    client: LgtmClient, project_id: str, name: str | None
) -> str | None:
    """Resolve an environment name to its id, warning when it cannot."""
    if not name:
        return None

    try:
        environments = await client.list_environments(project_id)
    except Exception as exc:  # noqa: BLE001
        log.warning("Failed to resolve environment %r: %s", name, exc)
        return None

    wanted = name.lower()
    for environment in environments:
        if environment.name.lower() == wanted:
            log.debug("Resolved environment: %s (%s)", environment.name, environment.id)
            return environment.id

    log.warning("Environment %r not found in project", name)
    return None


async def resolve_cycle_id(
    client: LgtmClient, project_id: str, name: str | None
) -> str | None:
    """Resolve a cycle name to its id, warning when it cannot."""
    if not name:
        return None

    try:
        cycles = await client.list_cycles(project_id)
    except Exception as exc:  # noqa: BLE001
        log.warning("Failed to resolve cycle %r: %s", name, exc)
        return None

    wanted = name.lower()
    for cycle in cycles:
        if cycle.name.lower() == wanted:
            log.debug("Resolved cycle: %s (%s)", cycle.name, cycle.id)
            return cycle.id

    log.warning("Cycle %r not found in project", name)
    return None


def flatten_test_case_tree(data: Any) -> Sequence[TestCase]:
    """Collect every test case node from a nested test repository tree.

    Suites and sections nest their content under ``children``, ``tests`` or
    ``testCases``. A node is a test case when it has ``id``, ``title`` and
    ``caseKey``.
    """
    cases: list[TestCase] = []

    def walk(items: Any) -> None:
        if not isinstance(items, list):
            return
        for item in items:
            if not isinstance(item, dict):
                continue
            if item.get("caseKey") and item.get("id") and item.get("title"):
                try:
                    cases.append(TestCase.model_validate(item))
                except ValidationError:
                    log.debug("Skipping malformed test case node %r", item.get("id"))
            for child_field in TREE_CHILD_FIELDS:
                walk(item.get(child_field))

    walk(data)
    return cases


async def fetch_test_cases(client: LgtmClient, project_id: str) -> Sequence[TestCase]:
    """Fetch and flatten the project's test cases; empty on API failure."""
    try:
        data = await client.list_test_cases(project_id)
    except Exception as exc:  # noqa: BLE001
        log.warning("Could not fetch existing test cases: %s", exc)
        return []

    cases = flatten_test_case_tree(data)
    log.debug("Found %d existing test case(s) in project", len(cases))
    return cases
