"""Tests for mapping local tests to LGTM cases."""

from unittest.mock import Mock

import pytest

from lgtm_reporter.client import LgtmApiError
from lgtm_reporter.client.models import NewTestCase, TestCase
from lgtm_reporter.mapper import CaseMapper
from lgtm_reporter.models.runner import CaseMetadata, TestItem

LOGIN = TestCase(
    id="case-1", title="tests/test_login.py > test_ok", case_key="ENG-1", case_number=1
)
LOGOUT = TestCase(
    id="case-2",
    title="tests/test_logout.py > test_ok",
    case_key="ENG-2",
    case_number=2,
)


def item(test_id: str, *tags: str) -> TestItem:
    """Build a test item whose title path is its node id."""
    return TestItem(id=test_id, title_path=test_id.split("::"), tags=tags)


@pytest.fixture
def mapper() -> CaseMapper:
    """Mapper indexing the login and logout cases."""
    mapper = CaseMapper()
    mapper.index([LOGIN, LOGOUT])
    return mapper


async def test_maps_by_tag_title_and_creation(
    mapper: CaseMapper, client_mock: Mock
) -> None:
    """Maps one test per strategy and creates only the unknown one."""
    client_mock.create_test_case.return_value = TestCase(
        id="case-3", title="tests/test_cart.py > test_new", case_key="ENG-3"
    )
    tests = [
        item("tests/test_anything.py::test_a", "@ENG-1"),
        item("tests/test_logout.py::test_ok"),
        item("tests/test_cart.py::test_new"),
    ]

    await mapper.map_tests(tests, client_mock, "proj-1", auto_create=True)

    assert mapper.case_id_for("tests/test_anything.py::test_a") == "case-1"
    assert mapper.case_id_for("tests/test_logout.py::test_ok") == "case-2"
    assert mapper.case_id_for("tests/test_cart.py::test_new") == "case-3"
    assert mapper.case_ids() == ["case-1", "case-2", "case-3"]
    client_mock.create_test_case.assert_awaited_once_with(
        NewTestCase(title="tests/test_cart.py > test_new", project_id="proj-1")
    )


async def test_tag_wins_over_title(mapper: CaseMapper, client_mock: Mock) -> None:
    """A known tag beats a matching title."""
    tests = [item("tests/test_login.py::test_ok", "@ENG-2")]

    await mapper.map_tests(tests, client_mock, "proj-1", auto_create=True)

    assert mapper.case_id_for("tests/test_login.py::test_ok") == "case-2"


async def test_unknown_tag_falls_back_to_title(
    mapper: CaseMapper, client_mock: Mock
) -> None:
    """A tag naming no remote case is ignored in favor of the title."""
    tests = [item("tests/test_login.py::test_ok", "@ENG-999")]

    await mapper.map_tests(tests, client_mock, "proj-1", auto_create=True)

    assert mapper.case_id_for("tests/test_login.py::test_ok") == "case-1"
    client_mock.create_test_case.assert_not_awaited()


async def test_title_match_is_case_insensitive(
    mapper: CaseMapper, client_mock: Mock
) -> None:
    """Matches titles regardless of case."""
    tests = [item("TESTS/test_LOGIN.py::test_OK")]

    await mapper.map_tests(tests, client_mock, "proj-1", auto_create=False)

    assert mapper.case_id_for("TESTS/test_LOGIN.py::test_OK") == "case-1"


async def test_duplicate_titles_create_one_case(client_mock: Mock) -> None:
    """Two tests with the same title share one created case."""
    client_mock.create_test_case.return_value = TestCase(
        id="case-9", title="tests/test_a.py > test_x", case_key="ENG-9"
    )
    mapper = CaseMapper()
    tests = [
        TestItem(id="first", title_path=["tests/test_a.py", "test_x"]),
        TestItem(id="second", title_path=["tests/test_a.py", "test_x"]),
    ]

    await mapper.map_tests(tests, client_mock, "proj-1", auto_create=True)

    client_mock.create_test_case.assert_awaited_once()
    assert mapper.case_id_for("first") == "case-9"
    assert mapper.case_id_for("second") == "case-9"
    assert mapper.case_ids() == ["case-9"]


async def test_leaves_unmatched_tests_unmapped(
    mapper: CaseMapper, client_mock: Mock
) -> None:
    """Without auto-creation unmatched tests stay unmapped."""
    tests = [item("tests/test_cart.py::test_new")]

    await mapper.map_tests(tests, client_mock, "proj-1", auto_create=False)

    assert mapper.case_id_for("tests/test_cart.py::test_new") is None
    assert mapper.unmapped == ["tests/test_cart.py::test_new"]
    assert len(mapper) == 0
    client_mock.create_test_case.assert_not_awaited()


async def test_failed_creation_leaves_test_unmapped(
    mapper: CaseMapper, client_mock: Mock
) -> None:
    """A creation error is not fatal."""
    client_mock.create_test_case.side_effect = LgtmApiError("Forbidden", 403)
    tests = [
        item("tests/test_cart.py::test_new"),
        item("tests/test_login.py::test_ok"),
    ]

    await mapper.map_tests(tests, client_mock, "proj-1", auto_create=True)

    assert mapper.case_id_for("tests/test_cart.py::test_new") is None
    assert mapper.case_id_for("tests/test_login.py::test_ok") == "case-1"


class TestApplyOverride:
    """Tests for runtime case overrides."""

    @pytest.fixture
    async def mapped(self, mapper: CaseMapper, client_mock: Mock) -> CaseMapper:
        """Mapper with both indexed cases mapped in the run."""
        tests = [
            item("tests/test_login.py::test_ok"),
            item("tests/test_logout.py::test_ok"),
        ]
        await mapper.map_tests(tests, client_mock, "proj-1", auto_create=False)
        return mapper

    async def test_by_case_key(self, mapped: CaseMapper) -> None:
        """Remaps to a case of the run by key."""
        applied = mapped.apply_override(
            "tests/test_login.py::test_ok", CaseMetadata(case_key="eng-2")
        )

        assert applied is True
        assert mapped.case_id_for("tests/test_login.py::test_ok") == "case-2"

    async def test_by_case_number(self, mapped: CaseMapper) -> None:
        """Remaps to a case of the run by number."""
        applied = mapped.apply_override(
            "tests/test_logout.py::test_ok", CaseMetadata(case_id=1)
        )

        assert applied is True
        assert mapped.case_id_for("tests/test_logout.py::test_ok") == "case-1"

    async def test_ignores_case_outside_run(self, mapped: CaseMapper) -> None:
        """Leaves the mapping alone for cases not in the run."""
        applied = mapped.apply_override(
            "tests/test_login.py::test_ok", CaseMetadata(case_key="ENG-404")
        )

        assert applied is False
        assert mapped.case_id_for("tests/test_login.py::test_ok") == "case-1"

    async def test_maps_previously_unmapped_test(self, mapped: CaseMapper) -> None:
        """An override can map a test the mapper could not."""
        mapped.unmapped.append("tests/test_new.py::test_x")

        mapped.apply_override("tests/test_new.py::test_x", CaseMetadata(case_id=2))

        assert mapped.case_id_for("tests/test_new.py::test_x") == "case-2"
        assert mapped.unmapped == []


def test_title_for_falls_back_to_test_id() -> None:
    """Unknown tests are labelled with their id."""
    assert CaseMapper().title_for("tests/test_a.py::test_x") == (
        "tests/test_a.py::test_x"
    )


async def test_tagged_tests_without_auto_create(client_mock: Mock) -> None:
    """Two tagged tests map, the untagged unknown one stays unmapped."""
    mapper = CaseMapper()
    mapper.index(
        [
            TestCase(id="case-1", title="Login works", case_key="ENG-1"),
            TestCase(id="case-2", title="Logout works", case_key="ENG-2"),
        ]
    )
    tests = [
        item("tests/test_a.py::test_one", "@ENG-1"),
        item("tests/test_a.py::test_two", "@ENG-2"),
        item("tests/test_a.py::test_three"),
    ]

    await mapper.map_tests(tests, client_mock, "proj-1", auto_create=False)

    assert len(mapper) == 2
    assert mapper.unmapped == ["tests/test_a.py::test_three"]
