"""Tests for title, case key and status helpers."""

import logging

import pytest

from lgtm_reporter.models.runner import CaseMetadata, TestError
from lgtm_reporter.titles import (
    build_test_title,
    case_reference,
    extract_case_key_from_tag,
    extract_case_metadata,
    format_error_comment,
    map_runner_status,
)


class TestBuildTestTitle:
    """Tests for build_test_title."""

    def test_joins_path_segments(self) -> None:
        """Joins file, class and test name."""
        title = build_test_title(["tests/test_login.py", "TestLogin", "test_ok"])

        assert title == "tests/test_login.py > TestLogin > test_ok"

    def test_drops_empty_segments(self) -> None:
        """Skips empty root segments."""
        assert build_test_title(["", "tests/test_a.py", "test_x"]) == (
            "tests/test_a.py > test_x"
        )

    def test_empty_path(self) -> None:
        """Returns empty string for an empty path."""
        assert build_test_title([]) == ""


class TestExtractCaseKeyFromTag:
    """Tests for extract_case_key_from_tag."""

    @pytest.mark.parametrize(
        ("tags", "expected"),
        [
            (["@ENG-42"], "ENG-42"),
            (["@eng-42"], "ENG-42"),
            (["ENG-7"], "ENG-7"),
            (["slow", "@QA-1"], "QA-1"),
            (["@ENG42", "@ENG-", "@-42", "@E1-2"], None),
            ([], None),
        ],
    )
    def test_extracts_first_eligible_tag(
        self, tags: list[str], expected: str | None
    ) -> None:
        """Returns the first tag shaped like LETTERS-DIGITS, uppercased."""
        assert extract_case_key_from_tag(tags) == expected

    def test_warns_on_conflicting_keys(self, caplog: pytest.LogCaptureFixture) -> None:
        """Takes the first key and warns when several differ."""
        with caplog.at_level(logging.WARNING):
            key = extract_case_key_from_tag(["@ENG-1", "@ENG-2"])

        assert key == "ENG-1"
        assert "several case keys" in caplog.text

    def test_same_key_twice_is_not_a_conflict(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Does not warn when the same key appears with different casing."""
        with caplog.at_level(logging.WARNING):
            key = extract_case_key_from_tag(["@ENG-1", "@eng-1"])

        assert key == "ENG-1"
        assert caplog.text == ""


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        ("passed", "passed"),
        ("failed", "failed"),
        ("timedout", "failed"),
        ("skipped", "skipped"),
        ("interrupted", "blocked"),
        ("rerun", "failed"),
        ("something-new", "failed"),
    ],
)
def test_map_runner_status(status: str, expected: str) -> None:
    """Maps runner statuses to LGTM result statuses."""
    assert map_runner_status(status) == expected


class TestFormatErrorComment:
    """Tests for format_error_comment."""

    def test_none_without_error(self) -> None:
        """Returns None when there is no error."""
        assert format_error_comment(None) is None

    def test_none_for_empty_error(self) -> None:
        """Returns None when the error has no content."""
        assert format_error_comment(TestError()) is None

    def test_formats_all_parts(self) -> None:
        """Includes message, source snippet and stack."""
        comment = format_error_comment(
            TestError(message="assert 1 == 2", snippet="> assert a == b", stack="tb")
        )

        assert comment == (
            "assert 1 == 2\n\n--- Source ---\n> assert a == b\n\n--- Stack ---\ntb"
        )

    def test_message_only(self) -> None:
        """Uses the message alone when nothing else is known."""
        assert format_error_comment(TestError(message="boom")) == "boom"


class TestExtractCaseMetadata:
    """Tests for extract_case_metadata."""

    def test_reads_mapping(self) -> None:
        """Reads a mapping recorded under the lgtm property."""
        metadata = extract_case_metadata(
            [("other", 1), ("lgtm", {"caseKey": "ENG-9"})]
        )

        assert metadata == CaseMetadata(case_key="ENG-9")

    def test_reads_json_string(self) -> None:
        """Reads a JSON object string."""
        metadata = extract_case_metadata([("lgtm", '{"caseId": 12}')])

        assert metadata == CaseMetadata(case_id=12)

    def test_ignores_malformed_payload(self) -> None:
        """Returns None for payloads that are not case references."""
        assert extract_case_metadata([("lgtm", "not json")]) is None
        assert extract_case_metadata([("lgtm", 42)]) is None

    def test_none_without_property(self) -> None:
        """Returns None when no lgtm property was recorded."""
        assert extract_case_metadata([("owner", "qa")]) is None


@pytest.mark.parametrize(
    ("case", "expected"),
    [
        (42, {"caseId": 42}),
        ("42", {"caseId": 42}),
        ("ENG-42", {"caseKey": "ENG-42"}),
        ("login", {"caseKey": "login"}),
    ],
)
def test_case_reference(case: str | int, expected: dict[str, str | int]) -> None:
    """Builds case references from numbers and keys."""
    assert case_reference(case) == expected
