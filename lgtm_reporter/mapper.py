"""Map local tests to LGTM test cases."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from lgtm_reporter.client import LgtmClient
from lgtm_reporter.client.models import NewTestCase, TestCase
from lgtm_reporter.models.runner import CaseMetadata, TestItem
from lgtm_reporter.titles import build_test_title, extract_case_key_from_tag

log = logging.getLogger(__name__)


@dataclass(kw_only=True)
class CaseMapper:
    """Association between local test ids and remote test case ids.

    Matching strategies, in priority order:

    1. a case key tag (``@ENG-42``) naming an indexed remote case
    2. a case-insensitive exact title match
    3. auto-creation of a new remote case, when enabled

    Tests matching none of them stay unmapped and are left out of the run.
    The mapping is built once by ``map_tests``; afterwards only
    ``apply_override`` may change it, and only to cases already in the run.
    """

    by_key: dict[str, TestCase] = field(default_factory=dict)
    by_title: dict[str, TestCase] = field(default_factory=dict)
    mapping: dict[str, str] = field(default_factory=dict)
    mapped_cases: dict[str, TestCase] = field(default_factory=dict)
    titles: dict[str, str] = field(default_factory=dict)
    unmapped: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.mapping)

    def index(self, cases: Sequence[TestCase]) -> None:
        """Add remote cases to the lookup tables."""
        for case in cases:
            self.by_title[case.title.lower()] = case
            self.by_key[case.case_key.upper()] = case

    async def map_tests(
        self,
        tests: Sequence[TestItem],
        client: LgtmClient,
        project_id: str,
        *,
        auto_create: bool,
    ) -> None:
        """Map every test to a remote case, creating cases when allowed."""
        for test in tests:
            title = build_test_title(test.title_path)
            self.titles[test.id] = title

            if (key := extract_case_key_from_tag(test.tags)) is not None:
                if (case := self.by_key.get(key)) is not None:
                    self._assign(test.id, case, "tag")
                    continue
                log.debug("Tag %s of %r is not a known case, trying title", key, title)

            if (case := self.by_title.get(title.lower())) is not None:
                self._assign(test.id, case, "title")
                continue

            if not auto_create:
                log.debug("No match for %r and auto-creation is disabled", title)
                self.unmapped.append(test.id)
                continue

            try:
                case = await client.create_test_case(
                    NewTestCase(title=title, project_id=project_id)
                )
            except Exception as exc:  # noqa: BLE001
                log.warning("Failed to create test case %r: %s", title, exc)
                self.unmapped.append(test.id)
                continue

            self.index([case])
            self._assign(test.id, case, "created")

        log.info("Mapped %d/%d tests to LGTM cases", len(self), len(tests))

    def apply_override(self, test_id: str, metadata: CaseMetadata) -> bool:
        """Point a test at another case of this run, from runtime metadata.

        Resolution uses only cases already mapped in this run, so it never
        touches the network. Unknown references leave the mapping unchanged.
        """
        case = self._find_mapped_case(metadata)
        if case is None:
            log.debug(
                "Runtime metadata references %s but it is not in the current run",
                metadata.case_key or metadata.case_id,
            )
            return False

        self.mapping[test_id] = case.id
        if test_id in self.unmapped:
            self.unmapped.remove(test_id)
        log.debug("Remapped %r via runtime metadata -> %s", test_id, case.case_key)
        return True

    def case_id_for(self, test_id: str) -> str | None:
        """Return the remote case id mapped to a local test, if any."""
        return self.mapping.get(test_id)

    def title_for(self, test_id: str) -> str:
        """Return the display title of a local test (its id when unknown)."""
        return self.titles.get(test_id, test_id)

    def case_ids(self) -> Sequence[str]:
        """Distinct mapped case ids, in mapping order."""
        return list(dict.fromkeys(self.mapping.values()))

    def _assign(self, test_id: str, case: TestCase, via: str) -> None:
        self.mapping[test_id] = case.id
        self.mapped_cases[case.id] = case
        log.debug("Mapped %r -> %s (via %s)", self.titles[test_id], case.case_key, via)

    def _find_mapped_case(self, metadata: CaseMetadata) -> TestCase | None:
        if metadata.case_key:
            wanted = metadata.case_key.upper()
            for case in self.mapped_cases.values():
                if case.case_key.upper() == wanted:
                    return case
        if metadata.case_id is not None:
            for case in self.mapped_cases.values():
                if case.case_number == metadata.case_id:
                    return case
        return None
