"""Tests for app.services.duplicates."""

from unittest.mock import MagicMock

import pytest

from app.services.duplicates import DuplicateDetector
from app.services.retriever import CandidateRetriever
from app.services.store import IssueStore


@pytest.fixture
def detector(store):
    return DuplicateDetector(CandidateRetriever(store))


class TestShortCircuits:
    def test_short_title_never_touches_the_store(self):
        store = MagicMock(spec=IssueStore)
        detector = DuplicateDetector(CandidateRetriever(store))

        result = detector.detect("Hi")

        assert result.has_duplicates is False
        assert result.candidates == []
        store.find_by_any_keyword.assert_not_called()

    def test_four_characters_is_still_short(self):
        store = MagicMock(spec=IssueStore)
        result = DuplicateDetector(CandidateRetriever(store)).detect("Bugs")

        assert result.has_duplicates is False
        store.find_by_any_keyword.assert_not_called()

    def test_title_without_keywords(self):
        store = MagicMock(spec=IssueStore)
        result = DuplicateDetector(CandidateRetriever(store)).detect("ab cd ef")

        assert result.has_duplicates is False
        store.find_by_any_keyword.assert_not_called()

    def test_empty_title(self, detector):
        assert detector.detect("").has_duplicates is False


class TestDetect:
    def test_login_crash_reported(self, detector, make_issue):
        existing = make_issue("Login page crashes on submit")

        result = detector.detect("Login page crashes when submitting")

        assert result.has_duplicates is True
        assert [c.issue.id for c in result.candidates] == [existing.id]
        assert result.candidates[0].score == pytest.approx(3 / 7)

    def test_startup_crash_scenario(self, detector, store, make_issue):
        existing = make_issue("Crash on startup", keywords=["crash", "startup"])

        # Retrieved through the shared "startup" keyword, but 2/6 words overlap.
        assert [i.id for i in CandidateRetriever(store).retrieve(["app", "crashes", "startup", "screen"])] == [existing.id]
        assert detector.detect("App crashes on startup screen").has_duplicates is False

        result = detector.detect("Crash on startup screen")
        assert result.has_duplicates is True
        assert len(result.candidates) == 1
        assert result.candidates[0].issue.id == existing.id
        assert result.candidates[0].score == pytest.approx(3 / 4)

    def test_below_threshold_dropped(self, detector, make_issue):
        make_issue("Login page crashes on submit")

        assert detector.detect("Login form needs a dark theme").has_duplicates is False

    def test_ranked_by_score(self, detector, make_issue):
        weaker = make_issue("Export report to csv fails")
        stronger = make_issue("Export report fails")

        result = detector.detect("Export report fails")

        assert [c.issue.id for c in result.candidates] == [stronger.id, weaker.id]
        assert result.candidates[0].score == 1.0
        assert result.candidates[0].score > result.candidates[1].score

    def test_ties_prefer_newest(self, detector, make_issue):
        older = make_issue("Search results empty")
        newer = make_issue("Search results empty")

        result = detector.detect("Search results empty")

        assert [c.issue.id for c in result.candidates] == [newer.id, older.id]

    def test_custom_threshold(self, store, make_issue):
        make_issue("Crash on startup")
        strict = DuplicateDetector(CandidateRetriever(store), threshold=0.9)

        assert strict.detect("Crash on startup screen").has_duplicates is False

    def test_detect_is_read_only(self, detector, store, make_issue):
        make_issue("Login page crashes on submit")
        before = store.list_issues()

        detector.detect("Login page crashes when submitting")

        assert store.list_issues() == before

    def test_retriever_error_fails_open(self):
        retriever = MagicMock(spec=CandidateRetriever)
        retriever.retrieve.side_effect = RuntimeError("boom")

        result = DuplicateDetector(retriever).detect("Login page crashes")

        assert result.has_duplicates is False
        assert result.candidates == []
