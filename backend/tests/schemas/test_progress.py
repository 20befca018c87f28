"""Tests for progress record schemas."""
from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from schemas.progress import (
    ProgressRecord,
    ProgressStatus,
    category_of,
    make_problem_id,
)

NOW = datetime(2024, 1, 1, tzinfo=UTC)


class TestProgressStatus:
    def test__ranking(self) -> None:
        """Statuses rank not-started, working, needs-help, solved."""
        ranks = [status.rank for status in ProgressStatus]
        assert ranks == sorted(ranks)
        assert ProgressStatus.SOLVED.rank > ProgressStatus.NEEDS_HELP.rank

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("solved", ProgressStatus.SOLVED),
            ("  Working ", ProgressStatus.WORKING),
            ("notstarted", ProgressStatus.NOT_STARTED),
            ("need-help", ProgressStatus.NEEDS_HELP),
            ("help", ProgressStatus.NEEDS_HELP),
        ],
    )
    def test__parse(self, raw: str, expected: ProgressStatus) -> None:
        """Canonical spellings parse to their status."""
        assert ProgressStatus.parse(raw) is expected

    def test__parse_rejects_unknown(self) -> None:
        """Unknown statuses are rejected."""
        with pytest.raises(ValueError):
            ProgressStatus.parse("done")


class TestProblemIds:
    def test__make_problem_id(self) -> None:
        """Problem ids join prefix and number."""
        assert make_problem_id("lc", 1) == "lc_1"
        assert make_problem_id("mlsd", "netflix") == "mlsd_netflix"

    @pytest.mark.parametrize(
        ("problem_id", "category"),
        [
            ("lc_1", "LeetCode"),
            ("mlsd_netflix", "ML System Design"),
            ("mlcoding_kmeans", "ML Coding"),
            ("behavioral_conflict", "Behavioral"),
            ("quiz_3", "Unknown"),
            ("nounderscore", "Unknown"),
        ],
    )
    def test__category_of(self, problem_id: str, category: str) -> None:
        """The category is the problem id's prefix."""
        assert category_of(problem_id) == category


class TestProgressRecord:
    def test__new_solved_stamps_solved_at(self) -> None:
        """A new solved record stamps solved_at."""
        record = ProgressRecord.new("lc_1", NOW, ProgressStatus.SOLVED)
        assert record.solved_at == NOW
        assert record.category == "LeetCode"

    def test__negative_counters_rejected(self) -> None:
        """Negative counters are rejected."""
        with pytest.raises(ValidationError):
            ProgressRecord(problem_id="lc_1", first_seen_at=NOW, last_updated_at=NOW, time_spent=-1)

    def test__legacy_status_accepted(self) -> None:
        """Legacy status spellings are accepted."""
        record = ProgressRecord(
            problem_id="lc_1", status="need-help", first_seen_at=NOW, last_updated_at=NOW,
        )
        assert record.status is ProgressStatus.NEEDS_HELP

    def test__unsynced_amounts(self) -> None:
        """Unsynced amounts are the counters above the baselines."""
        record = ProgressRecord(
            problem_id="lc_1",
            first_seen_at=NOW,
            last_updated_at=NOW,
            time_spent=90,
            view_count=3,
            synced_time_spent=60,
            synced_view_count=5,
        )
        assert record.unsynced_time_spent == 30
        assert record.unsynced_view_count == 0
