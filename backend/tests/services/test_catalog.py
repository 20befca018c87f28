"""Tests for catalog loading, filtering and rendering."""
import json

import pytest

from core.local_storage import MemoryStorage
from schemas.catalog import Catalog, CatalogFilter
from schemas.progress import ProgressStatus
from services.catalog import (
    CatalogRenderer,
    classify_time_complexity,
    load_catalog,
    matches_filter,
)
from services.local_progress import LocalProgressLedger

CATALOG = {
    "metadata": {"version": "1.0", "totalProblems": 3},
    "problems": [
        {
            "id": 1,
            "title": "Two Sum",
            "difficulty": "Easy",
            "description": "Find two numbers that add up to target.",
            "patterns": ["Hash Map", "Array"],
            "companies": ["Google", "Amazon", "Meta", "Apple", "Microsoft", "Uber"],
            "leetcodeUrl": "https://leetcode.com/problems/two-sum/",
            "solutions": [
                {
                    "approach": "Brute Force",
                    "timeComplexity": "O(n²)",
                    "spaceComplexity": "O(1)",
                    "bestFor": "Tiny inputs",
                    "code": "...",
                },
                {
                    "approach": "Hash Map",
                    "timeComplexity": "O(n)",
                    "spaceComplexity": "O(n)",
                    "isOptimal": True,
                    "code": "...",
                    "expectedOutput": "[0, 1]",
                },
            ],
        },
        {
            "id": 23,
            "title": "Merge k Sorted Lists",
            "difficulty": "Hard",
            "patterns": ["Heap"],
            "companies": ["Amazon"],
            "solutions": [
                {"approach": "Heap", "timeComplexity": "O(n log k)", "spaceComplexity": "O(k)"},
            ],
        },
        {
            "id": 146,
            "title": "LRU Cache",
            "difficulty": "Medium",
            "patterns": ["Hash Map", "Linked List"],
            "companies": ["Netflix"],
            "solutions": [],
        },
    ],
}


@pytest.fixture
def catalog() -> Catalog:
    return Catalog.model_validate(CATALOG)


@pytest.fixture
def ledger(storage: MemoryStorage, clock) -> LocalProgressLedger:
    return LocalProgressLedger(storage, clock)


@pytest.fixture
def renderer(catalog: Catalog, ledger: LocalProgressLedger) -> CatalogRenderer:
    return CatalogRenderer(catalog, ledger)


def test__load_catalog(tmp_path) -> None:
    """The catalog document loads from disk."""
    path = tmp_path / "problems.json"
    path.write_text(json.dumps(CATALOG), encoding="utf-8")

    catalog = load_catalog(path)

    assert len(catalog.problems) == 3
    assert catalog.problems[0].leetcode_url == "https://leetcode.com/problems/two-sum/"
    assert catalog.problems[0].solutions[1].is_optimal is True


@pytest.mark.parametrize(
    ("complexity", "expected"),
    [
        ("O(n²)", "slow"),
        ("O(n³)", "slow"),
        ("O(n log n)", "fast"),
        ("O(n)", "fast"),
        ("O(1)", "fast"),
        ("O(n * k)", "moderate"),
    ],
)
def test__classify_time_complexity(complexity: str, expected: str) -> None:
    """Big-O strings bucket into fast, moderate and slow."""
    assert classify_time_complexity(complexity) == expected


class TestFilters:
    def test__difficulty(self, catalog: Catalog) -> None:
        """Filtering by difficulty."""
        hard = CatalogFilter(difficulty="Hard")
        assert [p.id for p in catalog.problems if matches_filter(p, hard)] == [23]

    def test__pattern(self, catalog: Catalog) -> None:
        """Filtering by pattern."""
        hash_map = CatalogFilter(pattern="Hash Map")
        assert [p.id for p in catalog.problems if matches_filter(p, hash_map)] == [1, 146]

    @pytest.mark.parametrize(
        ("search", "expected"),
        [("lru", [146]), ("23", [23]), ("linked", [146]), ("NETFLIX", [146]), ("  ", [1, 23, 146])],
    )
    def test__search(self, catalog: Catalog, search: str, expected: list[int]) -> None:
        """Search matches title, number, pattern and company."""
        search_filter = CatalogFilter(search=search)
        assert [p.id for p in catalog.problems if matches_filter(p, search_filter)] == expected

    def test__combined(self, catalog: Catalog) -> None:
        """Filters combine."""
        combined = CatalogFilter(difficulty="Medium", pattern="Hash Map", search="cache")
        assert [p.id for p in catalog.problems if matches_filter(p, combined)] == [146]


class TestRenderer:
    def test__stats(self, renderer: CatalogRenderer) -> None:
        """Stats count problems per difficulty."""
        stats = renderer.stats()
        assert (stats.easy, stats.medium, stats.hard, stats.total) == (1, 1, 1, 3)

    def test__patterns_sorted_unique(self, renderer: CatalogRenderer) -> None:
        """Patterns are unique and sorted."""
        assert renderer.patterns() == ["Array", "Hash Map", "Heap", "Linked List"]

    def test__render_card(self, renderer: CatalogRenderer) -> None:
        """A card carries the problem and its solutions."""
        card = renderer.render()[0]

        assert card.problem_id == "lc_1"
        assert card.status is ProgressStatus.NOT_STARTED
        assert card.companies == ["Google", "Amazon", "Meta", "Apple", "Microsoft"]
        assert card.show_comparison is True
        assert [s.time_class for s in card.solutions] == ["slow", "fast"]
        assert card.solutions[1].expected_output == "[0, 1]"

    def test__single_solution_has_no_comparison(self, renderer: CatalogRenderer) -> None:
        """One solution means no comparison table."""
        cards = renderer.render(CatalogFilter(difficulty="Hard"))
        assert len(cards) == 1
        assert cards[0].show_comparison is False

    def test__status_from_local_ledger(
        self, renderer: CatalogRenderer, ledger: LocalProgressLedger,
    ) -> None:
        """Card status comes from the local ledger."""
        ledger.set_status("lc_146", "needs-help")
        card = renderer.render(CatalogFilter(search="lru"))[0]
        assert card.status is ProgressStatus.NEEDS_HELP


class TestUpdateProgress:
    async def test__writes_local_ledger(
        self, renderer: CatalogRenderer, ledger: LocalProgressLedger,
    ) -> None:
        """A status change is written to the local ledger."""
        status = await renderer.update_progress(1, "solved")

        assert status is ProgressStatus.SOLVED
        assert ledger.get("lc_1").status is ProgressStatus.SOLVED

    async def test__calls_sync_hook(self, catalog: Catalog, ledger: LocalProgressLedger) -> None:
        """A status change is passed to the sync hook."""
        calls = []

        async def hook(problem_id: str, status: ProgressStatus) -> bool:
            calls.append((problem_id, status))
            return True

        renderer = CatalogRenderer(catalog, ledger, sync_hook=hook)
        await renderer.update_progress(23, "working")

        assert calls == [("lc_23", ProgressStatus.WORKING)]

    async def test__failing_sync_hook_keeps_local_update(
        self, catalog: Catalog, ledger: LocalProgressLedger,
    ) -> None:
        """A failing sync hook leaves the local update in place."""
        async def hook(problem_id: str, status: ProgressStatus) -> bool:
            raise RuntimeError("offline")

        renderer = CatalogRenderer(catalog, ledger, sync_hook=hook)
        await renderer.update_progress(23, "working")

        assert ledger.get("lc_23").status is ProgressStatus.WORKING

    async def test__invalid_status_rejected(self, renderer: CatalogRenderer) -> None:
        """An unknown status is rejected."""
        with pytest.raises(ValueError, match="abandoned"):
            await renderer.update_progress(1, "abandoned")
