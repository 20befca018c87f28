"""Problem catalog loading, filtering and card rendering."""
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

from schemas.catalog import (
    Catalog,
    CatalogFilter,
    CatalogStats,
    ComplexityClass,
    Problem,
    ProblemCard,
    Solution,
    SolutionView,
)
from schemas.progress import ProgressStatus, make_problem_id
from services.local_progress import LocalProgressLedger

logger = logging.getLogger(__name__)

CATALOG_PREFIX = "lc"
MAX_COMPANIES_ON_CARD = 5

SyncHook = Callable[[str, ProgressStatus], Awaitable[object]]


def load_catalog(path: str | Path) -> Catalog:
    """Read and validate the catalog document."""
    return Catalog.model_validate_json(Path(path).read_text(encoding="utf-8"))


def classify_time_complexity(complexity: str) -> ComplexityClass:
    """Bucket a big-O string: quadratic or worse is slow; log, linear or constant is fast."""
    if "n²" in complexity or "n³" in complexity:
        return "slow"
    if "log" in complexity or complexity in ("O(n)", "O(1)"):
        return "fast"
    return "moderate"


def matches_filter(problem: Problem, catalog_filter: CatalogFilter) -> bool:
    """Apply difficulty, pattern and free-text filters to one problem."""
    if catalog_filter.difficulty != "all" and problem.difficulty != catalog_filter.difficulty:
        return False
    if catalog_filter.pattern != "all" and catalog_filter.pattern not in problem.patterns:
        return False
    search = catalog_filter.search.strip().lower()
    if search:
        return (
            search in problem.title.lower()
            or search in str(problem.id)
            or any(search in pattern.lower() for pattern in problem.patterns)
            or any(search in company.lower() for company in problem.companies)
        )
    return True


def _solution_view(solution: Solution) -> SolutionView:
    return SolutionView(
        approach=solution.approach,
        time_complexity=solution.time_complexity,
        space_complexity=solution.space_complexity,
        time_class=classify_time_complexity(solution.time_complexity),
        best_for=solution.best_for,
        is_optimal=solution.is_optimal,
        code=solution.code,
        expected_output=solution.expected_output,
    )


class CatalogRenderer:
    """
    Renders catalog problems as cards, with progress from the local ledger.

    sync_hook, when given, is awaited after each local progress update so the
    change can be mirrored remotely (it decides whether anyone is signed in).
    """

    def __init__(
        self,
        catalog: Catalog,
        ledger: LocalProgressLedger,
        sync_hook: SyncHook | None = None,
    ) -> None:
        self.catalog = catalog
        self._ledger = ledger
        self._sync_hook = sync_hook

    def stats(self) -> CatalogStats:
        problems = self.catalog.problems
        return CatalogStats(
            easy=sum(1 for p in problems if p.difficulty == "Easy"),
            medium=sum(1 for p in problems if p.difficulty == "Medium"),
            hard=sum(1 for p in problems if p.difficulty == "Hard"),
            total=len(problems),
        )

    def patterns(self) -> list[str]:
        """Sorted unique patterns across the catalog."""
        return sorted({pattern for p in self.catalog.problems for pattern in p.patterns})

    def status_of(self, problem: Problem) -> ProgressStatus:
        record = self._ledger.get(make_problem_id(CATALOG_PREFIX, problem.id))
        return record.status if record else ProgressStatus.NOT_STARTED

    def render(self, catalog_filter: CatalogFilter | None = None) -> list[ProblemCard]:
        """Cards for every problem passing the filter, in catalog order."""
        catalog_filter = catalog_filter or CatalogFilter()
        return [
            self.render_card(problem)
            for problem in self.catalog.problems
            if matches_filter(problem, catalog_filter)
        ]

    def render_card(self, problem: Problem) -> ProblemCard:
        return ProblemCard(
            problem_id=make_problem_id(CATALOG_PREFIX, problem.id),
            number=problem.id,
            title=problem.title,
            difficulty=problem.difficulty,
            description=problem.description,
            status=self.status_of(problem),
            companies=problem.companies[:MAX_COMPANIES_ON_CARD],
            patterns=problem.patterns,
            url=problem.leetcode_url,
            show_comparison=len(problem.solutions) > 1,
            solutions=[_solution_view(s) for s in problem.solutions],
        )

    async def update_progress(self, number: int, status: ProgressStatus | str) -> ProgressStatus:
        """Record a status picked by the user, locally first, then through the sync hook."""
        status = ProgressStatus.parse(status)
        problem_id = make_problem_id(CATALOG_PREFIX, number)
        self._ledger.set_status(problem_id, status)
        if self._sync_hook is not None:
            try:
                await self._sync_hook(problem_id, status)
            except Exception:
                logger.exception("Progress sync hook failed for %s", problem_id)
        return status
