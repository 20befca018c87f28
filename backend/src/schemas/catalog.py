"""Pydantic schemas for the static problem catalog and the cards rendered from it."""
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from schemas.progress import ProgressStatus

Difficulty = Literal["Easy", "Medium", "Hard"]
ComplexityClass = Literal["fast", "moderate", "slow"]


class Solution(BaseModel):
    """One solution variant of a problem."""

    model_config = ConfigDict(populate_by_name=True)

    approach: str
    time_complexity: str = Field(alias="timeComplexity")
    space_complexity: str = Field(alias="spaceComplexity")
    best_for: str = Field(default="", alias="bestFor")
    is_optimal: bool = Field(default=False, alias="isOptimal")
    code: str = ""
    expected_output: str | None = Field(default=None, alias="expectedOutput")


class Problem(BaseModel):
    """A catalog problem."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    title: str
    difficulty: Difficulty
    description: str = ""
    patterns: list[str] = []
    companies: list[str] = []
    leetcode_url: str | None = Field(default=None, alias="leetcodeUrl")
    solutions: list[Solution] = []


class Catalog(BaseModel):
    """The versioned catalog document."""

    metadata: dict[str, Any] = {}
    problems: list[Problem]


class CatalogFilter(BaseModel):
    """Filters applied when rendering; "all" disables a filter."""

    difficulty: Difficulty | Literal["all"] = "all"
    pattern: str = "all"
    search: str = ""


class CatalogStats(BaseModel):
    """Problem counts by difficulty."""

    easy: int
    medium: int
    hard: int
    total: int


class SolutionView(BaseModel):
    """A solution prepared for display."""

    approach: str
    time_complexity: str
    space_complexity: str
    time_class: ComplexityClass
    best_for: str
    is_optimal: bool
    code: str
    expected_output: str | None


class ProblemCard(BaseModel):
    """Everything needed to render one problem card."""

    problem_id: str  # Composite progress key, e.g. "lc_1"
    number: int
    title: str
    difficulty: Difficulty
    description: str
    status: ProgressStatus
    companies: list[str]  # Top five only
    patterns: list[str]
    url: str | None
    show_comparison: bool  # Comparison table only with more than one solution
    solutions: list[SolutionView]
