from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field

from realty_search.schemas.filters import ExtractedFilters
from realty_search.schemas.listing import ListingWithSimilarity
from realty_search.schemas.match import FilterMatchResult


class SearchConfig(BaseModel):
    """
    Weights of the four ranking signals plus orchestration limits.
    Overrides do not have to sum to 1; only the order within one call matters.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    semantic_weight: float = 0.4
    filter_weight: float = 0.4
    recency_weight: float = 0.1
    freshness_weight: float = 0.1

    # Used by the orchestrator only
    similarity_threshold: float = 0.5
    max_results: int = Field(default=20, ge=1)


DEFAULT_SEARCH_CONFIG = SearchConfig()


class RankingScores(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    semantic_score: float
    filter_match_score: float
    recency_score: float
    freshness_score: float
    combined_score: float


class RankedListingWithDetails(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    listing: ListingWithSimilarity
    scores: RankingScores
    match_details: FilterMatchResult


class ScoreDistribution(BaseModel):
    min: float = 0.0
    max: float = 0.0
    median: float = 0.0


class RankingStats(BaseModel):
    avg_combined_score: float = 0.0
    avg_semantic_score: float = 0.0
    avg_filter_score: float = 0.0
    top_matching_filters: Dict[str, int] = Field(default_factory=dict)
    score_distribution: ScoreDistribution = Field(default_factory=ScoreDistribution)


class SearchResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    listings: List[RankedListingWithDetails]
    total_matches: int
    search_time_ms: int
    filters: ExtractedFilters
    used_fallback: bool = False
