from __future__ import annotations

import logging
import statistics
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from realty_search.logic.filter_matcher import FilterMatcherService
from realty_search.schemas.filters import ExtractedFilters
from realty_search.schemas.listing import ListingWithSimilarity
from realty_search.schemas.response import (
    DEFAULT_SEARCH_CONFIG,
    RankedListingWithDetails,
    RankingScores,
    RankingStats,
    ScoreDistribution,
    SearchConfig,
)
from realty_search.utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

# Recency: full score under one day, zero from 30 days on
RECENCY_FULL_DAYS = 1.0
RECENCY_ZERO_DAYS = 30.0

# Freshness: full score under one hour, zero from 168 hours (7 days) on
FRESHNESS_FULL_HOURS = 1.0
FRESHNESS_ZERO_HOURS = 168.0

ConfigLike = Union[SearchConfig, Mapping[str, Any], None]
FiltersLike = Union[ExtractedFilters, Mapping[str, Any], None]


def clamp01(x: float) -> float:
    return 0.0 if x < 0.0 else (1.0 if x > 1.0 else x)


def linear_decay(age: float, full_until: float, zero_at: float) -> float:
    """1.0 up to `full_until`, 0.0 from `zero_at`, linear in between."""
    if age <= full_until:
        return 1.0
    return clamp01(1.0 - (age - full_until) / (zero_at - full_until))


def recency_score(created_at: Optional[datetime], now: datetime) -> float:
    if created_at is None:
        return 0.0
    age_days = (now - ensure_utc(created_at)).total_seconds() / 86400
    return linear_decay(age_days, RECENCY_FULL_DAYS, RECENCY_ZERO_DAYS)


def freshness_score(scraped_at: Optional[datetime], now: datetime) -> float:
    if scraped_at is None:
        return 0.0
    age_hours = (now - ensure_utc(scraped_at)).total_seconds() / 3600
    return linear_decay(age_hours, FRESHNESS_FULL_HOURS, FRESHNESS_ZERO_HOURS)


def resolve_config(config: ConfigLike) -> SearchConfig:
    """SearchConfig as-is, or a mapping of overrides merged onto the defaults."""
    if config is None:
        return DEFAULT_SEARCH_CONFIG
    if isinstance(config, SearchConfig):
        return config
    return SearchConfig.model_validate({**DEFAULT_SEARCH_CONFIG.model_dump(), **dict(config)})


def resolve_filters(filters: FiltersLike) -> ExtractedFilters:
    if filters is None:
        return ExtractedFilters()
    if isinstance(filters, ExtractedFilters):
        return filters
    return ExtractedFilters.model_validate(dict(filters))


def combine_scores(
    cfg: SearchConfig,
    semantic: float,
    filter_match: float,
    recency: float,
    freshness: float,
) -> float:
    return (
        cfg.semantic_weight * semantic
        + cfg.filter_weight * filter_match
        + cfg.recency_weight * recency
        + cfg.freshness_weight * freshness
    )


def _sort_by_combined(results: List[RankedListingWithDetails]) -> List[RankedListingWithDetails]:
    # sorted() is stable, reverse=True keeps input order among equal scores
    return sorted(results, key=lambda r: r.scores.combined_score, reverse=True)


def _pct(x: float) -> str:
    return f"{x * 100:.1f}%"


def _fmt_value(value: Any) -> str:
    # bounds are floats; show 700.0 as 700
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class RankingService:
    """
    Multi-factor ranking: semantic similarity + weighted filter match
    + listing recency + scrape freshness.

    Stateless: the only state is the filter matcher's weight table.
    """

    def __init__(self, filter_matcher: Optional[FilterMatcherService] = None) -> None:
        self.filter_matcher = filter_matcher or FilterMatcherService()

    def rank(
        self,
        listings: Sequence[ListingWithSimilarity],
        filters: FiltersLike,
        config: ConfigLike = None,
        *,
        now: Optional[datetime] = None,
    ) -> List[RankedListingWithDetails]:
        cfg = resolve_config(config)
        flt = resolve_filters(filters)
        # One clock sample per call so every listing ages against the same instant
        now = ensure_utc(now) if now is not None else utc_now()

        ranked: List[RankedListingWithDetails] = []
        for listing in listings:
            match_details = self.filter_matcher.calculate_filter_match(listing, flt)
            recency = recency_score(listing.created_at, now)
            freshness = freshness_score(listing.scraped_at, now)

            ranked.append(
                RankedListingWithDetails(
                    listing=listing,
                    scores=RankingScores(
                        semantic_score=listing.similarity,
                        filter_match_score=match_details.score,
                        recency_score=recency,
                        freshness_score=freshness,
                        combined_score=combine_scores(
                            cfg, listing.similarity, match_details.score, recency, freshness
                        ),
                    ),
                    match_details=match_details,
                )
            )

        logger.debug("Ranked %d listings (filters=%s)", len(ranked), flt.model_dump(exclude_none=True))
        return _sort_by_combined(ranked)

    def rerank(
        self,
        results: Sequence[RankedListingWithDetails],
        filters: FiltersLike,
        config: ConfigLike = None,
    ) -> List[RankedListingWithDetails]:
        """
        Re-order existing results for new filters or weights.
        Semantic, recency and freshness scores are reused unchanged.
        """
        cfg = resolve_config(config)
        flt = resolve_filters(filters)

        reranked: List[RankedListingWithDetails] = []
        for result in results:
            match_details = self.filter_matcher.calculate_filter_match(result.listing, flt)
            scores = result.scores.model_copy(
                update={
                    "filter_match_score": match_details.score,
                    "combined_score": combine_scores(
                        cfg,
                        result.scores.semantic_score,
                        match_details.score,
                        result.scores.recency_score,
                        result.scores.freshness_score,
                    ),
                }
            )
            reranked.append(result.model_copy(update={"scores": scores, "match_details": match_details}))

        logger.debug("Re-ranked %d results", len(reranked))
        return _sort_by_combined(reranked)

    def explain_ranking(self, result: RankedListingWithDetails) -> str:
        """Human-readable breakdown of one ranked listing, for debugging and transparency."""
        scores = result.scores
        details = result.match_details
        title = result.listing.title or result.listing.id

        lines: List[str] = [
            f'Ranking Explanation for "{title}"',
            "=" * 50,
            "",
            "Score Breakdown:",
            f"  Semantic Similarity: {_pct(scores.semantic_score)}",
            f"  Filter Match: {_pct(scores.filter_match_score)}",
            f"  Recency: {_pct(scores.recency_score)}",
            f"  Freshness: {_pct(scores.freshness_score)}",
            f"  Combined Score: {_pct(scores.combined_score)}",
            "",
            "Filter Matches:",
        ]
        if details.matched_filters:
            lines.append(f"  Matched: {', '.join(details.matched_filters)}")
        if details.unmatched_filters:
            lines.append(f"  Unmatched: {', '.join(details.unmatched_filters)}")
        if details.partial_matches:
            lines.append("  Partial Matches:")
            for pm in details.partial_matches:
                lines.append(
                    f"    - {pm.filter_name}: expected {_fmt_value(pm.expected)}, got {_fmt_value(pm.actual)} "
                    f"({pm.match_percentage * 100:.0f}% match)"
                )
        return "\n".join(lines)

    def get_ranking_stats(
        self,
        results: Sequence[RankedListingWithDetails],
        top_n: Optional[int] = None,
    ) -> RankingStats:
        """Aggregate scores over a result set. Empty input yields zeroed stats."""
        if not results:
            return RankingStats()

        combined = [r.scores.combined_score for r in results]
        semantic = [r.scores.semantic_score for r in results]
        filter_scores = [r.scores.filter_match_score for r in results]

        counts = Counter(name for r in results for name in r.match_details.matched_filters)
        top: Dict[str, int] = dict(counts.most_common(top_n))

        return RankingStats(
            avg_combined_score=statistics.fmean(combined),
            avg_semantic_score=statistics.fmean(semantic),
            avg_filter_score=statistics.fmean(filter_scores),
            top_matching_filters=top,
            score_distribution=ScoreDistribution(
                min=min(combined),
                max=max(combined),
                median=statistics.median(combined),
            ),
        )


def create_ranking_service(filter_matcher: Optional[FilterMatcherService] = None) -> RankingService:
    return RankingService(filter_matcher)
