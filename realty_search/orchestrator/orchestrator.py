from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import List, Mapping, Optional, Union

from pydantic import ValidationError

from realty_search.errors import CandidateSourceError, ListingNotFoundError, SearchError, SearchErrorCode
from realty_search.logic.filter_matcher import FilterMatcherService, create_filter_matcher
from realty_search.logic.ranking import (
    ConfigLike,
    FiltersLike,
    RankingService,
    create_ranking_service,
    freshness_score,
    recency_score,
    resolve_config,
    resolve_filters,
)
from realty_search.schemas.filters import ExtractedFilters, FilterImportanceWeights
from realty_search.schemas.listing import ListingWithSimilarity
from realty_search.schemas.match import FilterMatchResult
from realty_search.schemas.response import RankedListingWithDetails, RankingScores, SearchConfig, SearchResult
from realty_search.services.candidates import CandidateSource
from realty_search.utils import utc_now

logger = logging.getLogger(__name__)

# Over-fetch so hard requirements can drop candidates and still fill a page
SEMANTIC_OVERFETCH = 3
FILTER_ONLY_OVERFETCH = 2

# Without embeddings every listing gets the same neutral similarity
NEUTRAL_SIMILARITY = 0.5

# Explicit filter-only search: the caller chose to skip embeddings
FILTER_ONLY_WEIGHTS = {
    "semantic_weight": 0.0,
    "filter_weight": 0.7,
    "recency_weight": 0.2,
    "freshness_weight": 0.1,
}

# Fallback after the semantic step failed or found nothing: lean harder on filters
FALLBACK_WEIGHTS = {
    "semantic_weight": 0.0,
    "filter_weight": 0.8,
    "recency_weight": 0.15,
    "freshness_weight": 0.05,
}

# "More like this" ignores the configured threshold
SIMILAR_THRESHOLD = 0.5


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class SearchOrchestrator:
    """
    Pipeline:
    1) semantic candidates from the source (over-fetched)
    2) hard requirements (listing type, price ceiling)
    3) multi-factor ranking
    4) top max_results
    Falls back to a filter-only search when step 1 yields nothing or fails.
    """

    def __init__(
        self,
        source: CandidateSource,
        filter_matcher: Optional[FilterMatcherService] = None,
        ranking: Optional[RankingService] = None,
    ) -> None:
        self.source = source
        self.filter_matcher = filter_matcher or create_filter_matcher()
        self.ranking = ranking or create_ranking_service(self.filter_matcher)

    def search(self, query: str, filters: FiltersLike, config: ConfigLike = None) -> SearchResult:
        start = time.perf_counter()
        cfg = resolve_config(config)
        flt = self._filters(filters)

        if not (query or "").strip():
            logger.warning("Empty query, using filter-only search")
            return self._fallback(flt, cfg, start, cause=None)

        try:
            candidates = self.source.semantic_candidates(
                query, cfg.similarity_threshold, cfg.max_results * SEMANTIC_OVERFETCH
            )
        except CandidateSourceError as e:
            logger.error("Semantic search failed, using filter-only search: %s", e)
            return self._fallback(flt, cfg, start, cause=e)

        if not candidates:
            logger.warning("No semantic candidates above %.2f, using filter-only search", cfg.similarity_threshold)
            return self._fallback(flt, cfg, start, cause=None)

        eligible = self.filter_matcher.filter_by_hard_requirements(candidates, flt)
        ranked = self.ranking.rank(eligible, flt, cfg)

        logger.info(
            "Search returned %d of %d ranked listings (%d candidates)",
            min(len(ranked), cfg.max_results),
            len(ranked),
            len(candidates),
        )
        return SearchResult(
            listings=ranked[: cfg.max_results],
            total_matches=len(ranked),
            search_time_ms=_elapsed_ms(start),
            filters=flt,
        )

    def filter_only_search(self, filters: FiltersLike, config: ConfigLike = None) -> SearchResult:
        """Rank by filter match, recency and freshness only; used when embeddings are unavailable."""
        start = time.perf_counter()
        return self._rank_without_embeddings(
            self._filters(filters), resolve_config(config), FILTER_ONLY_WEIGHTS, start
        )

    def find_similar(self, listing_id: str, limit: int = 5) -> SearchResult:
        """
        Listings closest to `listing_id` by embedding, best first, the listing itself excluded.
        No filters apply: filter match is 1.0 and the combined score is the similarity.
        """
        start = time.perf_counter()
        try:
            # +1: the source listing usually comes back as its own nearest neighbour
            similar = self.source.similar_candidates(listing_id, SIMILAR_THRESHOLD, limit + 1)
        except ListingNotFoundError as e:
            raise SearchError("Listing not found or has no embedding", SearchErrorCode.NO_EMBEDDING, e) from e
        except CandidateSourceError as e:
            raise SearchError("Failed to find similar listings", SearchErrorCode.DATABASE_ERROR, e) from e

        now = utc_now()
        results = [
            RankedListingWithDetails(
                listing=x,
                scores=RankingScores(
                    semantic_score=x.similarity,
                    filter_match_score=1.0,
                    recency_score=recency_score(x.created_at, now),
                    freshness_score=freshness_score(x.scraped_at, now),
                    combined_score=x.similarity,
                ),
                match_details=FilterMatchResult(),
            )
            for x in similar
            if x.id != listing_id
        ][:limit]

        logger.info("Found %d listings similar to %s", len(results), listing_id)
        return SearchResult(
            listings=results,
            total_matches=len(results),
            search_time_ms=_elapsed_ms(start),
            filters=ExtractedFilters(),
        )

    def _rank_without_embeddings(
        self,
        flt: ExtractedFilters,
        cfg: SearchConfig,
        weights: Mapping[str, float],
        start: float,
    ) -> SearchResult:
        try:
            listings = self.source.list_listings(flt, cfg.max_results * FILTER_ONLY_OVERFETCH)
        except CandidateSourceError as e:
            raise SearchError("Filter-only search failed", SearchErrorCode.DATABASE_ERROR, e) from e

        with_similarity: List[ListingWithSimilarity] = [
            ListingWithSimilarity.model_validate({**x.model_dump(), "similarity": NEUTRAL_SIMILARITY})
            for x in listings
        ]
        ranked = self.ranking.rank(with_similarity, flt, cfg.model_copy(update=weights))

        return SearchResult(
            listings=ranked[: cfg.max_results],
            total_matches=len(ranked),
            search_time_ms=_elapsed_ms(start),
            filters=flt,
            used_fallback=True,
        )

    def _fallback(
        self,
        flt: ExtractedFilters,
        cfg: SearchConfig,
        start: float,
        cause: Optional[BaseException],
    ) -> SearchResult:
        try:
            return self._rank_without_embeddings(flt, cfg, FALLBACK_WEIGHTS, start)
        except SearchError as fallback_error:
            if cause is None:
                raise
            raise SearchError(
                "Search failed and fallback also failed", SearchErrorCode.DATABASE_ERROR, cause
            ) from fallback_error

    @staticmethod
    def _filters(filters: FiltersLike) -> ExtractedFilters:
        try:
            flt = resolve_filters(filters)
        except ValidationError as e:
            raise SearchError("Invalid filters", SearchErrorCode.INVALID_FILTERS, e) from e
        inverted = flt.inverted_ranges()
        if inverted:
            raise SearchError(f"Invalid filters: {', '.join(inverted)}", SearchErrorCode.INVALID_FILTERS)
        return flt


@dataclass(frozen=True)
class SearchServices:
    filter_matcher: FilterMatcherService
    ranking: RankingService
    orchestrator: SearchOrchestrator


def create_search_services(
    source: CandidateSource,
    filter_weights: Union[FilterImportanceWeights, Mapping[str, float], None] = None,
) -> SearchServices:
    filter_matcher = create_filter_matcher(filter_weights)
    ranking = create_ranking_service(filter_matcher)
    orchestrator = SearchOrchestrator(source, filter_matcher, ranking)
    return SearchServices(filter_matcher=filter_matcher, ranking=ranking, orchestrator=orchestrator)
