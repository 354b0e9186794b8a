from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

from pydantic import ValidationError

from realty_search.errors import CandidateSourceError, ListingNotFoundError
from realty_search.logic.filter_matcher import FilterMatcherService
from realty_search.schemas.filters import ExtractedFilters
from realty_search.schemas.listing import Listing, ListingWithSimilarity

logger = logging.getLogger(__name__)


class CandidateSource(Protocol):
    """
    Where the orchestrator gets listings from.

    In production this is the vector store (semantic_candidates) and the
    listing table (list_listings); both live outside this package.
    """

    def semantic_candidates(self, query: str, threshold: float, limit: int) -> List[ListingWithSimilarity]:
        ...

    def list_listings(self, filters: ExtractedFilters, limit: int) -> List[Listing]:
        ...

    def similar_candidates(self, listing_id: str, threshold: float, limit: int) -> List[ListingWithSimilarity]:
        """Nearest listings to `listing_id` by embedding; raises ListingNotFoundError when it has none."""
        ...


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    dot = math.fsum(x * y for x, y in zip(a, b))
    norm = math.sqrt(math.fsum(x * x for x in a)) * math.sqrt(math.fsum(y * y for y in b))
    return dot / norm if norm > 0 else 0.0


class FixtureCandidateSource:
    """
    Offline candidate source backed by a JSON file of listings.

    Each record carries a precomputed `similarity` for one canned query, so the
    query text itself is ignored. Records may also carry an `embedding` vector,
    which similar_candidates compares by cosine similarity. Used by smoke
    scripts and tests.
    """

    def __init__(self, path: Path, *, filter_matcher: Optional[FilterMatcherService] = None) -> None:
        self.path = Path(path)
        self.filter_matcher = filter_matcher or FilterMatcherService()
        self._listings: Optional[List[ListingWithSimilarity]] = None

    def _load(self) -> List[ListingWithSimilarity]:
        if self._listings is None:
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
                self._listings = [ListingWithSimilarity.model_validate(x) for x in data]
            except (OSError, ValueError, ValidationError) as e:
                raise CandidateSourceError(f"Cannot load fixtures from {self.path}: {e}") from e
            logger.debug("Loaded %d fixture listings from %s", len(self._listings), self.path)
        return self._listings

    def semantic_candidates(self, query: str, threshold: float, limit: int) -> List[ListingWithSimilarity]:
        above = [x for x in self._load() if x.similarity >= threshold]
        above.sort(key=lambda x: x.similarity, reverse=True)
        return above[:limit]

    def list_listings(self, filters: ExtractedFilters, limit: int) -> List[Listing]:
        out: List[Listing] = []
        for listing in self._load():
            if self.filter_matcher.calculate_filter_match(listing, filters).is_full_match():
                out.append(listing)
            if len(out) >= limit:
                break
        return out

    def similar_candidates(self, listing_id: str, threshold: float, limit: int) -> List[ListingWithSimilarity]:
        listings = self._load()
        source = next((x for x in listings if x.id == listing_id), None)
        source_vector = _embedding(source) if source is not None else None
        if not source_vector:
            raise ListingNotFoundError(f"Listing {listing_id!r} not found or has no embedding")

        scored: List[ListingWithSimilarity] = []
        for listing in listings:
            vector = _embedding(listing)
            if not vector:
                continue
            similarity = cosine_similarity(source_vector, vector)
            if similarity >= threshold:
                scored.append(listing.model_copy(update={"similarity": similarity}))
        scored.sort(key=lambda x: x.similarity, reverse=True)
        return scored[:limit]


def _embedding(listing: Listing) -> Optional[List[float]]:
    return (listing.model_extra or {}).get("embedding")
