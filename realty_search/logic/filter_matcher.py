from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Sequence, Union

from realty_search.schemas.fields import AMENITY_FILTERS, FilterName
from realty_search.schemas.filters import (
    DEFAULT_FILTER_IMPORTANCE,
    ExtractedFilters,
    FilterImportanceWeights,
)
from realty_search.schemas.listing import Listing
from realty_search.schemas.match import FilterMatchResult, PartialMatch

logger = logging.getLogger(__name__)

# Relative tolerance band for price / surface area bounds
PRICE_TOLERANCE = 0.10
SURFACE_AREA_TOLERANCE = 0.15

# Credit for a room count off by at most one room
ROOMS_NEAR_MISS_CREDIT = 0.7

# Credit when the listing city is only contained in a more specific location filter
CITY_PARTIAL_CREDIT = 0.5

# Listings priced above price_max * this factor are dropped before ranking
HARD_PRICE_TOLERANCE = 1.15


def _normalize_text(s: Optional[str]) -> str:
    return " ".join((s or "").lower().strip().split())


def relative_range_credit(deviation: float, tolerance: float) -> float:
    """
    Credit for a value that misses its bound by `deviation` (relative, > 0).
    - inside the tolerance band: 1 - deviation
    - outside: (1 - tolerance) * (tolerance / deviation) ** 2, near zero at 2x the bound
    Continuous at the band edge and monotonically decreasing.
    """
    if deviation <= 0:
        return 1.0
    if deviation <= tolerance:
        return 1.0 - deviation
    return (1.0 - tolerance) * (tolerance / deviation) ** 2


def rooms_credit(difference: float) -> float:
    if difference <= 0:
        return 1.0
    if difference <= 1:
        return ROOMS_NEAR_MISS_CREDIT
    return ROOMS_NEAR_MISS_CREDIT / difference ** 2


def _as_number(value: Any) -> Optional[float]:
    # bool is an int subclass; a flag is never a price
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


@dataclass
class _MatchAccumulator:
    matched: List[str] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)
    partial: List[PartialMatch] = field(default_factory=list)
    total_weight: float = 0.0
    matched_weight: float = 0.0

    def full(self, name: FilterName, weight: float) -> None:
        self.total_weight += weight
        self.matched_weight += weight
        self.matched.append(name.value)

    def miss(self, name: FilterName, weight: float) -> None:
        self.total_weight += weight
        self.unmatched.append(name.value)

    def partial_credit(
        self,
        name: FilterName,
        weight: float,
        expected: Union[float, str],
        actual: Union[float, str],
        fraction: float,
        *,
        unmatched: bool = False,
    ) -> None:
        fraction = min(1.0, max(0.0, fraction))
        self.total_weight += weight
        self.matched_weight += weight * fraction
        self.partial.append(
            PartialMatch(
                filter_name=name.value,
                expected=expected,
                actual=actual,
                match_percentage=fraction,
            )
        )
        if unmatched:
            self.unmatched.append(name.value)

    def result(self) -> FilterMatchResult:
        score = self.matched_weight / self.total_weight if self.total_weight > 0 else 1.0
        return FilterMatchResult(
            score=score,
            matched_filters=self.matched,
            unmatched_filters=self.unmatched,
            partial_matches=self.partial,
            total_weight=self.total_weight,
            matched_weight=self.matched_weight,
        )


class FilterMatcherService:
    """
    Deterministic weighted matcher (no LLM, no I/O).
    Scores how well one listing satisfies the sparse extracted filters,
    independent of semantic similarity.
    """

    def __init__(self, weights: Union[FilterImportanceWeights, Mapping[str, float], None] = None) -> None:
        if weights is None:
            self.weights = DEFAULT_FILTER_IMPORTANCE
        elif isinstance(weights, FilterImportanceWeights):
            self.weights = weights
        else:
            self.weights = FilterImportanceWeights.model_validate(
                {**DEFAULT_FILTER_IMPORTANCE.model_dump(), **dict(weights)}
            )

    def calculate_filter_match(self, listing: Listing, filters: ExtractedFilters) -> FilterMatchResult:
        acc = _MatchAccumulator()
        w = self.weights

        # Listing type (rent / sale)
        if filters.listing_type is not None:
            if listing.listing_type == filters.listing_type:
                acc.full(FilterName.LISTING_TYPE, w.listing_type)
            else:
                acc.miss(FilterName.LISTING_TYPE, w.listing_type)

        # Property type
        if filters.property_type is not None:
            if _normalize_text(listing.property_type) == _normalize_text(filters.property_type):
                acc.full(FilterName.PROPERTY_TYPE, w.property_type)
            else:
                acc.miss(FilterName.PROPERTY_TYPE, w.property_type)

        price = _as_number(listing.price)
        if filters.price_max is not None:
            self._match_upper_bound(acc, FilterName.PRICE_MAX, w.price, filters.price_max, price, PRICE_TOLERANCE)
        if filters.price_min is not None:
            self._match_lower_bound(acc, FilterName.PRICE_MIN, w.price, filters.price_min, price, PRICE_TOLERANCE)

        if filters.city is not None:
            self._match_city(acc, listing, filters.city)

        rooms = _as_number(listing.rooms)
        if filters.rooms_min is not None:
            self._match_rooms(acc, FilterName.ROOMS_MIN, filters.rooms_min, rooms, below=True)
        if filters.rooms_max is not None:
            self._match_rooms(acc, FilterName.ROOMS_MAX, filters.rooms_max, rooms, below=False)

        area = _as_number(listing.surface_area)
        if filters.surface_area_min is not None:
            self._match_lower_bound(
                acc, FilterName.SURFACE_AREA_MIN, w.surface_area, filters.surface_area_min, area, SURFACE_AREA_TOLERANCE
            )
        if filters.surface_area_max is not None:
            self._match_upper_bound(
                acc, FilterName.SURFACE_AREA_MAX, w.surface_area, filters.surface_area_max, area, SURFACE_AREA_TOLERANCE
            )

        # Amenities: listing flag must equal the requested value; unknown is a miss
        for name in AMENITY_FILTERS:
            wanted = getattr(filters, name.value)
            if wanted is None:
                continue
            if getattr(listing, name.value, None) is wanted:
                acc.full(name, w.amenities)
            else:
                acc.miss(name, w.amenities)

        return acc.result()

    def _match_upper_bound(
        self,
        acc: _MatchAccumulator,
        name: FilterName,
        weight: float,
        bound: float,
        value: Optional[float],
        tolerance: float,
    ) -> None:
        if value is None:
            acc.miss(name, weight)
        elif value <= bound:
            acc.full(name, weight)
        elif bound <= 0:
            acc.miss(name, weight)
        else:
            deviation = (value - bound) / bound
            acc.partial_credit(
                name,
                weight,
                expected=bound,
                actual=value,
                fraction=relative_range_credit(deviation, tolerance),
                unmatched=deviation > tolerance,
            )

    def _match_lower_bound(
        self,
        acc: _MatchAccumulator,
        name: FilterName,
        weight: float,
        bound: float,
        value: Optional[float],
        tolerance: float,
    ) -> None:
        if value is None:
            acc.miss(name, weight)
        elif value >= bound:
            acc.full(name, weight)
        elif bound <= 0:
            acc.miss(name, weight)
        else:
            deviation = (bound - value) / bound
            acc.partial_credit(
                name,
                weight,
                expected=bound,
                actual=value,
                fraction=relative_range_credit(deviation, tolerance),
                unmatched=deviation > tolerance,
            )

    def _match_rooms(
        self,
        acc: _MatchAccumulator,
        name: FilterName,
        bound: float,
        rooms: Optional[float],
        *,
        below: bool,
    ) -> None:
        weight = self.weights.rooms
        if rooms is None:
            acc.miss(name, weight)
            return

        difference = bound - rooms if below else rooms - bound
        if difference <= 0:
            acc.full(name, weight)
            return

        acc.partial_credit(
            name,
            weight,
            expected=bound,
            actual=rooms,
            fraction=rooms_credit(difference),
            unmatched=difference > 1,
        )

    def _match_city(self, acc: _MatchAccumulator, listing: Listing, city_filter: str) -> None:
        weight = self.weights.location
        wanted = _normalize_text(city_filter)
        city = _normalize_text(listing.location_city)
        address = _normalize_text(listing.location_address)

        if (city and wanted in city) or (address and wanted in address):
            acc.full(FilterName.CITY, weight)
        elif city and city in wanted:
            # Filter is more specific than what the listing exposes ("Zagreb, Tresnjevka")
            acc.partial_credit(
                FilterName.CITY,
                weight,
                expected=city_filter,
                actual=listing.location_city or "",
                fraction=CITY_PARTIAL_CREDIT,
            )
        else:
            acc.miss(FilterName.CITY, weight)

    def filter_by_hard_requirements(
        self,
        listings: Sequence[Listing],
        filters: ExtractedFilters,
    ) -> List[Listing]:
        """
        Drop listings that violate critical filters, keeping input order:
        - listing_type, when requested
        - price above price_max with a 15% tolerance (unknown price is kept)
        """
        kept: List[Listing] = []
        for listing in listings:
            if filters.listing_type is not None and listing.listing_type != filters.listing_type:
                continue
            price = _as_number(listing.price)
            if filters.price_max is not None and price is not None and price > filters.price_max * HARD_PRICE_TOLERANCE:
                continue
            kept.append(listing)

        if len(kept) != len(listings):
            logger.debug("Hard requirements dropped %d of %d listings", len(listings) - len(kept), len(listings))
        return kept


def create_filter_matcher(
    weights: Union[FilterImportanceWeights, Mapping[str, float], None] = None,
) -> FilterMatcherService:
    return FilterMatcherService(weights)
