from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from realty_search.schemas.fields import ListingType

RANGE_PAIRS = (
    ("price_min", "price_max"),
    ("rooms_min", "rooms_max"),
    ("surface_area_min", "surface_area_max"),
)


class ExtractedFilters(BaseModel):
    """
    Structured filters extracted from the user's chat message.
    Sparse: a key that is None means "no constraint on that dimension".
    """
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    listing_type: Optional[ListingType] = None
    property_type: Optional[str] = None

    # The query extractor emits "location"; "city" is the canonical name
    city: Optional[str] = Field(default=None, validation_alias=AliasChoices("city", "location"))

    # Ranges
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    rooms_min: Optional[float] = None
    rooms_max: Optional[float] = None
    surface_area_min: Optional[float] = None
    surface_area_max: Optional[float] = None

    # Amenities
    has_parking: Optional[bool] = None
    has_balcony: Optional[bool] = None
    has_garage: Optional[bool] = None
    is_furnished: Optional[bool] = None

    @field_validator("city", "property_type")
    @classmethod
    def blank_is_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    def inverted_ranges(self) -> List[str]:
        """
        Range pairs whose min exceeds the max, e.g. ["price_min > price_max"].
        The matcher still scores such filters; only the search entry point rejects them.
        """
        inverted: List[str] = []
        for low, high in RANGE_PAIRS:
            lo, hi = getattr(self, low), getattr(self, high)
            if lo is not None and hi is not None and lo > hi:
                inverted.append(f"{low} > {high}")
        return inverted

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


class FilterImportanceWeights(BaseModel):
    """
    Per-filter importance used by the filter matcher.
    Must stay the same between rank() and rerank() of one session,
    otherwise combined scores are not comparable.
    """
    model_config = ConfigDict(extra="forbid", frozen=True)

    price: float = 1.5
    location: float = 1.3
    rooms: float = 1.2
    listing_type: float = 1.1
    property_type: float = 1.0
    surface_area: float = 1.0
    amenities: float = 0.8

    @field_validator("*")
    @classmethod
    def weight_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("filter weights must be > 0")
        return v


DEFAULT_FILTER_IMPORTANCE = FilterImportanceWeights()
