# realty_search/schemas/listing.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from realty_search.schemas.fields import ListingType


class Listing(BaseModel):
    """
    Listing = the normalized record produced by the scrapers (njuskalo, index-oglasi).

    The ranking engine only reads it:
    - frozen=True, nothing downstream may mutate a listing;
    - extra="allow", so new scraper fields do not break validation;
    - everything except id is optional, a half-parsed listing still ranks.
    """
    model_config = ConfigDict(extra="allow", frozen=True)

    id: str

    source: Optional[str] = None
    external_id: Optional[str] = None
    url: Optional[str] = None

    title: Optional[str] = None
    description: Optional[str] = None

    listing_type: Optional[ListingType] = None
    property_type: Optional[str] = None

    # Price/currency
    price: Optional[float] = None
    price_currency: str = "EUR"

    # Location
    location_city: Optional[str] = None
    location_address: Optional[str] = None

    # Size
    rooms: Optional[float] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    surface_area: Optional[float] = None

    # Amenities (None = unknown)
    has_parking: Optional[bool] = None
    has_balcony: Optional[bool] = None
    has_garage: Optional[bool] = None
    is_furnished: Optional[bool] = None

    amenities: Dict[str, Any] = Field(default_factory=dict)
    images: List[str] = Field(default_factory=list)

    # Lifecycle timestamps (UTC)
    created_at: Optional[datetime] = None
    scraped_at: Optional[datetime] = None

    @field_validator("created_at", "scraped_at")
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v


class ListingWithSimilarity(Listing):
    """
    Listing + similarity from the vector search.
    The engine never computes or clamps similarity, it is taken as-is.
    """

    similarity: float
