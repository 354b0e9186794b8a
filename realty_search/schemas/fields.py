from enum import Enum


class ListingType(str, Enum):
    RENT = "rent"
    SALE = "sale"


class FilterName(str, Enum):
    """
    Canonical filter names reported in match details.
    This is a CLOSED set: every name that can appear in
    matched_filters / unmatched_filters / partial_matches is listed here.
    """

    # --- Exact match ---
    LISTING_TYPE = "listing_type"
    PROPERTY_TYPE = "property_type"
    CITY = "city"

    # --- Ranges ---
    PRICE_MIN = "price_min"
    PRICE_MAX = "price_max"
    ROOMS_MIN = "rooms_min"
    ROOMS_MAX = "rooms_max"
    SURFACE_AREA_MIN = "surface_area_min"
    SURFACE_AREA_MAX = "surface_area_max"

    # --- Amenities ---
    HAS_PARKING = "has_parking"
    HAS_BALCONY = "has_balcony"
    HAS_GARAGE = "has_garage"
    IS_FURNISHED = "is_furnished"


AMENITY_FILTERS = (
    FilterName.HAS_PARKING,
    FilterName.HAS_BALCONY,
    FilterName.HAS_GARAGE,
    FilterName.IS_FURNISHED,
)
