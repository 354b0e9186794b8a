import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from realty_search.schemas.listing import Listing, ListingWithSimilarity

# Path to tests/fixtures directory
FIXTURES_DIR = Path(__file__).parent / "fixtures"

# Frozen "now" for every time-dependent test
NOW = datetime(2026, 2, 2, 12, 0, tzinfo=timezone.utc)


def _listing_data(**overrides) -> dict:
    data = {
        "id": "listing-1",
        "source": "njuskalo",
        "title": "Dvosoban stan, Zagreb",
        "description": "Svijetao stan blizu centra.",
        "listing_type": "rent",
        "property_type": "apartment",
        "price": 650,
        "price_currency": "EUR",
        "location_city": "Zagreb",
        "location_address": "Centar",
        "rooms": 2,
        "surface_area": 55,
        "has_parking": False,
        "has_balcony": False,
        "has_garage": False,
        "is_furnished": False,
        "created_at": NOW - timedelta(hours=6),
        "scraped_at": NOW - timedelta(minutes=30),
    }
    data.update(overrides)
    return data


def _make_listing(**overrides) -> Listing:
    return Listing(**_listing_data(**overrides))


def _make_candidate(similarity: float = 0.8, **overrides) -> ListingWithSimilarity:
    return ListingWithSimilarity(similarity=similarity, **_listing_data(**overrides))


@pytest.fixture
def make_listing():
    """
    Fixture that returns a function: make_listing(**overrides) -> Listing
    Defaults describe a 2-room Zagreb rental created 6h and scraped 30min before NOW.
    """
    return _make_listing


@pytest.fixture
def make_candidate():
    """make_candidate(similarity=0.8, **overrides) -> ListingWithSimilarity"""
    return _make_candidate


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def fixtures_dir() -> Path:
    return FIXTURES_DIR


@pytest.fixture
def load_json(fixtures_dir):
    """
    Fixture that returns a function: load_json("file.json") -> list | dict
    """
    def _load(name: str):
        return json.loads((fixtures_dir / name).read_text(encoding="utf-8"))
    return _load
