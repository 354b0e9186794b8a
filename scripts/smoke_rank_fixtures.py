from __future__ import annotations

import json
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

from realty_search.config import FIXTURES_PATH
from realty_search.logic.ranking import create_ranking_service
from realty_search.schemas.filters import ExtractedFilters
from realty_search.schemas.listing import ListingWithSimilarity
from realty_search.utils import init_logger


def main() -> None:
    init_logger()

    # OFFLINE: read listings with precomputed similarity from fixtures
    data = json.loads(Path(FIXTURES_PATH).read_text(encoding="utf-8"))
    listings = [ListingWithSimilarity(**x) for x in data]

    filters = ExtractedFilters(listing_type="rent", city="Zagreb", price_max=700, rooms_min=2, has_parking=True)
    ranking = create_ranking_service()

    print(f"Listings loaded: {len(listings)}")
    ranked = ranking.rank(listings, filters)

    for i, r in enumerate(ranked, start=1):
        print(f"\n{i}. {r.listing.title} | {r.listing.price} {r.listing.price_currency} | {r.listing.url}")
        print(f"   combined={r.scores.combined_score:.3f} filter={r.scores.filter_match_score:.3f}")
        print("   matched:", ", ".join(r.match_details.matched_filters) or "-")
        print("   unmatched:", ", ".join(r.match_details.unmatched_filters) or "-")

    print("\n" + ranking.explain_ranking(ranked[0]))

    reranked = ranking.rerank(ranked, filters.model_copy(update={"has_parking": None}))
    print("\nAfter dropping the parking filter:")
    for i, r in enumerate(reranked, start=1):
        print(f"{i}. {r.listing.title} | combined={r.scores.combined_score:.3f}")

    print("\nSTATS:", ranking.get_ranking_stats(reranked).model_dump())


if __name__ == "__main__":
    main()
