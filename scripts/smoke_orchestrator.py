from dotenv import load_dotenv

load_dotenv()

from realty_search.config import FIXTURES_PATH, load_search_config
from realty_search.orchestrator.orchestrator import create_search_services
from realty_search.services.candidates import FixtureCandidateSource
from realty_search.utils import init_logger


def main():
    init_logger()

    services = create_search_services(FixtureCandidateSource(FIXTURES_PATH))
    cfg = load_search_config().model_copy(update={"max_results": 3})

    resp = services.orchestrator.search(
        "dvosoban stan za najam u Zagrebu s balkonom",
        {"listing_type": "rent", "location": "Zagreb", "price_max": 700, "has_balcony": True},
        cfg,
    )

    print(f"SUMMARY: {resp.total_matches} matches in {resp.search_time_ms} ms (fallback={resp.used_fallback})")
    for i, r in enumerate(resp.listings, 1):
        print(f"\n{i}. {r.listing.title} | score={r.scores.combined_score:.3f}")
        for line in services.ranking.explain_ranking(r).splitlines()[3:]:
            print("   ", line)

    similar = services.orchestrator.find_similar(resp.listings[0].listing.id, limit=3) if resp.listings else None
    if similar:
        print("\nSIMILAR:")
        for r in similar.listings:
            print(f"- {r.listing.title} | similarity={r.scores.semantic_score:.3f}")


if __name__ == "__main__":
    main()
