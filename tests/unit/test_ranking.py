import json
from datetime import timedelta

import pytest

import realty_search.logic.ranking as ranking_module
from realty_search.logic.filter_matcher import FilterMatcherService
from realty_search.logic.ranking import (
    RankingService,
    create_ranking_service,
    freshness_score,
    recency_score,
)
from realty_search.schemas.filters import ExtractedFilters
from realty_search.schemas.match import FilterMatchResult, PartialMatch
from realty_search.schemas.response import RankedListingWithDetails, RankingScores


@pytest.fixture
def ranking() -> RankingService:
    return RankingService(FilterMatcherService())


def _result(candidate, semantic, filter_score, recency, freshness, combined, matched=(), unmatched=(), partial=()):
    return RankedListingWithDetails(
        listing=candidate,
        scores=RankingScores(
            semantic_score=semantic,
            filter_match_score=filter_score,
            recency_score=recency,
            freshness_score=freshness,
            combined_score=combined,
        ),
        match_details=FilterMatchResult(
            score=filter_score,
            matched_filters=list(matched),
            unmatched_filters=list(unmatched),
            partial_matches=list(partial),
            total_weight=2.6,
            matched_weight=2.6 * filter_score,
        ),
    )


# ------------------------------------------------------------------
# rank
# ------------------------------------------------------------------

def test_rank_orders_by_similarity_when_all_else_equal(ranking, make_candidate, now):
    listings = [
        make_candidate(id="A", similarity=0.5),
        make_candidate(id="B", similarity=0.9),
        make_candidate(id="C", similarity=0.7),
    ]

    ranked = ranking.rank(listings, ExtractedFilters(listing_type="rent"), now=now)

    assert [r.listing.id for r in ranked] == ["B", "C", "A"]


def test_rank_output_sorted_descending(ranking, make_candidate, now):
    listings = [
        make_candidate(id=str(i), similarity=s, price=p, created_at=now - timedelta(days=d))
        for i, (s, p, d) in enumerate([(0.3, 900, 2), (0.8, 500, 20), (0.6, 700, 0), (0.9, 1500, 40)])
    ]

    ranked = ranking.rank(listings, {"price_max": 700, "listing_type": "rent"}, now=now)

    combined = [r.scores.combined_score for r in ranked]
    assert combined == sorted(combined, reverse=True)


def test_rank_includes_all_score_components(ranking, make_candidate, now):
    ranked = ranking.rank([make_candidate(similarity=0.8, price=650)], {"price_max": 700}, now=now)

    scores = ranked[0].scores
    assert scores.semantic_score == 0.8
    assert scores.filter_match_score == 1.0
    assert scores.recency_score == 1.0
    assert scores.freshness_score == 1.0
    # default weights 0.4 / 0.4 / 0.1 / 0.1
    assert scores.combined_score == pytest.approx(0.4 * 0.8 + 0.4 + 0.1 + 0.1)
    assert ranked[0].match_details.matched_filters == ["price_max"]


def test_empty_filters_give_full_filter_score(ranking, make_candidate, now):
    ranked = ranking.rank([make_candidate(price=None, rooms=None)], {}, now=now)
    assert ranked[0].scores.filter_match_score == 1.0
    assert ranked[0].match_details.score == 1.0


def test_newer_listing_ranks_higher(ranking, make_candidate, now):
    old = make_candidate(id="old", created_at=now - timedelta(days=32))
    new = make_candidate(id="new", created_at=now - timedelta(days=1, hours=12))

    ranked = ranking.rank([old, new], {"listing_type": "rent"}, now=now)

    assert ranked[0].listing.id == "new"
    assert ranked[0].scores.recency_score > ranked[1].scores.recency_score


def test_recently_scraped_listing_ranks_higher(ranking, make_candidate, now):
    stale = make_candidate(id="stale", scraped_at=now - timedelta(days=13))
    fresh = make_candidate(id="fresh", scraped_at=now - timedelta(hours=2))

    ranked = ranking.rank([stale, fresh], {"listing_type": "rent"}, now=now)

    assert ranked[0].listing.id == "fresh"
    assert ranked[0].scores.freshness_score > ranked[1].scores.freshness_score


def test_filter_weight_override_reorders(ranking, make_candidate, now):
    listings = [
        make_candidate(id="1", similarity=0.9, listing_type="sale"),
        make_candidate(id="2", similarity=0.5, listing_type="rent"),
    ]
    weights = {"semantic_weight": 0.1, "filter_weight": 0.8, "recency_weight": 0.05, "freshness_weight": 0.05}

    ranked = ranking.rank(listings, {"listing_type": "rent"}, weights, now=now)

    assert ranked[0].listing.id == "2"


def test_non_normalized_weights_are_allowed(ranking, make_candidate, now):
    ranked = ranking.rank([make_candidate(similarity=1.0)], {}, {"semantic_weight": 2.0}, now=now)
    assert ranked[0].scores.combined_score == pytest.approx(2.0 + 0.4 + 0.1 + 0.1)


def test_similarity_is_not_clamped(ranking, make_candidate, now):
    ranked = ranking.rank([make_candidate(similarity=1.5)], {}, now=now)
    assert ranked[0].scores.semantic_score == 1.5


def test_equal_scores_keep_input_order(ranking, make_candidate, now):
    listings = [make_candidate(id=x, similarity=0.7) for x in ("first", "second", "third")]
    ranked = ranking.rank(listings, {}, now=now)
    assert [r.listing.id for r in ranked] == ["first", "second", "third"]


def test_rank_does_not_truncate(ranking, make_candidate, now):
    listings = [make_candidate(id=str(i), similarity=i / 30) for i in range(25)]
    assert len(ranking.rank(listings, {}, now=now)) == 25


def test_rank_empty_input(ranking):
    assert ranking.rank([], {}) == []


def test_rank_samples_clock_once(ranking, make_candidate, now, monkeypatch):
    calls = []

    def fake_now():
        calls.append(1)
        return now + timedelta(days=len(calls))

    monkeypatch.setattr(ranking_module, "utc_now", fake_now)
    listings = [make_candidate(id=str(i)) for i in range(5)]

    ranked = ranking.rank(listings, {})

    assert len(calls) == 1
    assert len({r.scores.recency_score for r in ranked}) == 1


def test_rank_tolerates_missing_fields(ranking, make_candidate, now):
    listing = make_candidate(price=None, rooms=None, location_city=None, created_at=None, scraped_at=None)
    ranked = ranking.rank([listing], {"price_max": 700, "rooms_min": 2, "city": "Zagreb"}, now=now)

    scores = ranked[0].scores
    assert scores.filter_match_score == 0.0
    assert scores.recency_score == 0.0
    assert scores.freshness_score == 0.0


def test_inverted_range_is_scored_not_rejected(ranking, make_candidate, now):
    ranked = ranking.rank([make_candidate(price=700)], {"price_min": 900, "price_max": 500}, now=now)

    details = ranked[0].match_details
    assert set(details.unmatched_filters) == {"price_min", "price_max"}
    # price_max: 40% over -> 0.05625; price_min: 22.2% under -> 0.18225; equal weights
    assert details.score == pytest.approx(0.11925)
    assert 0.0 < ranked[0].scores.combined_score < 1.0


def test_rank_output_is_json_serializable(ranking, make_candidate, now):
    ranked = ranking.rank([make_candidate(price=800)], {"price_max": 700}, now=now)
    payload = json.loads(ranked[0].model_dump_json())
    assert payload["scores"]["semantic_score"] == 0.8
    assert payload["match_details"]["partial_matches"][0]["filter_name"] == "price_max"
    assert payload["listing"]["listing_type"] == "rent"


# ------------------------------------------------------------------
# recency / freshness decay
# ------------------------------------------------------------------

def test_recency_full_under_one_day(now):
    assert recency_score(now - timedelta(hours=6), now) == 1.0


def test_recency_halfway(now):
    assert recency_score(now - timedelta(days=15), now) == pytest.approx(0.5, abs=0.1)


def test_recency_zero_from_thirty_days(now):
    assert recency_score(now - timedelta(days=30), now) == 0.0
    assert recency_score(now - timedelta(days=35), now) == 0.0


def test_recency_monotonic(now):
    scores = [recency_score(now - timedelta(hours=h), now) for h in range(0, 24 * 32, 6)]
    assert all(a >= b for a, b in zip(scores, scores[1:]))


def test_recency_future_timestamp_is_full(now):
    assert recency_score(now + timedelta(days=2), now) == 1.0


def test_freshness_full_under_one_hour(now):
    assert freshness_score(now - timedelta(minutes=30), now) == 1.0


def test_freshness_halfway(now):
    assert freshness_score(now - timedelta(hours=84), now) == pytest.approx(0.5, abs=0.1)


def test_freshness_zero_after_a_week(now):
    assert freshness_score(now - timedelta(hours=168), now) == 0.0
    assert freshness_score(now - timedelta(days=13), now) == 0.0


def test_freshness_monotonic(now):
    scores = [freshness_score(now - timedelta(minutes=m), now) for m in range(0, 60 * 170, 30)]
    assert all(a >= b for a, b in zip(scores, scores[1:]))


def test_naive_timestamps_are_utc(now):
    naive = (now - timedelta(days=15)).replace(tzinfo=None)
    assert recency_score(naive, now) == recency_score(now - timedelta(days=15), now)


# ------------------------------------------------------------------
# rerank
# ------------------------------------------------------------------

def test_rerank_with_price_filter(ranking, make_candidate, now):
    listings = [
        make_candidate(id="1", similarity=0.9, price=800),
        make_candidate(id="2", similarity=0.7, price=600),
    ]
    initial = ranking.rank(listings, {"listing_type": "rent"}, now=now)
    assert initial[0].listing.id == "1"

    reranked = ranking.rerank(initial, {"listing_type": "rent", "price_max": 650})

    assert reranked[0].listing.id == "2"


def test_rerank_reuses_filter_independent_scores(ranking, make_candidate):
    initial = [
        _result(make_candidate(id="1", similarity=0.85), 0.85, 0.5, 0.9, 0.9, 0.7),
    ]

    reranked = ranking.rerank(initial, {"has_parking": True})

    scores = reranked[0].scores
    assert scores.semantic_score == 0.85
    assert scores.recency_score == 0.9
    assert scores.freshness_score == 0.9
    assert scores.filter_match_score == 0.0
    assert scores.combined_score == pytest.approx(0.4 * 0.85 + 0.1 * 0.9 + 0.1 * 0.9)
    assert reranked[0].match_details.unmatched_filters == ["has_parking"]


def test_rerank_preserves_scores_from_rank(ranking, make_candidate, now):
    listings = [
        make_candidate(id="1", similarity=0.6, created_at=now - timedelta(days=10)),
        make_candidate(id="2", similarity=0.9, scraped_at=now - timedelta(hours=50)),
    ]
    initial = ranking.rank(listings, {}, now=now)
    before = {r.listing.id: r.scores for r in initial}

    reranked = ranking.rerank(initial, {"has_balcony": True, "price_max": 600})

    for r in reranked:
        assert r.scores.semantic_score == before[r.listing.id].semantic_score
        assert r.scores.recency_score == before[r.listing.id].recency_score
        assert r.scores.freshness_score == before[r.listing.id].freshness_score


def test_rerank_does_not_touch_input(ranking, make_candidate, now):
    initial = ranking.rank([make_candidate(id="1"), make_candidate(id="2", similarity=0.3)], {}, now=now)
    snapshot = [r.model_dump() for r in initial]

    ranking.rerank(initial, {"listing_type": "sale"})

    assert [r.model_dump() for r in initial] == snapshot


# ------------------------------------------------------------------
# explain_ranking
# ------------------------------------------------------------------

def test_explain_ranking(ranking, make_candidate):
    result = _result(
        make_candidate(title="Test Stan", similarity=0.85),
        0.85,
        0.9,
        0.95,
        0.98,
        0.88,
        matched=["listing_type", "price_max"],
        unmatched=["has_parking"],
        partial=[PartialMatch(filter_name="rooms_min", expected=3, actual=2, match_percentage=0.7)],
    )

    explanation = ranking.explain_ranking(result)

    assert "Test Stan" in explanation
    assert "Semantic Similarity: 85.0%" in explanation
    assert "Filter Match: 90.0%" in explanation
    assert "Matched: listing_type, price_max" in explanation
    assert "Unmatched: has_parking" in explanation
    assert "rooms_min: expected 3, got 2 (70% match)" in explanation


def test_explain_ranking_without_title_uses_id(ranking, make_candidate):
    result = _result(make_candidate(id="njk-9", title=None), 0.5, 1.0, 1.0, 1.0, 0.8)
    explanation = ranking.explain_ranking(result)
    assert '"njk-9"' in explanation
    assert "Matched:" not in explanation
    assert "Unmatched:" not in explanation


def test_explain_ranking_prints_whole_bounds_without_decimals(ranking, make_candidate, now):
    ranked = ranking.rank([make_candidate(price=770)], {"price_max": 700}, now=now)

    explanation = ranking.explain_ranking(ranked[0])

    assert "price_max: expected 700, got 770 (90% match)" in explanation


def test_explain_ranking_keeps_fractional_values(ranking, make_candidate):
    partial = PartialMatch(filter_name="surface_area_min", expected=62.5, actual=58.0, match_percentage=0.928)
    result = _result(make_candidate(), 0.8, 0.9, 1.0, 1.0, 0.9, partial=[partial])

    assert "surface_area_min: expected 62.5, got 58 (93% match)" in ranking.explain_ranking(result)


# ------------------------------------------------------------------
# get_ranking_stats
# ------------------------------------------------------------------

def test_ranking_stats(ranking, make_candidate):
    results = [
        _result(make_candidate(id="1"), 0.9, 0.8, 1.0, 1.0, 0.85, matched=["listing_type", "price_max"]),
        _result(make_candidate(id="2"), 0.7, 0.6, 0.8, 0.9, 0.65, matched=["listing_type"], unmatched=["price_max"]),
    ]

    stats = ranking.get_ranking_stats(results)

    assert stats.avg_combined_score == pytest.approx(0.75)
    assert stats.avg_semantic_score == pytest.approx(0.8)
    assert stats.avg_filter_score == pytest.approx(0.7)
    assert stats.top_matching_filters == {"listing_type": 2, "price_max": 1}
    assert stats.score_distribution.min == 0.65
    assert stats.score_distribution.max == 0.85
    assert stats.score_distribution.median == pytest.approx(0.75)


def test_ranking_stats_top_n(ranking, make_candidate):
    results = [
        _result(make_candidate(id="1"), 0.9, 0.8, 1.0, 1.0, 0.85, matched=["listing_type", "price_max"]),
        _result(make_candidate(id="2"), 0.7, 0.6, 0.8, 0.9, 0.65, matched=["listing_type"]),
    ]
    assert ranking.get_ranking_stats(results, top_n=1).top_matching_filters == {"listing_type": 2}


def test_ranking_stats_odd_median(ranking, make_candidate):
    results = [_result(make_candidate(id=str(i)), 0.5, 0.5, 0.5, 0.5, c) for i, c in enumerate([0.2, 0.9, 0.4])]
    assert ranking.get_ranking_stats(results).score_distribution.median == 0.4


def test_ranking_stats_empty(ranking):
    stats = ranking.get_ranking_stats([])

    assert stats.avg_combined_score == 0
    assert stats.avg_semantic_score == 0
    assert stats.avg_filter_score == 0
    assert stats.top_matching_filters == {}
    assert stats.score_distribution.min == 0
    assert stats.score_distribution.max == 0
    assert stats.score_distribution.median == 0


def test_factory_creates_service():
    service = create_ranking_service()
    assert isinstance(service, RankingService)
    assert isinstance(service.filter_matcher, FilterMatcherService)
