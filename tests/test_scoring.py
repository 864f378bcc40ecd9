import math
from datetime import timedelta

import pytest

from conftest import make_course
from services.scoring import (
    MISSING_PUBLISHED_DAYS,
    compute_final_score,
    days_since,
    popularity_score,
    rank_by_popularity,
    rank_matches,
    sort_courses,
)


def test_perfect_free_match_published_today(fixed_now):
    course = make_course("c1", "Intro to ML", avg_rating=4, review_count=10, is_free=True,
                         published_at=fixed_now.date().isoformat())

    score = compute_final_score(course, 0.0, 1.25, fixed_now)

    assert score == pytest.approx(4.1199, abs=1e-4)


def test_missing_or_garbled_publication_date_counts_as_old(fixed_now):
    assert days_since(None, fixed_now) == MISSING_PUBLISHED_DAYS
    assert days_since("not a date", fixed_now) == MISSING_PUBLISHED_DAYS
    assert days_since("2026-10-09T12:00:00Z", fixed_now) == 10


def test_recency_adjustment_fades_over_thirty_days(fixed_now):
    def score_for(days_ago):
        published = (fixed_now - timedelta(days=days_ago)).isoformat()
        return compute_final_score(make_course("x", "t", published_at=published), 0.5, 1.25, fixed_now)

    assert score_for(0) - score_for(15) == pytest.approx(0.075)
    assert score_for(30) == pytest.approx(score_for(400))
    assert score_for(400) == pytest.approx(compute_final_score(make_course("x", "t"), 0.5, 1.25, fixed_now))


def test_better_match_scores_higher_with_equal_metadata(fixed_now):
    course = make_course("x", "t", avg_rating=4.2, review_count=300)
    assert compute_final_score(course, 0.1, 1.25, fixed_now) > compute_final_score(course, 0.2, 1.25, fixed_now)


def test_more_reviews_never_lower_the_score(fixed_now):
    scores = [
        compute_final_score(make_course("x", "t", avg_rating=4, review_count=n), 0.3, 1.25, fixed_now)
        for n in (0, 1, 10, 1000, 100000)
    ]
    assert scores == sorted(scores)


def test_free_boost_only_applies_to_free_courses(fixed_now):
    free = make_course("f", "t", avg_rating=4, review_count=10, is_free=True)
    paid = make_course("p", "t", avg_rating=4, review_count=10, is_free=False, price=20)

    assert compute_final_score(free, 0.2, 1.25, fixed_now) > compute_final_score(free, 0.2, 1.0, fixed_now)
    assert compute_final_score(paid, 0.2, 1.25, fixed_now) == compute_final_score(paid, 0.2, 1.0, fixed_now)


def test_popularity_heuristic_orders_listing():
    a = make_course("a", "A", avg_rating=4.0, review_count=0)
    b = make_course("b", "B", avg_rating=4.5, review_count=10)
    c = make_course("c", "C", avg_rating=4.0, review_count=1000)

    ranked = rank_by_popularity([a, b, c])

    assert popularity_score(c) == pytest.approx(4.0 + math.log1p(1000) * 0.1)
    assert [s.id for s in ranked] == ["b", "c", "a"]
    assert all(s.bm25_like_score is None for s in ranked)


def test_popularity_ties_keep_input_order():
    courses = [make_course(str(i), f"t{i}", avg_rating=3, review_count=5) for i in range(5)]
    assert [s.id for s in rank_by_popularity(courses)] == ["0", "1", "2", "3", "4"]


def test_rank_matches_reports_bm25_like_score(fixed_now):
    strong = make_course("s", "Strong", avg_rating=3)
    weak = make_course("w", "Weak", avg_rating=3)

    ranked = rank_matches([(weak, 0.4), (strong, 0.0)], now=fixed_now)

    assert [s.id for s in ranked] == ["s", "w"]
    assert ranked[0].bm25_like_score == pytest.approx(1.0)
    assert ranked[1].bm25_like_score == pytest.approx(0.6)


def test_sort_options_are_stable():
    ranked = rank_by_popularity([
        make_course("a", "A", avg_rating=4.0, review_count=50, is_free=False, price=10),
        make_course("b", "B", avg_rating=4.8, review_count=5, is_free=True),
        make_course("c", "C", avg_rating=4.0, review_count=500, is_free=True),
    ])
    assert [s.id for s in ranked] == ["b", "c", "a"]

    assert [s.id for s in sort_courses(ranked, "rating")] == ["b", "c", "a"]
    assert [s.id for s in sort_courses(ranked, "popular")] == ["c", "a", "b"]
    assert [s.id for s in sort_courses(ranked, "free_first")] == ["b", "c", "a"]
    assert [s.id for s in sort_courses(ranked, "relevance")] == ["b", "c", "a"]
    assert [s.id for s in sort_courses(ranked, None)] == ["b", "c", "a"]
