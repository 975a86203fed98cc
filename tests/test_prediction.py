from __future__ import annotations

import pytest

from conftest import SCENARIO, make_recommender
from src.entities import EntityRef, KindRegistry, UnresolvedEntityKind


WITH_ITEM_4 = SCENARIO + [
    ("user:B", "movie:4", "like"),
    ("user:C", "movie:4", "dislike"),
]


@pytest.fixture
def rec(store, registry):
    rec = make_recommender(WITH_ITEM_4, store, registry)
    rec.sync_all()
    rec.recompute_all_similarities()
    return rec


def test_prediction_is_driven_by_the_similar_rater(rec) -> None:
    # sim(A,B) = 3/3, sim(A,C) = -2/3; B liked 4 and C disliked it.
    assert rec.similarity_between("user:A", "user:B") == pytest.approx(1.0)
    assert rec.similarity_between("user:A", "user:C") == pytest.approx(-2.0 / 3.0)

    score = rec.predict("user:A", "movie:4")
    assert score is not None
    assert score > 0
    assert score == pytest.approx((1.0 + 2.0 / 3.0) / 2.0)


def test_prediction_is_absent_when_nobody_judged_the_item(rec) -> None:
    rec.index.add_items("movie", ["99"])
    assert rec.predict("user:A", "movie:99") is None
    assert rec.predict("user:A", "beer:1") is None


def test_missing_similarities_count_as_zero(store, registry) -> None:
    rec = make_recommender(WITH_ITEM_4, store, registry)
    rec.sync_all()

    # Sets are synced but no similarity sweep has run.
    assert rec.predict("user:A", "movie:4") == 0.0


def test_recompute_recommendations_skips_judged_items(rec) -> None:
    rec.index.add_items("beer", ["1"])
    report = rec.recompute_recommendations_for("user:A")

    # movie:1..4 plus beer:1; only movie:4 is unjudged and has votes.
    assert report.units == 5
    assert report.written == 1
    assert report.skipped == 4
    assert report.failed == 0

    a = EntityRef("user", "A")
    assert rec.predictions.size(a) == 1
    assert rec.probability_of_liking("user:A", "movie:4") == pytest.approx(5.0 / 6.0)
    assert rec.probability_of_liking("user:A", "movie:1") is None
    assert [p.item for p in rec.top_predictions("user:A", k=3)] == ["movie:4"]


def test_probability_of_disliking_is_the_negated_liking(rec) -> None:
    rec.recompute_recommendations_for("user:A")

    liking = rec.probability_of_liking("user:A", "movie:4")
    assert liking is not None
    assert rec.probability_of_disliking("user:A", "movie:4") == -liking

    assert rec.probability_of_liking("user:A", "movie:2") is None
    assert rec.probability_of_disliking("user:A", "movie:2") is None


def test_stale_prediction_dropped_once_rater_judges_item(rec) -> None:
    rec.recompute_recommendations_for("user:A")
    assert rec.probability_of_liking("user:A", "movie:4") is not None

    rec.index.like("user:A", "movie:4")
    rec.sync("user:A")
    rec.recompute_recommendations_for("user:A")

    assert rec.probability_of_liking("user:A", "movie:4") is None


def test_recompute_overwrites_previous_scores(rec) -> None:
    rec.recompute_recommendations_for("user:A")
    first = rec.probability_of_liking("user:A", "movie:4")

    rec.recompute_recommendations_for("user:A")
    assert rec.probability_of_liking("user:A", "movie:4") == first


def test_unknown_item_kind_is_rejected(rec) -> None:
    with pytest.raises(UnresolvedEntityKind):
        rec.predict("user:A", "book:1")
    with pytest.raises(UnresolvedEntityKind):
        rec.probability_of_liking("user:A", "book:1")


def test_liked_and_disliked_records_resolve_through_the_registry(store) -> None:
    titles = {"1": "Alien", "2": "Brazil", "3": "Cube", "10": "Heat"}
    registry = (
        KindRegistry()
        .register("user", "rater")
        .register("movie", "item", lookup=titles)
        .register("beer", "item", lookup=lambda ident: f"beer #{ident}")
    )
    records = SCENARIO + [("user:A", "movie:10", "like"), ("user:A", "beer:7", "like")]
    rec = make_recommender(records, store, registry)

    assert rec.liked_records("user:A") == ["beer #7", "Alien", "Heat", "Brazil"]
    assert rec.liked_records("user:A", kind="movie") == ["Alien", "Heat", "Brazil"]
    assert rec.disliked_records("user:A") == ["Cube"]
    assert rec.disliked_records("user:A", kind="beer") == []

    with pytest.raises(UnresolvedEntityKind):
        rec.liked_records("user:A", kind="book")
