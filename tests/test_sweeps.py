from __future__ import annotations

import logging
import threading

import pytest

from conftest import SCENARIO, FlakyStore, make_recommender
from src.entities import EntityRef


class _CancelAfter(threading.Event):
    """Reports cancelled once `n` checks have passed."""

    def __init__(self, n: int) -> None:
        super().__init__()
        self.n = n
        self.checks = 0

    def is_set(self) -> bool:
        self.checks += 1
        return self.checks > self.n


def test_similarity_sweep_continues_past_store_failures(registry, caplog) -> None:
    rec = make_recommender(SCENARIO, FlakyStore(), registry)
    rec.sync_all()
    rec.store.fail_on = {"user:B:similarities"}

    with caplog.at_level(logging.ERROR):
        report = rec.recompute_all_similarities()

    # (A,B) and (B,C) both write into B's map; (A,C) is untouched.
    assert report.units == 3
    assert report.failed == 2
    assert report.written == 1
    assert rec.similarities.get(EntityRef("user", "A"), EntityRef("user", "C")) == pytest.approx(-2.0 / 3.0)
    assert "Store failure" in caplog.text


def test_prediction_sweep_continues_past_store_failures(registry) -> None:
    records = SCENARIO + [("user:B", "movie:4", "like"), ("user:B", "movie:5", "like")]
    rec = make_recommender(records, FlakyStore(), registry)
    rec.sync_all()
    rec.recompute_all_similarities()
    rec.store.fail_on = {"movie:4:liked_by"}

    report = rec.recompute_recommendations_for("user:A")

    assert report.failed == 1
    assert report.written == 1
    assert rec.probability_of_liking("user:A", "movie:5") is not None
    assert rec.probability_of_liking("user:A", "movie:4") is None


def test_sweeps_stop_when_cancelled(scenario) -> None:
    scenario.sync_all()

    cancelled = threading.Event()
    cancelled.set()
    report = scenario.recompute_all_similarities(cancel=cancelled)
    assert report.cancelled
    assert report.units == 0

    report = scenario.recompute_all_similarities(cancel=_CancelAfter(1))
    assert report.cancelled
    assert report.units == 1

    report = scenario.recompute_recommendations_for("user:C", cancel=cancelled)
    assert report.cancelled
    assert report.units == 0


def test_rerunning_a_sweep_repairs_failed_units(registry) -> None:
    rec = make_recommender(SCENARIO, FlakyStore(), registry)
    rec.sync_all()
    rec.store.fail_on = {"user:B:similarities"}
    rec.recompute_all_similarities()

    rec.store.fail_on = set()
    report = rec.recompute_all_similarities()

    assert report.failed == 0
    assert rec.top_similar_raters("user:B", 2) == [EntityRef("user", "A"), EntityRef("user", "C")]


def test_prediction_sweep_logs_when_cancelled(scenario, caplog) -> None:
    scenario.sync_all()
    cancelled = threading.Event()
    cancelled.set()

    with caplog.at_level(logging.WARNING):
        report = scenario.recompute_all_recommendations(cancel=cancelled)

    assert report.cancelled
    assert report.units == 0
    assert "Prediction sweep cancelled" in caplog.text
