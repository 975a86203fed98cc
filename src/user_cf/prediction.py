"""Similarity-weighted predictions for items a rater has not judged.

    predict(r, item) = (sum sim(r, x) for x in liked_by(item)
                        - sum sim(r, x) for x in disliked_by(item))
                       / (|liked_by(item)| + |disliked_by(item)|)

Neighbors without a stored similarity contribute 0. When nobody has judged
the item there is no prediction (None), which is distinct from a score of 0.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from ..data import RatingIndex
from ..entities import EntityLike, EntityRef, KindRegistry
from ..store.keys import KeySpace
from ..store.ranked import RankedStore, StoreUnavailable
from ..store.scores import PredictionStore, SimilarityStore
from .sweep import SweepReport, is_cancelled


logger = logging.getLogger(__name__)


class PredictionEngine:
    def __init__(
        self,
        index: RatingIndex,
        store: RankedStore,
        keys: KeySpace,
        registry: KindRegistry,
        similarities: SimilarityStore,
        predictions: PredictionStore,
    ) -> None:
        self.index = index
        self.store = store
        self.keys = keys
        self.registry = registry
        self.similarities = similarities
        self.predictions = predictions

    def _weighted_votes(self, rater: EntityRef, members: set[str]) -> float:
        total = 0.0
        for member in members:
            sim = self.similarities.get(rater, EntityRef.parse(member))
            if sim is not None:
                total += sim
        return total

    def has_judged(self, rater: EntityLike, item: EntityLike) -> bool:
        r = self.registry.validate_rater(rater)
        i = self.registry.validate_item(item)
        return self._has_judged(r, i)

    def _has_judged(self, rater: EntityRef, item: EntityRef) -> bool:
        return self.store.sismember(self.keys.likes(rater), item.key) or self.store.sismember(
            self.keys.dislikes(rater), item.key
        )

    def predict(self, rater: EntityLike, item: EntityLike) -> Optional[float]:
        """Prediction score, or None if no one has judged `item`.

        Callers are expected to pass only items `rater` has not judged.
        """
        r = self.registry.validate_rater(rater)
        i = self.registry.validate_item(item)

        liked_by = self.store.smembers(self.keys.liked_by(i))
        disliked_by = self.store.smembers(self.keys.disliked_by(i))
        rated_by = len(liked_by) + len(disliked_by)
        if rated_by == 0:
            return None

        weighted_sum = self._weighted_votes(r, liked_by) - self._weighted_votes(r, disliked_by)
        return weighted_sum / float(rated_by)

    def recompute_recommendations(self, rater: EntityLike, cancel: Optional[threading.Event] = None) -> SweepReport:
        """Refresh `rater`'s prediction map across every registered item kind.

        Judged items are skipped and any stale prediction for them is dropped.
        """
        r = self.registry.validate_rater(rater)
        report = SweepReport(job=f"recommendations:{r.key}")
        for kind in self.registry.item_kinds():
            for item in self.index.stream_all_items(kind):
                if is_cancelled(cancel):
                    report.cancelled = True
                    logger.warning("Recommendation sweep for %s cancelled after %d items", r, report.units)
                    return report
                self._run_unit(r, item, report)
        logger.info(
            "Recommendation sweep for %s done: items=%d written=%d skipped=%d failed=%d",
            r,
            report.units,
            report.written,
            report.skipped,
            report.failed,
        )
        return report

    def _run_unit(self, rater: EntityRef, item: EntityRef, report: SweepReport) -> None:
        report.units += 1
        try:
            if self._has_judged(rater, item):
                self.predictions.remove(rater, item)
                report.skipped += 1
                return
            score = self.predict(rater, item)
            if score is None:
                self.predictions.remove(rater, item)
                report.skipped += 1
                return
            self.predictions.set(rater, item, score)
        except StoreUnavailable:
            report.failed += 1
            logger.exception("Store failure predicting %s for %s; continuing", item, rater)
            return
        report.written += 1
