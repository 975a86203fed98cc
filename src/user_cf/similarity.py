"""Rater-rater similarity from liked/disliked set overlap.

    similarity(a, b) = (agreements - disagreements) / (|likes(a)| + |dislikes(a)|)

The denominator is rater `a`'s own judgment count, so the score is
direction-dependent: `similarity(a, b)` and `similarity(b, a)` differ whenever
the two raters judged a different number of items. Each direction is stored
under its own rater's map with its own denominator.
"""

from __future__ import annotations

import logging
import threading
from itertools import islice
from typing import Optional

from ..data import RatingIndex
from ..entities import EntityLike, EntityRef, KindRegistry
from ..store.keys import KeySpace
from ..store.ranked import RankedStore, StoreUnavailable
from ..store.scores import SimilarityStore
from .sweep import SweepReport, is_cancelled


logger = logging.getLogger(__name__)


def _score(agreements: int, disagreements: int, total: int) -> float:
    if total == 0:
        return 0.0
    return float(agreements - disagreements) / float(total)


class SimilarityEngine:
    def __init__(
        self,
        index: RatingIndex,
        store: RankedStore,
        keys: KeySpace,
        registry: KindRegistry,
        similarities: SimilarityStore,
    ) -> None:
        self.index = index
        self.store = store
        self.keys = keys
        self.registry = registry
        self.similarities = similarities

    def _pair(self, a: EntityLike, b: EntityLike) -> tuple[EntityRef, EntityRef]:
        return self.registry.validate_rater(a), self.registry.validate_rater(b)

    def _agreements(self, a: EntityRef, b: EntityRef) -> int:
        common_likes = self.store.sinter(self.keys.likes(a), self.keys.likes(b))
        common_dislikes = self.store.sinter(self.keys.dislikes(a), self.keys.dislikes(b))
        return len(common_likes) + len(common_dislikes)

    def _disagreements(self, a: EntityRef, b: EntityRef) -> int:
        a_likes_b_dislikes = self.store.sinter(self.keys.likes(a), self.keys.dislikes(b))
        a_dislikes_b_likes = self.store.sinter(self.keys.dislikes(a), self.keys.likes(b))
        return len(a_likes_b_dislikes) + len(a_dislikes_b_likes)

    def _judgment_count(self, rater: EntityRef) -> int:
        return self.store.scard(self.keys.likes(rater)) + self.store.scard(self.keys.dislikes(rater))

    def agreements(self, a: EntityLike, b: EntityLike) -> int:
        """Items both raters liked plus items both disliked."""
        ra, rb = self._pair(a, b)
        return self._agreements(ra, rb)

    def disagreements(self, a: EntityLike, b: EntityLike) -> int:
        """Items one rater liked and the other disliked."""
        ra, rb = self._pair(a, b)
        return self._disagreements(ra, rb)

    def judgment_count(self, rater: EntityLike) -> int:
        return self._judgment_count(self.registry.validate_rater(rater))

    def similarity(self, a: EntityLike, b: EntityLike) -> float:
        """Score of `b` as seen from `a`; 0.0 when `a` has judged nothing."""
        ra, rb = self._pair(a, b)
        total = self._judgment_count(ra)
        if total == 0:
            return 0.0
        return _score(self._agreements(ra, rb), self._disagreements(ra, rb), total)

    def _write_pair(self, a: EntityRef, b: EntityRef) -> tuple[float, float]:
        # Overlap counts are symmetric; only the denominators differ.
        agreements = self._agreements(a, b)
        disagreements = self._disagreements(a, b)
        sim_ab = _score(agreements, disagreements, self._judgment_count(a))
        sim_ba = _score(agreements, disagreements, self._judgment_count(b))
        self.similarities.set(a, b, sim_ab)
        self.similarities.set(b, a, sim_ba)
        return sim_ab, sim_ba

    def update_similarities(self, rater: EntityLike, cancel: Optional[threading.Event] = None) -> SweepReport:
        """Recompute `rater` against every other rater, writing both directions."""
        r = self.registry.validate_rater(rater)
        report = SweepReport(job=f"similarities:{r.key}")
        for other in self.index.stream_all_raters():
            if other == r:
                continue
            if is_cancelled(cancel):
                report.cancelled = True
                logger.warning("Similarity update for %s cancelled after %d pairs", r, report.units)
                break
            self._run_unit(r, other, report)
        return report

    def recompute_all_similarities(self, cancel: Optional[threading.Event] = None) -> SweepReport:
        """Score every unordered pair of distinct raters once.

        The rater universe is streamed twice (an outer pass and a fresh inner
        pass starting after the outer position) rather than held in memory.
        """
        report = SweepReport(job="similarities")
        logger.info("Similarity sweep started")
        for i, a in enumerate(self.index.stream_all_raters()):
            ra = self.registry.validate_rater(a)
            for b in islice(self.index.stream_all_raters(), i + 1, None):
                if is_cancelled(cancel):
                    report.cancelled = True
                    logger.warning("Similarity sweep cancelled after %d pairs", report.units)
                    return report
                self._run_unit(ra, self.registry.validate_rater(b), report)
        logger.info(
            "Similarity sweep done: pairs=%d written=%d failed=%d",
            report.units,
            report.written,
            report.failed,
        )
        return report

    def _run_unit(self, a: EntityRef, b: EntityRef, report: SweepReport) -> None:
        report.units += 1
        try:
            self._write_pair(a, b)
        except StoreUnavailable:
            report.failed += 1
            logger.exception("Store failure computing similarity %s <-> %s; continuing", a, b)
            return
        report.written += 1
