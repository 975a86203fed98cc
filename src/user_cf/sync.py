"""Mirror judgment edges from the Rating Index into ranked-store sets.

For every rater we keep `likes`/`dislikes` sets of item keys, and for every
item `liked_by`/`disliked_by` sets of rater keys. Item-keyed sets are
updated before the rater-keyed ones, so a sync interrupted half-way is
repaired by the next run.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Iterator, Optional

from ..data import RatingIndex
from ..entities import EntityLike, EntityRef, KindRegistry
from ..store.keys import DISLIKED_BY, LIKED_BY, KeySpace
from ..store.ranked import RankedStore, StoreUnavailable
from .sweep import SweepReport, is_cancelled


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncResult:
    rater: EntityRef
    liked: int
    disliked: int
    added: int
    removed: int


class SetSynchronizer:
    def __init__(self, index: RatingIndex, store: RankedStore, keys: KeySpace, registry: KindRegistry) -> None:
        self.index = index
        self.store = store
        self.keys = keys
        self.registry = registry

    def _mirror(self, rater: EntityRef, items: frozenset[EntityRef], rater_key: str, item_role: str) -> tuple[int, int]:
        current = {i.key: i for i in items}
        previous = self.store.smembers(rater_key)

        added = 0
        for item in current.values():
            added += self.store.sadd(self.keys.key(item, item_role), rater.key)

        removed = 0
        for member in previous - set(current):
            item = EntityRef.parse(member)
            removed += self.store.srem(self.keys.key(item, item_role), rater.key)

        self.store.replace_set(rater_key, current.keys())
        return added, removed

    def sync(self, rater: EntityLike) -> SyncResult:
        """Make the rater's sets match its current edges. Idempotent."""
        r = self.registry.validate_rater(rater)
        edges = self.index.edges_for(r)
        for item in edges.liked | edges.disliked:
            self.registry.validate_item(item)

        add_l, rem_l = self._mirror(r, edges.liked, self.keys.likes(r), LIKED_BY)
        add_d, rem_d = self._mirror(r, edges.disliked, self.keys.dislikes(r), DISLIKED_BY)
        if edges.total:
            self.store.sadd(self.keys.raters(), r.key)
        else:
            self._forget(r)

        result = SyncResult(
            rater=r,
            liked=len(edges.liked),
            disliked=len(edges.disliked),
            added=add_l + add_d,
            removed=rem_l + rem_d,
        )
        logger.debug("Synced %s liked=%d disliked=%d added=%d removed=%d", r, result.liked, result.disliked, result.added, result.removed)
        return result

    def _forget(self, rater: EntityRef) -> None:
        # Membership is dropped last so an interrupted cleanup is retried.
        if not self.store.sismember(self.keys.raters(), rater.key):
            return
        for member in self.store.smembers(self.keys.raters()):
            self.store.zrem(self.keys.similarities(EntityRef.parse(member)), rater.key)
        self.store.delete(self.keys.similarities(rater), self.keys.predictions(rater))
        self.store.srem(self.keys.raters(), rater.key)
        logger.info("Rater %s has no judgments left; removed from similarity maps", rater)

    def _universe(self) -> Iterator[EntityRef]:
        """Raters in the index, then raters the store still holds sets for."""
        departed = self.store.smembers(self.keys.raters())
        for rater in self.index.stream_all_raters():
            departed.discard(rater.key)
            yield rater
        for member in sorted(departed):
            yield EntityRef.parse(member)

    def sync_all(self, cancel: Optional[threading.Event] = None) -> SweepReport:
        """Sync every rater in the index plus every rater left over in the store."""
        report = SweepReport(job="sync")
        for rater in self._universe():
            if is_cancelled(cancel):
                report.cancelled = True
                logger.warning("Sync sweep cancelled after %d raters", report.units)
                break
            report.units += 1
            try:
                self.sync(rater)
            except StoreUnavailable:
                report.failed += 1
                logger.exception("Store failure while syncing %s; continuing", rater)
                continue
            report.written += 1
        logger.info("Sync sweep done: raters=%d failed=%d", report.units, report.failed)
        return report
