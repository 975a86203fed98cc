"""Per-rater sorted score maps: neighbor similarities and item predictions."""

from __future__ import annotations

from typing import Optional

from ..entities import EntityRef
from .keys import PREDICTIONS, SIMILARITIES, KeySpace
from .ranked import RankedStore


class _ScoreMap:
    """`rater -> (member -> score)` stored as one sorted map per rater."""

    role = ""

    def __init__(self, store: RankedStore, keys: KeySpace) -> None:
        self.store = store
        self.keys = keys

    def _key(self, rater: EntityRef) -> str:
        return self.keys.key(rater, self.role)

    def set(self, rater: EntityRef, member: EntityRef, score: float) -> None:
        self.store.zadd(self._key(rater), member.key, float(score))

    def get(self, rater: EntityRef, member: EntityRef) -> Optional[float]:
        return self.store.zscore(self._key(rater), member.key)

    def remove(self, rater: EntityRef, member: EntityRef) -> bool:
        return self.store.zrem(self._key(rater), member.key) > 0

    def top_k(self, rater: EntityRef, k: int) -> list[tuple[EntityRef, float]]:
        """Up to `k` entries, highest score first, ties by member ascending."""
        return [(EntityRef.parse(m), s) for m, s in self.store.ztop(self._key(rater), int(k))]

    def size(self, rater: EntityRef) -> int:
        return self.store.zcard(self._key(rater))

    def clear(self, rater: EntityRef) -> None:
        self.store.delete(self._key(rater))


class SimilarityStore(_ScoreMap):
    role = SIMILARITIES


class PredictionStore(_ScoreMap):
    role = PREDICTIONS

    def probability_of_liking(self, rater: EntityRef, item: EntityRef) -> Optional[float]:
        return self.get(rater, item)

    def probability_of_disliking(self, rater: EntityRef, item: EntityRef) -> Optional[float]:
        """Additive inverse of `probability_of_liking`; never stored separately."""
        liking = self.probability_of_liking(rater, item)
        return None if liking is None else -liking
