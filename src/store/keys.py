"""Key layout in the ranked store: `{namespace}:{kind}:{id}:{role}`."""

from __future__ import annotations

from dataclasses import dataclass

from ..entities import EntityRef


LIKES = "likes"
DISLIKES = "dislikes"
LIKED_BY = "liked_by"
DISLIKED_BY = "disliked_by"
SIMILARITIES = "similarities"
PREDICTIONS = "predictions"
RATERS = "raters"


@dataclass(frozen=True)
class KeySpace:
    namespace: str = "recommendable"

    def key(self, ref: EntityRef, role: str) -> str:
        return f"{self.namespace}:{ref.kind}:{ref.id}:{role}"

    def raters(self) -> str:
        """Set of rater keys that currently hold sets in the store."""
        return f"{self.namespace}:{RATERS}"

    def likes(self, rater: EntityRef) -> str:
        return self.key(rater, LIKES)

    def dislikes(self, rater: EntityRef) -> str:
        return self.key(rater, DISLIKES)

    def liked_by(self, item: EntityRef) -> str:
        return self.key(item, LIKED_BY)

    def disliked_by(self, item: EntityRef) -> str:
        return self.key(item, DISLIKED_BY)

    def similarities(self, rater: EntityRef) -> str:
        return self.key(rater, SIMILARITIES)

    def predictions(self, rater: EntityRef) -> str:
        return self.key(rater, PREDICTIONS)
