from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from ..config import AppConfig
from ..data import JudgmentIndex, RatingIndex
from ..entities import EntityLike, EntityRef, KindRegistry, UnresolvedEntityKind
from ..store.keys import KeySpace
from ..store.ranked import RankedStore, open_store
from ..store.scores import PredictionStore, SimilarityStore
from .prediction import PredictionEngine
from .similarity import SimilarityEngine
from .sweep import SweepReport, is_cancelled
from .sync import SetSynchronizer, SyncResult


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimilarRater:
    rater: str
    similarity: float


@dataclass(frozen=True)
class PredictedItem:
    item: str
    score: float


class UserUserCFRecommender:
    """Like/dislike user-user CF over a ranked key-value store.

    Wires the synchronizer, similarity engine and prediction engine around one
    store client. The recommender closes the store on `close()` only when it
    opened it itself (`from_config`); an injected store stays with its owner.
    """

    def __init__(
        self,
        *,
        index: RatingIndex,
        store: RankedStore,
        registry: KindRegistry,
        namespace: str = "recommendable",
        top_k: int = 10,
        owns_store: bool = False,
        config: Optional[AppConfig] = None,
    ) -> None:
        self.index = index
        self.store = store
        self.registry = registry
        self.keys = KeySpace(namespace=namespace)
        self.top_k = int(top_k)
        self.config = config
        self._owns_store = bool(owns_store)

        self.similarities = SimilarityStore(store, self.keys)
        self.predictions = PredictionStore(store, self.keys)
        self.synchronizer = SetSynchronizer(index, store, self.keys, registry)
        self.similarity_engine = SimilarityEngine(index, store, self.keys, registry, self.similarities)
        self.prediction_engine = PredictionEngine(
            index, store, self.keys, registry, self.similarities, self.predictions
        )

    @classmethod
    def from_config(cls, config_path: Path) -> "UserUserCFRecommender":
        return cls.from_app_config(AppConfig.from_yaml(config_path))

    @classmethod
    def from_app_config(cls, cfg: AppConfig) -> "UserUserCFRecommender":
        registry = KindRegistry.from_config(cfg.entities)
        index = JudgmentIndex.from_csv(cfg.judgments_csv)
        store = open_store(cfg.store)
        logger.info(
            "UserCF ready: backend=%s namespace=%s raters=%s items=%s judgments=%d",
            cfg.store.backend,
            cfg.store.namespace,
            registry.rater_kinds(),
            registry.item_kinds(),
            len(index),
        )
        return cls(
            index=index,
            store=store,
            registry=registry,
            namespace=cfg.store.namespace,
            top_k=cfg.user_cf.top_k,
            owns_store=True,
            config=cfg,
        )

    def close(self) -> None:
        if self._owns_store:
            self.store.close()

    def __enter__(self) -> "UserUserCFRecommender":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    # ----- sets -----

    def sync(self, rater: EntityLike) -> SyncResult:
        return self.synchronizer.sync(rater)

    def sync_all(self, cancel: Optional[threading.Event] = None) -> SweepReport:
        return self.synchronizer.sync_all(cancel)

    # ----- similarity -----

    def similarity_between(self, a: EntityLike, b: EntityLike) -> float:
        return self.similarity_engine.similarity(a, b)

    def _k(self, k: Optional[int]) -> int:
        return self.top_k if k is None else int(k)

    def similar_raters(self, rater: EntityLike, *, k: Optional[int] = None) -> list[SimilarRater]:
        r = self.registry.validate_rater(rater)
        return [SimilarRater(rater=n.key, similarity=s) for n, s in self.similarities.top_k(r, self._k(k))]

    def top_similar_raters(self, rater: EntityLike, k: Optional[int] = None) -> list[EntityRef]:
        r = self.registry.validate_rater(rater)
        return [n for n, _ in self.similarities.top_k(r, self._k(k))]

    def update_similarities_for(self, rater: EntityLike, cancel: Optional[threading.Event] = None) -> SweepReport:
        return self.similarity_engine.update_similarities(rater, cancel)

    def recompute_all_similarities(self, cancel: Optional[threading.Event] = None) -> SweepReport:
        return self.similarity_engine.recompute_all_similarities(cancel)

    # ----- predictions -----

    def predict(self, rater: EntityLike, item: EntityLike) -> Optional[float]:
        return self.prediction_engine.predict(rater, item)

    def recompute_recommendations_for(self, rater: EntityLike, cancel: Optional[threading.Event] = None) -> SweepReport:
        return self.prediction_engine.recompute_recommendations(rater, cancel)

    def recompute_all_recommendations(self, cancel: Optional[threading.Event] = None) -> SweepReport:
        report = SweepReport(job="recommendations")
        for rater in self.index.stream_all_raters():
            if is_cancelled(cancel):
                report.cancelled = True
                logger.warning("Prediction sweep cancelled after %d items", report.units)
                break
            report.merge(self.recompute_recommendations_for(rater, cancel))
        logger.info("Prediction sweep done: items=%d written=%d failed=%d", report.units, report.written, report.failed)
        return report

    def probability_of_liking(self, rater: EntityLike, item: EntityLike) -> Optional[float]:
        return self.predictions.probability_of_liking(
            self.registry.validate_rater(rater), self.registry.validate_item(item)
        )

    def probability_of_disliking(self, rater: EntityLike, item: EntityLike) -> Optional[float]:
        """Always `-probability_of_liking`; there is no separate dislike model."""
        return self.predictions.probability_of_disliking(
            self.registry.validate_rater(rater), self.registry.validate_item(item)
        )

    def top_predictions(self, rater: EntityLike, *, k: Optional[int] = None) -> list[PredictedItem]:
        r = self.registry.validate_rater(rater)
        return [PredictedItem(item=i.key, score=s) for i, s in self.predictions.top_k(r, self._k(k))]

    # ----- judged records -----

    def liked_records(self, rater: EntityLike, kind: Optional[str] = None) -> list[Any]:
        """Domain objects the rater liked, resolved through the kind registry."""
        return self._records(rater, kind, liked=True)

    def disliked_records(self, rater: EntityLike, kind: Optional[str] = None) -> list[Any]:
        return self._records(rater, kind, liked=False)

    def _records(self, rater: EntityLike, kind: Optional[str], *, liked: bool) -> list[Any]:
        r = self.registry.validate_rater(rater)
        if kind is not None and kind not in self.registry.item_kinds():
            raise UnresolvedEntityKind(kind, "item")
        edges = self.index.edges_for(r)
        refs = edges.liked if liked else edges.disliked
        return self.registry.resolve_many(sorted(ref for ref in refs if kind is None or ref.kind == kind))
