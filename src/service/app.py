"""FastAPI service entrypoint for the like/dislike recommender."""

from __future__ import annotations

import logging
import os
import threading
from contextlib import asynccontextmanager
from typing import Any, Callable, TypeVar

from fastapi import BackgroundTasks, FastAPI, HTTPException, Query

from ..config import default_config_path
from ..entities import UnresolvedEntityKind
from ..store.ranked import StoreUnavailable
from ..user_cf.recommender import UserUserCFRecommender
from ..utils import setup_logging
from .schemas import (
    JobAccepted,
    PredictRequest,
    PredictResponse,
    ProbabilityResponse,
    RaterRequest,
    SimilarityResponse,
    SimilarRatersRequest,
    SimilarRatersResponse,
    SyncResponse,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))

    config_path = default_config_path()
    logger.info("Starting service with config=%s", config_path)
    app.state.cancel = threading.Event()
    app.state.recommender = UserUserCFRecommender.from_config(config_path)
    try:
        yield
    finally:
        # Running sweeps stop at their next unit boundary.
        app.state.cancel.set()
        app.state.recommender.close()
        app.state.recommender = None
        logger.info("Recommender closed")


app = FastAPI(title="Like/Dislike User-CF Service", lifespan=lifespan)


def _recommender(app_: FastAPI) -> UserUserCFRecommender:
    rec = getattr(app_.state, "recommender", None)
    if rec is None:
        raise HTTPException(status_code=503, detail="Recommender not initialized")
    return rec


def _call(fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    try:
        return fn(*args, **kwargs)
    except UnresolvedEntityKind as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StoreUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


@app.get("/similarity", response_model=SimilarityResponse)
def similarity(rater: str = Query(..., min_length=3), other: str = Query(..., min_length=3)) -> dict:
    """Similarity of `other` as seen from `rater`."""
    rec = _recommender(app)
    score = _call(rec.similarity_between, rater, other)
    return {"rater": rater, "other": other, "similarity": float(score)}


@app.post("/raters/similar", response_model=SimilarRatersResponse)
def similar_raters(req: SimilarRatersRequest) -> dict:
    rec = _recommender(app)
    k = rec.top_k if req.k is None else int(req.k)
    sims = _call(rec.similar_raters, req.rater, k=k)
    return {"rater": req.rater, "k": k, "results": [s.__dict__ for s in sims]}


@app.post("/predict", response_model=PredictResponse)
def predict(req: PredictRequest) -> dict:
    """Compute a prediction on the fly; `score` is null when nobody judged the item."""
    rec = _recommender(app)
    return {"rater": req.rater, "item": req.item, "score": _call(rec.predict, req.rater, req.item)}


@app.get("/probability", response_model=ProbabilityResponse)
def probability(rater: str = Query(..., min_length=3), item: str = Query(..., min_length=3)) -> dict:
    """Stored prediction for (rater, item); disliking is the negation of liking."""
    rec = _recommender(app)
    return {
        "rater": rater,
        "item": item,
        "liking": _call(rec.probability_of_liking, rater, item),
        "disliking": _call(rec.probability_of_disliking, rater, item),
    }


@app.post("/sync", response_model=SyncResponse)
def sync(req: RaterRequest) -> dict:
    rec = _recommender(app)
    result = _call(rec.sync, req.rater)
    return {
        "rater": result.rater.key,
        "liked": result.liked,
        "disliked": result.disliked,
        "added": result.added,
        "removed": result.removed,
    }


@app.post("/jobs/similarities", response_model=JobAccepted, status_code=202)
def similarities_job(background_tasks: BackgroundTasks) -> dict:
    """Queue the full similarity sweep."""
    rec = _recommender(app)
    background_tasks.add_task(rec.recompute_all_similarities, app.state.cancel)
    return {"job": "similarities"}


@app.post("/jobs/recommendations", response_model=JobAccepted, status_code=202)
def recommendations_job(req: RaterRequest, background_tasks: BackgroundTasks) -> dict:
    """Queue the prediction sweep for one rater."""
    rec = _recommender(app)
    rater = _call(rec.registry.validate_rater, req.rater)
    background_tasks.add_task(rec.recompute_recommendations_for, rater, app.state.cancel)
    return {"job": f"recommendations:{rater.key}"}
