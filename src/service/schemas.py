"""Pydantic schemas for the like/dislike recommendation API."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class SimilarityResponse(BaseModel):
    rater: str
    other: str
    similarity: float


class SimilarRatersRequest(BaseModel):
    """Request for the raters most similar to `rater`."""

    rater: str = Field(..., description="Rater reference in kind:id form, e.g. user:42")
    k: Optional[int] = Field(None, ge=1, le=100, description="Number of similar raters; defaults to user_cf.top_k")


class SimilarRaterItem(BaseModel):
    rater: str
    similarity: float


class SimilarRatersResponse(BaseModel):
    rater: str
    k: int
    results: list[SimilarRaterItem]


class PredictRequest(BaseModel):
    rater: str = Field(..., description="Rater reference in kind:id form")
    item: str = Field(..., description="Item reference in kind:id form, e.g. movie:7")


class PredictResponse(BaseModel):
    rater: str
    item: str
    score: Optional[float] = Field(None, description="None when nobody has judged the item")


class ProbabilityResponse(BaseModel):
    rater: str
    item: str
    liking: Optional[float] = None
    disliking: Optional[float] = None


class RaterRequest(BaseModel):
    rater: str = Field(..., description="Rater reference in kind:id form")


class SyncResponse(BaseModel):
    rater: str
    liked: int
    disliked: int
    added: int
    removed: int


class JobAccepted(BaseModel):
    job: str
    status: str = "accepted"
