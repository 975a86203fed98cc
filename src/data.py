"""Rating Index: the authoritative like/dislike edges for every rater.

`JudgmentIndex` keeps the edges in a pandas DataFrame (one row per
rater/item pair) and can be loaded from a CSV export of the relational store.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional, Protocol, Tuple

import pandas as pd

from .entities import EntityLike, EntityRef, as_ref


logger = logging.getLogger(__name__)


LIKE = "like"
DISLIKE = "dislike"
POLARITIES: Tuple[str, ...] = (LIKE, DISLIKE)

REQUIRED_COLUMNS: Tuple[str, ...] = ("rater_kind", "rater_id", "item_kind", "item_id", "polarity")
_KEY_COLUMNS = ["rater_kind", "rater_id", "item_kind", "item_id"]


@dataclass(frozen=True)
class JudgmentEdges:
    liked: frozenset[EntityRef]
    disliked: frozenset[EntityRef]

    @property
    def total(self) -> int:
        return len(self.liked) + len(self.disliked)


class RatingIndex(Protocol):
    """Read-only view of judgment edges consumed by the recommender."""

    def edges_for(self, rater: EntityLike) -> JudgmentEdges: ...

    def stream_all_raters(self) -> Iterator[EntityRef]: ...

    def stream_all_items(self, kind: str) -> Iterator[EntityRef]: ...


def _empty_frame() -> pd.DataFrame:
    return pd.DataFrame({c: pd.Series(dtype="string") for c in REQUIRED_COLUMNS})


def validate_judgments(df: pd.DataFrame) -> None:
    """Validate that required columns exist and the one-edge-per-pair constraint holds."""
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"judgments missing columns: {missing}")

    for col in REQUIRED_COLUMNS:
        blank = df[col].isna() | (df[col].astype("string").str.strip() == "")
        if blank.any():
            raise ValueError(f"judgments has {int(blank.sum())} empty values in column {col!r}")

    bad_polarity = ~df["polarity"].isin(POLARITIES)
    if bad_polarity.any():
        bad_values = sorted(set(df.loc[bad_polarity, "polarity"].astype(str).tolist()))
        raise ValueError(f"judgments has invalid polarity values (expected like/dislike): {bad_values}")

    # A rater cannot both like and dislike the same item.
    if df.duplicated(subset=_KEY_COLUMNS).any():
        raise ValueError("judgments contains duplicate (rater, item) rows")


class JudgmentIndex:
    """In-process Rating Index backed by a DataFrame of judgment edges."""

    def __init__(self, df: Optional[pd.DataFrame] = None) -> None:
        if df is None:
            df = _empty_frame()
        missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            raise ValueError(f"judgments missing columns: {missing}")
        df = df[list(REQUIRED_COLUMNS)].copy()
        for col in REQUIRED_COLUMNS:
            df[col] = df[col].astype("string").str.strip()
        df["polarity"] = df["polarity"].str.lower()
        validate_judgments(df)
        self._df = df.reset_index(drop=True)
        # Items known without any judgment yet, per kind.
        self._extra_items: dict[str, set[str]] = {}

    @classmethod
    def from_csv(cls, path: Path) -> "JudgmentIndex":
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"judgments CSV not found: {path}")
        df = pd.read_csv(path, dtype={c: "string" for c in REQUIRED_COLUMNS})
        index = cls(df)
        logger.info("Loaded %d judgments from %s", len(index), path)
        return index

    @classmethod
    def from_records(cls, records: Iterable[tuple[EntityLike, EntityLike, str]]) -> "JudgmentIndex":
        """Build from `(rater, item, polarity)` tuples."""
        rows = []
        for rater, item, polarity in records:
            r, i = as_ref(rater), as_ref(item)
            rows.append(
                {"rater_kind": r.kind, "rater_id": r.id, "item_kind": i.kind, "item_id": i.id, "polarity": polarity}
            )
        if not rows:
            return cls()
        return cls(pd.DataFrame(rows, columns=list(REQUIRED_COLUMNS)))

    def __len__(self) -> int:
        return int(len(self._df))

    @property
    def frame(self) -> pd.DataFrame:
        return self._df.copy()

    # ----- edge mutation -----

    def _mask(self, rater: EntityRef, item: Optional[EntityRef] = None) -> pd.Series:
        m = (self._df["rater_kind"] == rater.kind) & (self._df["rater_id"] == rater.id)
        if item is not None:
            m &= (self._df["item_kind"] == item.kind) & (self._df["item_id"] == item.id)
        return m.fillna(False).astype(bool)

    def _set_edge(self, rater: EntityLike, item: EntityLike, polarity: str) -> None:
        r, i = as_ref(rater), as_ref(item)
        keep = self._df[~self._mask(r, i)]
        row = pd.DataFrame(
            [{"rater_kind": r.kind, "rater_id": r.id, "item_kind": i.kind, "item_id": i.id, "polarity": polarity}],
            dtype="string",
        )
        self._df = pd.concat([keep, row], ignore_index=True)

    def _remove_edge(self, rater: EntityLike, item: EntityLike, polarity: str) -> bool:
        r, i = as_ref(rater), as_ref(item)
        m = self._mask(r, i) & (self._df["polarity"] == polarity).fillna(False).astype(bool)
        if not m.any():
            return False
        self._df = self._df[~m].reset_index(drop=True)
        return True

    def like(self, rater: EntityLike, item: EntityLike) -> None:
        """Record a like, replacing any dislike of the same item."""
        self._set_edge(rater, item, LIKE)

    def dislike(self, rater: EntityLike, item: EntityLike) -> None:
        """Record a dislike, replacing any like of the same item."""
        self._set_edge(rater, item, DISLIKE)

    def unlike(self, rater: EntityLike, item: EntityLike) -> bool:
        return self._remove_edge(rater, item, LIKE)

    def undislike(self, rater: EntityLike, item: EntityLike) -> bool:
        return self._remove_edge(rater, item, DISLIKE)

    def add_items(self, kind: str, ids: Iterable[object]) -> None:
        """Make items part of the universe before anyone has judged them."""
        self._extra_items.setdefault(str(kind), set()).update(str(i) for i in ids)

    # ----- reads -----

    def _polarity_of(self, rater: EntityLike, item: EntityLike) -> Optional[str]:
        rows = self._df.loc[self._mask(as_ref(rater), as_ref(item)), "polarity"]
        if rows.empty:
            return None
        return str(rows.iloc[0])

    def likes(self, rater: EntityLike, item: EntityLike) -> bool:
        return self._polarity_of(rater, item) == LIKE

    def dislikes(self, rater: EntityLike, item: EntityLike) -> bool:
        return self._polarity_of(rater, item) == DISLIKE

    def has_rated(self, rater: EntityLike, item: EntityLike) -> bool:
        return self._polarity_of(rater, item) is not None

    def _items(self, rater: EntityLike, polarity: str, kind: Optional[str]) -> list[EntityRef]:
        sub = self._df[self._mask(as_ref(rater)) & (self._df["polarity"] == polarity).fillna(False).astype(bool)]
        if kind is not None:
            sub = sub[sub["item_kind"] == str(kind)]
        sub = sub.sort_values(["item_kind", "item_id"], kind="mergesort")
        return [EntityRef(kind=str(k), id=str(i)) for k, i in zip(sub["item_kind"], sub["item_id"])]

    def liked_items(self, rater: EntityLike, kind: Optional[str] = None) -> list[EntityRef]:
        return self._items(rater, LIKE, kind)

    def disliked_items(self, rater: EntityLike, kind: Optional[str] = None) -> list[EntityRef]:
        return self._items(rater, DISLIKE, kind)

    def edges_for(self, rater: EntityLike) -> JudgmentEdges:
        return JudgmentEdges(
            liked=frozenset(self.liked_items(rater)),
            disliked=frozenset(self.disliked_items(rater)),
        )

    def rated_kinds(self) -> list[str]:
        """Item kinds that appear in at least one judgment."""
        return sorted(set(self._df["item_kind"].astype(str).tolist()))

    def stream_all_raters(self) -> Iterator[EntityRef]:
        """Yield every rater with at least one judgment, ordered by (kind, id)."""
        raters = self._df[["rater_kind", "rater_id"]].drop_duplicates()
        raters = raters.sort_values(["rater_kind", "rater_id"], kind="mergesort")
        for kind, ident in raters.itertuples(index=False, name=None):
            yield EntityRef(kind=str(kind), id=str(ident))

    def stream_all_items(self, kind: str) -> Iterator[EntityRef]:
        """Yield every known item of `kind`, ordered by id."""
        kind = str(kind)
        ids = set(self._df.loc[self._df["item_kind"] == kind, "item_id"].astype(str).tolist())
        ids |= self._extra_items.get(kind, set())
        for ident in sorted(ids):
            yield EntityRef(kind=kind, id=ident)
