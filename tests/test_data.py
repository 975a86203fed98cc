from __future__ import annotations

import pandas as pd
import pytest

from conftest import SCENARIO, write_judgments
from src.data import JudgmentIndex, validate_judgments
from src.entities import EntityRef


def test_from_csv_loads_edges(tmp_path) -> None:
    index = JudgmentIndex.from_csv(write_judgments(tmp_path, SCENARIO))

    assert len(index) == len(SCENARIO)
    edges = index.edges_for("user:A")
    assert edges.liked == {EntityRef("movie", "1"), EntityRef("movie", "2")}
    assert edges.disliked == {EntityRef("movie", "3")}
    assert edges.total == 3


def test_from_csv_missing_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        JudgmentIndex.from_csv(tmp_path / "nope.csv")


def test_validate_rejects_bad_polarity_and_duplicates() -> None:
    base = {"rater_kind": "user", "rater_id": "1", "item_kind": "movie", "item_id": "1"}

    with pytest.raises(ValueError, match="polarity"):
        validate_judgments(pd.DataFrame([{**base, "polarity": "love"}]))

    with pytest.raises(ValueError, match="duplicate"):
        validate_judgments(pd.DataFrame([{**base, "polarity": "like"}, {**base, "polarity": "dislike"}]))

    with pytest.raises(ValueError, match="missing columns"):
        validate_judgments(pd.DataFrame([{"rater_kind": "user"}]))


def test_like_replaces_dislike_of_the_same_item() -> None:
    index = JudgmentIndex.from_records(SCENARIO)

    index.like("user:C", "movie:1")

    assert index.likes("user:C", "movie:1")
    assert not index.dislikes("user:C", "movie:1")
    assert len(index) == len(SCENARIO)


def test_unlike_and_undislike_only_remove_matching_polarity() -> None:
    index = JudgmentIndex.from_records(SCENARIO)

    assert not index.unlike("user:A", "movie:3")
    assert index.dislikes("user:A", "movie:3")
    assert index.undislike("user:A", "movie:3")
    assert not index.has_rated("user:A", "movie:3")


def test_streams_are_ordered_and_restartable() -> None:
    index = JudgmentIndex.from_records(SCENARIO)
    index.add_items("movie", ["0"])

    first = list(index.stream_all_raters())
    second = list(index.stream_all_raters())
    assert first == second == [EntityRef("user", "A"), EntityRef("user", "B"), EntityRef("user", "C")]

    assert [i.id for i in index.stream_all_items("movie")] == ["0", "1", "2", "3"]
    assert list(index.stream_all_items("beer")) == []


def test_items_filtered_by_kind() -> None:
    index = JudgmentIndex.from_records(SCENARIO + [("user:A", "beer:7", "like")])

    assert index.liked_items("user:A", kind="beer") == [EntityRef("beer", "7")]
    assert index.rated_kinds() == ["beer", "movie"]
