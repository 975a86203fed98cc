from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterable

import pytest

# Ensure `import src...` works when pytest uses importlib import mode.
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from src.data import JudgmentIndex  # noqa: E402
from src.entities import KindRegistry  # noqa: E402
from src.store.ranked import InMemoryRankedStore, RedisRankedStore, StoreUnavailable  # noqa: E402
from src.user_cf.recommender import UserUserCFRecommender  # noqa: E402


# A and B agree on everything; C disagrees with A on movies 1 and 3.
SCENARIO = [
    ("user:A", "movie:1", "like"),
    ("user:A", "movie:2", "like"),
    ("user:A", "movie:3", "dislike"),
    ("user:B", "movie:1", "like"),
    ("user:B", "movie:2", "like"),
    ("user:B", "movie:3", "dislike"),
    ("user:C", "movie:3", "like"),
    ("user:C", "movie:1", "dislike"),
]


class FlakyStore(InMemoryRankedStore):
    """In-memory store that fails writes and reads touching selected keys."""

    def __init__(self, fail_on: Iterable[str] = ()) -> None:
        super().__init__()
        self.fail_on = set(fail_on)

    def _maybe_fail(self, key: str) -> None:
        if any(part in key for part in self.fail_on):
            raise StoreUnavailable(f"simulated outage on {key}")

    def zadd(self, key: str, member: str, score: float) -> None:
        self._maybe_fail(key)
        super().zadd(key, member, score)

    def smembers(self, key: str) -> set[str]:
        self._maybe_fail(key)
        return super().smembers(key)


@pytest.fixture
def registry() -> KindRegistry:
    return KindRegistry().register("user", "rater").register("movie", "item").register("beer", "item")


@pytest.fixture(params=["memory", "redis"])
def store(request: pytest.FixtureRequest):
    if request.param == "memory":
        yield InMemoryRankedStore()
        return
    fakeredis = pytest.importorskip("fakeredis")
    client = fakeredis.FakeRedis(decode_responses=True)
    yield RedisRankedStore(client)
    client.flushall()


def make_recommender(records, store, registry: KindRegistry) -> UserUserCFRecommender:
    index = JudgmentIndex.from_records(records)
    return UserUserCFRecommender(index=index, store=store, registry=registry, namespace="test")


@pytest.fixture
def scenario(store, registry) -> UserUserCFRecommender:
    return make_recommender(SCENARIO, store, registry)


def write_config(tmp_path: Path, judgments_csv: Path) -> Path:
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "\n".join(
            [
                "dataset:",
                f"  judgments_csv: {judgments_csv}",
                "store:",
                "  backend: memory",
                "  namespace: test",
                "entities:",
                "  raters: [user]",
                "  items: [movie, beer]",
                "user_cf:",
                "  top_k: 5",
                f"  artifacts_dir: {tmp_path / 'artifacts'}",
                "",
            ]
        )
    )
    return config_path


def write_judgments(tmp_path: Path, records) -> Path:
    lines = ["rater_kind,rater_id,item_kind,item_id,polarity"]
    for rater, item, polarity in records:
        rk, rid = rater.split(":")
        ik, iid = item.split(":")
        lines.append(f"{rk},{rid},{ik},{iid},{polarity}")
    path = tmp_path / "judgments.csv"
    path.write_text("\n".join(lines) + "\n")
    return path
