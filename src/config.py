"""YAML configuration for the recommender, its store and its entity kinds."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .paths import get_repo_root, resolve_path
from .store.ranked import StoreConfig


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")
    obj = yaml.safe_load(path.read_text())
    if not isinstance(obj, dict):
        raise ValueError(f"Expected YAML mapping at {path}, got {type(obj)}")
    return obj


def _section(cfg: dict[str, Any], name: str) -> dict[str, Any]:
    return cfg.get(name, {}) if isinstance(cfg.get(name), dict) else {}


@dataclass(frozen=True)
class UserCFConfig:
    top_k: int = 10
    artifacts_dir: Path = Path("artifacts/user_cf")


@dataclass(frozen=True)
class AppConfig:
    judgments_csv: Path
    store: StoreConfig = field(default_factory=StoreConfig)
    entities: dict[str, Any] = field(default_factory=lambda: {"raters": ["user"], "items": []})
    user_cf: UserCFConfig = field(default_factory=UserCFConfig)

    @classmethod
    def from_yaml(cls, path: Path, *, repo_root: Path | None = None) -> "AppConfig":
        """Load config.yaml; relative paths resolve against the repo root.

        `REDIS_URL` in the environment overrides `store.url`.
        """
        path = Path(path).resolve()
        cfg = _load_yaml(path)
        root = repo_root if repo_root is not None else get_repo_root()

        dataset_cfg = _section(cfg, "dataset")
        store_cfg = _section(cfg, "store")
        entities_cfg = _section(cfg, "entities")
        user_cf_cfg = _section(cfg, "user_cf")

        defaults = StoreConfig()
        store = StoreConfig(
            backend=str(store_cfg.get("backend", defaults.backend)),
            url=str(os.getenv("REDIS_URL") or store_cfg.get("url", defaults.url)),
            namespace=str(store_cfg.get("namespace", defaults.namespace)),
        )

        return cls(
            judgments_csv=resolve_path(root, str(dataset_cfg.get("judgments_csv", "data/raw/judgments.csv"))),
            store=store,
            entities=(entities_cfg or {"raters": ["user"], "items": []}),
            user_cf=UserCFConfig(
                top_k=int(user_cf_cfg.get("top_k", 10)),
                artifacts_dir=resolve_path(root, str(user_cf_cfg.get("artifacts_dir", "artifacts/user_cf"))),
            ),
        )


def default_config_path() -> Path:
    raw = os.getenv("CONFIG_PATH")
    if raw is None or str(raw).strip() == "":
        return get_repo_root() / "config.yaml"
    p = Path(str(raw))
    return p if p.is_absolute() else (get_repo_root() / p).resolve()
