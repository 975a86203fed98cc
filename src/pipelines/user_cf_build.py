from __future__ import annotations

import argparse
import json
import logging
import signal
import threading
from pathlib import Path
from typing import Any

from ..config import AppConfig, default_config_path
from ..paths import get_repo_root
from ..user_cf.recommender import UserUserCFRecommender
from ..utils import setup_logging, utc_now_iso


logger = logging.getLogger(__name__)


def run_user_cf_build(
    *,
    config_path: Path,
    skip_sync: bool = False,
    skip_predictions: bool = False,
    cancel: threading.Event | None = None,
) -> dict[str, Any]:
    """Full recompute: sync sets, score every rater pair, refresh every rater's predictions.

    A failed unit of work is logged and skipped; re-running the build repairs it.
    """
    config_path = Path(config_path).resolve()
    cfg = AppConfig.from_yaml(config_path)

    started = utc_now_iso()
    reports: dict[str, Any] = {}
    with UserUserCFRecommender.from_app_config(cfg) as rec:
        if not skip_sync:
            logger.info("Syncing rater sets")
            reports["sync"] = rec.sync_all(cancel).to_dict()

        logger.info("Recomputing all similarities")
        reports["similarities"] = rec.recompute_all_similarities(cancel).to_dict()

        if not skip_predictions:
            logger.info("Recomputing predictions for every rater")
            reports["recommendations"] = rec.recompute_all_recommendations(cancel).to_dict()

    report = {
        "started_at_utc": started,
        "finished_at_utc": utc_now_iso(),
        "store": {"backend": cfg.store.backend, "namespace": cfg.store.namespace},
        "judgments_csv": str(cfg.judgments_csv),
        "jobs": reports,
    }

    out_dir = cfg.user_cf.artifacts_dir
    out_dir.mkdir(parents=True, exist_ok=True)
    report_path = out_dir / "build_report.json"
    report_path.write_text(json.dumps(report, indent=2, sort_keys=True) + "\n")
    logger.info("UserCF build complete; report written to %s", report_path)
    return report


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Recompute like/dislike similarities and predictions.")
    p.add_argument("--config", type=Path, default=None, help="Path to config YAML.")
    p.add_argument("--skip-sync", action="store_true", help="Assume rater sets are already in sync.")
    p.add_argument("--skip-predictions", action="store_true", help="Only recompute similarities.")
    return p


def main(argv: list[str] | None = None) -> None:
    setup_logging("INFO")
    args = build_arg_parser().parse_args(argv)
    config_path = args.config if args.config is not None else default_config_path()
    if not config_path.is_absolute():
        config_path = (get_repo_root() / config_path).resolve()

    # SIGINT sets the cancel flag; sweeps stop at the next unit boundary.
    cancel = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: cancel.set())

    run_user_cf_build(
        config_path=config_path,
        skip_sync=bool(args.skip_sync),
        skip_predictions=bool(args.skip_predictions),
        cancel=cancel,
    )


if __name__ == "__main__":
    main()
