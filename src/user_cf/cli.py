from __future__ import annotations

import argparse
from pathlib import Path

import pandas as pd

from ..config import default_config_path
from ..utils import setup_logging
from .recommender import UserUserCFRecommender


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="User-user CF over likes/dislikes: similar raters and predictions")
    p.add_argument("--rater", type=str, required=True, help="Rater reference, e.g. user:42")
    p.add_argument("--top-similar", type=int, default=None, help="How many similar raters to show (default: user_cf.top_k)")
    p.add_argument("--k", type=int, default=None, help="How many predictions to show (default: user_cf.top_k)")
    p.add_argument("--item", type=str, default=None, help="Also print the prediction for this item, e.g. movie:7")
    p.add_argument("--config", type=Path, default=None, help="Path to config YAML")
    p.add_argument("--recompute", action="store_true", help="Sync sets and recompute scores before printing")
    p.add_argument("--log-level", type=str, default="WARNING")
    return p


def main(argv: list[str] | None = None) -> None:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level)
    config_path = args.config if args.config is not None else default_config_path()

    with UserUserCFRecommender.from_config(config_path) as rec:
        if args.recompute:
            rec.sync_all()
            rec.recompute_all_similarities()
            rec.recompute_recommendations_for(args.rater)

        sims = rec.similar_raters(args.rater, k=args.top_similar)
        preds = rec.top_predictions(args.rater, k=args.k)

        print("\n=== Similar Raters ===")
        if sims:
            print(pd.DataFrame([s.__dict__ for s in sims]).to_string(index=False))
        else:
            print("No similarities stored (run with --recompute).")

        print("\n=== Predictions ===")
        if preds:
            print(pd.DataFrame([p.__dict__ for p in preds]).to_string(index=False))
        else:
            print("No predictions stored.")

        if args.item:
            liking = rec.probability_of_liking(args.rater, args.item)
            print(f"\nprobability_of_liking({args.rater}, {args.item}) = {liking}")
            print(f"probability_of_disliking({args.rater}, {args.item}) = {rec.probability_of_disliking(args.rater, args.item)}")


if __name__ == "__main__":
    main()
