from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence

import pandas as pd

from double_poisson.artifacts import fit_result_path, save_fit_result
from double_poisson.comparison import compare_models
from double_poisson.config import (
    DATA_DIR,
    MODEL_COMPARISON_JSON,
    RESULTS_CSV,
    ensure_data_dir_exists,
)
from double_poisson.data import load_results_csv, matches_from_frame
from double_poisson.models import MODEL_HIERARCHY, FitResult, fit_hierarchy

logger = logging.getLogger(__name__)


def build_comparison_json(
    results: dict[str, FitResult],
    table: pd.DataFrame,
    results_csv: Path,
) -> dict:
    rows = []
    for record in table.to_dict(orient="records"):
        rows.append(
            {k: (None if isinstance(v, float) and pd.isna(v) else v) for k, v in record.items()}
        )

    now_iso = datetime.now().isoformat(timespec="seconds")

    meta = {
        "results_csv": str(results_csv),
        "last_update": now_iso,
        "models": sorted(results),
    }

    return {
        "meta": meta,
        "comparison": rows,
        "fits": {name: r.summary() for name, r in results.items()},
    }


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Fit the double-Poisson model hierarchy to a results CSV.",
    )

    parser.add_argument(
        "--results-csv",
        dest="results_csv",
        type=Path,
        default=RESULTS_CSV,
    )
    parser.add_argument(
        "--variant",
        dest="variants",
        action="append",
        choices=list(MODEL_HIERARCHY),
        default=None,
    )
    parser.add_argument(
        "--max-iterations",
        dest="max_iterations",
        type=int,
        default=None,
    )
    parser.add_argument(
        "--tolerance",
        type=float,
        default=None,
    )
    parser.add_argument(
        "--output-dir",
        dest="output_dir",
        type=Path,
        default=DATA_DIR,
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    variants = args.variants or list(MODEL_HIERARCHY)

    results_df = load_results_csv(args.results_csv)
    matches = matches_from_frame(results_df)
    logger.info("loaded %d played matches from %s", len(matches), args.results_csv)

    results = fit_hierarchy(
        matches,
        variants=variants,
        max_iterations=args.max_iterations,
        tolerance=args.tolerance,
    )

    output_dir = ensure_data_dir_exists(args.output_dir)

    for name, result in results.items():
        save_fit_result(result, fit_result_path(output_dir, name))

    table = compare_models(results.values())

    comparison = build_comparison_json(results, table, args.results_csv)
    comparison_path = output_dir / MODEL_COMPARISON_JSON.name
    comparison_path.write_text(json.dumps(comparison, indent=2), encoding="utf-8")
    logger.info("wrote model comparison to %s", comparison_path)

    print(table.to_string(index=False))

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
