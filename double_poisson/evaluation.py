"""
Scoring a fitted double-Poisson model on a set of matches, typically ones
held out of the fit.

`log_likelihood` uses the same kernel as the estimator (no factorial terms),
so scoring the training matches reproduces `FitResult.log_likelihood`.
`log_score` is the full Poisson log-probability of the observed scores and
is the quantity to compare across datasets.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd
import scipy.stats as st

from .data import Match, matches_to_frame
from .models import FitResult


def score_matches(result: FitResult, matches: Sequence[Match]) -> pd.DataFrame:
    df = matches_to_frame(matches)

    rates = [result.expected_goals(m.home_team, m.away_team) for m in matches]
    lam_h = np.array([r[0] for r in rates], dtype=float)
    lam_a = np.array([r[1] for r in rates], dtype=float)

    x = df["home_goals"].to_numpy(dtype=float)
    y = df["away_goals"].to_numpy(dtype=float)

    df["exp_home_goals"] = lam_h
    df["exp_away_goals"] = lam_a
    df["log_lik"] = x * np.log(lam_h) - lam_h + y * np.log(lam_a) - lam_a
    df["log_score"] = st.poisson.logpmf(x, lam_h) + st.poisson.logpmf(y, lam_a)

    return df


def evaluate_fit(result: FitResult, matches: Sequence[Match]) -> dict[str, float]:
    if not matches:
        raise ValueError("no matches to evaluate")

    df = score_matches(result, matches)
    n = len(df)

    x = df["home_goals"].to_numpy(dtype=float)
    y = df["away_goals"].to_numpy(dtype=float)
    lam_h = df["exp_home_goals"].to_numpy()
    lam_a = df["exp_away_goals"].to_numpy()

    # saturated model has rate == observed goals; x*log(x/lam) is 0 at x == 0
    dev_h = np.where(x > 0, x * np.log(np.where(x > 0, x, 1.0) / lam_h), 0.0) - (x - lam_h)
    dev_a = np.where(y > 0, y * np.log(np.where(y > 0, y, 1.0) / lam_a), 0.0) - (y - lam_a)

    return {
        "n": float(n),
        "log_likelihood": float(df["log_lik"].sum()),
        "log_score": float(df["log_score"].sum()),
        "mean_log_score": float(df["log_score"].mean()),
        "deviance": float(2.0 * np.sum(dev_h + dev_a)),
    }
