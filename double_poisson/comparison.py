from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import numpy as np
import pandas as pd
import scipy.stats as st

from .models import FitResult


@dataclass(frozen=True)
class LikelihoodRatioResult:
    full: str
    restricted: str
    statistic: float
    df: int
    p_value: float


def likelihood_ratio_test(full: FitResult, restricted: FitResult) -> LikelihoodRatioResult:
    """
    2 * (loglik(full) - loglik(restricted)) against a chi-squared reference
    with df equal to the difference in free parameters. Both fits must come
    from the same matches and the restricted model must be nested in the full
    one; nesting itself is the caller's responsibility.
    """
    if full.n_matches != restricted.n_matches:
        raise ValueError(
            f"fits use different data: {full.n_matches} vs {restricted.n_matches} matches"
        )

    df = int(full.n_parameters - restricted.n_parameters)
    if df <= 0:
        raise ValueError(
            f"'{full.variant}' must have more free parameters than '{restricted.variant}' "
            f"({full.n_parameters} vs {restricted.n_parameters})"
        )

    statistic = 2.0 * (full.log_likelihood - restricted.log_likelihood)
    p_value = float(st.chi2.sf(statistic, df))

    return LikelihoodRatioResult(
        full=full.variant,
        restricted=restricted.variant,
        statistic=float(statistic),
        df=df,
        p_value=p_value,
    )


def compare_models(results: Iterable[FitResult]) -> pd.DataFrame:
    fits = sorted(results, key=lambda r: r.n_parameters)
    if not fits:
        raise ValueError("no fit results to compare")

    reference = fits[-1]

    rows = []
    for r in fits:
        row = {
            "model": r.variant,
            "n_parameters": int(r.n_parameters),
            "log_likelihood": float(r.log_likelihood),
            "aic": float(r.aic),
            "converged": bool(r.converged),
            "lr_statistic": np.nan,
            "df": np.nan,
            "p_value": np.nan,
        }

        if r is not reference and r.n_parameters < reference.n_parameters:
            lrt = likelihood_ratio_test(reference, r)
            row["lr_statistic"] = lrt.statistic
            row["df"] = lrt.df
            row["p_value"] = lrt.p_value

        rows.append(row)

    return pd.DataFrame(rows)
