"""
Independent double-Poisson model of home and away goal scoring.

For a match with team i at home and team j away:

    home goals ~ Poisson(alpha_i * beta_j)
    away goals ~ Poisson(gamma_i * delta_j)

alpha is home attacking strength, beta away defensive weakness, gamma home
defensive weakness and delta away attacking strength. The likelihood is
invariant to scaling alpha up and beta down by the same factor (likewise
gamma and delta), so fitted values are normalized to sum(alpha) == sum(beta)
and sum(gamma) == sum(delta).

Parameters are estimated by coordinate ascent: with beta and delta held
fixed, the MLE of alpha_i (gamma_i) is the ratio of observed goals to the
summed opponent offsets, and symmetrically for beta and delta. Each block
update is exact, so the log-likelihood never decreases.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd
import scipy.stats as st

from . import config
from .data import Match, teams_from_matches
from .errors import DataSufficiencyError, NumericDomainError

logger = logging.getLogger(__name__)


PARAMETER_NAMES = ("alpha", "beta", "gamma", "delta")

TEAM = "team"
SHARED = "shared"

Tying = Union[str, Mapping[str, str]]


def _check_tying(tying: Tying, name: str) -> None:
    if isinstance(tying, str):
        if tying not in (TEAM, SHARED):
            raise ValueError(f"{name} tying must be '{TEAM}', '{SHARED}' or a mapping, got {tying!r}")
        return
    if not isinstance(tying, Mapping):
        raise ValueError(f"{name} tying must be '{TEAM}', '{SHARED}' or a mapping")


def _group_index(tying: Tying, teams: Sequence[str]) -> tuple[np.ndarray, int]:
    n_teams = len(teams)
    if tying == TEAM:
        return np.arange(n_teams, dtype=int), n_teams
    if tying == SHARED:
        return np.zeros(n_teams, dtype=int), 1

    # teams missing from the mapping keep a group of their own
    keys = [
        ("group", str(tying[t])) if t in tying else ("team", t)
        for t in teams
    ]
    labels: dict[tuple[str, str], int] = {}
    idx = [labels.setdefault(k, len(labels)) for k in keys]
    return np.asarray(idx, dtype=int), len(labels)


@dataclass(frozen=True, eq=False)
class ModelVariant:
    """
    A restriction of the full model: each parameter vector is either free per
    team, shared by every team, or tied within groups given as team -> label.
    """

    name: str
    alpha: Tying = TEAM
    beta: Tying = TEAM
    gamma: Tying = TEAM
    delta: Tying = TEAM

    def __post_init__(self) -> None:
        for pname in PARAMETER_NAMES:
            _check_tying(getattr(self, pname), pname)

    def tyings(self) -> dict[str, Tying]:
        return {pname: getattr(self, pname) for pname in PARAMETER_NAMES}

    def group_indices(self, teams: Sequence[str]) -> dict[str, tuple[np.ndarray, int]]:
        return {pname: _group_index(t, teams) for pname, t in self.tyings().items()}

    def n_parameters(self, teams: Sequence[str]) -> int:
        n_groups = sum(n for _, n in self.group_indices(teams).values())
        # one scale degree of freedom per attack/defence pair
        return n_groups - 2


IDENTICAL = ModelVariant("identical", alpha=SHARED, beta=SHARED, gamma=SHARED, delta=SHARED)
ATTACK = ModelVariant("attack", alpha=TEAM, beta=SHARED, gamma=SHARED, delta=TEAM)
DEFENCE = ModelVariant("defence", alpha=SHARED, beta=TEAM, gamma=TEAM, delta=SHARED)
FULL = ModelVariant("full")

MODEL_HIERARCHY: dict[str, ModelVariant] = {
    v.name: v for v in (IDENTICAL, ATTACK, DEFENCE, FULL)
}


def get_variant(variant: Union[str, ModelVariant]) -> ModelVariant:
    if isinstance(variant, ModelVariant):
        return variant
    try:
        return MODEL_HIERARCHY[str(variant).lower()]
    except KeyError:
        raise ValueError(f"unknown model variant: {variant}") from None


@dataclass(frozen=True, eq=False)
class TeamParameters:
    teams: tuple[str, ...]
    alpha: np.ndarray
    beta: np.ndarray
    gamma: np.ndarray
    delta: np.ndarray

    def __post_init__(self) -> None:
        teams = tuple(self.teams)
        for t in teams:
            if not isinstance(t, str):
                raise ValueError(f"team names must be strings, got {t!r}")
        if len(set(teams)) != len(teams):
            raise ValueError("duplicate team names in parameters")
        object.__setattr__(self, "teams", teams)

        for pname in PARAMETER_NAMES:
            arr = np.array(getattr(self, pname), dtype=float)
            if arr.shape != (len(teams),):
                raise ValueError(f"{pname} length does not match number of teams")
            arr.setflags(write=False)
            object.__setattr__(self, pname, arr)

    @property
    def team_index(self) -> dict[str, int]:
        return {t: i for i, t in enumerate(self.teams)}

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Mapping[str, float]]) -> "TeamParameters":
        teams = list(mapping)
        values = {
            pname: [float(mapping[t][pname]) for t in teams]
            for pname in PARAMETER_NAMES
        }
        return cls(teams=tuple(teams), **values)

    def as_mapping(self) -> dict[str, dict[str, float]]:
        return {
            team: {pname: float(getattr(self, pname)[i]) for pname in PARAMETER_NAMES}
            for i, team in enumerate(self.teams)
        }

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame(
            {pname: getattr(self, pname) for pname in PARAMETER_NAMES},
            index=pd.Index(self.teams, name="team"),
        )
        return df

    def normalization_gaps(self) -> tuple[float, float]:
        return (
            float(abs(self.alpha.sum() - self.beta.sum())),
            float(abs(self.gamma.sum() - self.delta.sum())),
        )

    def expected_goals(self, home_team: str, away_team: str) -> tuple[float, float]:
        index = self.team_index
        if home_team not in index or away_team not in index:
            raise ValueError("unknown team name")

        hi = index[home_team]
        ai = index[away_team]

        lam_h = float(self.alpha[hi] * self.beta[ai])
        lam_a = float(self.gamma[hi] * self.delta[ai])
        return lam_h, lam_a


@dataclass(frozen=True, eq=False)
class FitResult:
    parameters: TeamParameters
    log_likelihood: float
    iterations: int
    converged: bool
    trace: tuple[float, ...] = field(default_factory=tuple)
    variant: str = FULL.name
    n_parameters: int = 0
    n_matches: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "trace", tuple(float(v) for v in self.trace))

    @property
    def teams(self) -> tuple[str, ...]:
        return self.parameters.teams

    @property
    def aic(self) -> float:
        return 2.0 * self.n_parameters - 2.0 * self.log_likelihood

    def coefficients(self) -> pd.DataFrame:
        return self.parameters.to_frame()

    def as_mapping(self) -> dict[str, dict[str, float]]:
        return self.parameters.as_mapping()

    def summary(self) -> dict[str, Any]:
        return {
            "variant": self.variant,
            "n_teams": len(self.teams),
            "n_matches": int(self.n_matches),
            "n_parameters": int(self.n_parameters),
            "log_likelihood": float(self.log_likelihood),
            "aic": float(self.aic),
            "iterations": int(self.iterations),
            "converged": bool(self.converged),
        }

    def expected_goals(self, home_team: str, away_team: str) -> tuple[float, float]:
        return self.parameters.expected_goals(home_team, away_team)

    def predict_match(
        self,
        home_team: str,
        away_team: str,
        max_goals: int = config.DEFAULT_MAX_GOALS,
    ) -> dict[str, float]:
        lam_h, lam_a = self.expected_goals(home_team, away_team)

        k = np.arange(0, max_goals + 1)

        p_home_goals = st.poisson.pmf(k, lam_h)
        p_away_goals = st.poisson.pmf(k, lam_a)

        p_matrix = np.outer(p_home_goals, p_away_goals)

        p_home = float(np.tril(p_matrix, -1).sum())
        p_draw = float(np.trace(p_matrix))
        p_away = float(np.triu(p_matrix, 1).sum())

        s = p_home + p_draw + p_away
        if s > 0:
            p_home /= s
            p_draw /= s
            p_away /= s

        return {
            "p_home": p_home,
            "p_draw": p_draw,
            "p_away": p_away,
            "exp_home_goals": lam_h,
            "exp_away_goals": lam_a,
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "variant": self.variant,
            "n_parameters": int(self.n_parameters),
            "n_matches": int(self.n_matches),
            "log_likelihood": float(self.log_likelihood),
            "iterations": int(self.iterations),
            "converged": bool(self.converged),
            "trace": list(self.trace),
            "teams": self.as_mapping(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FitResult":
        try:
            return cls(
                parameters=TeamParameters.from_mapping(data["teams"]),
                log_likelihood=float(data["log_likelihood"]),
                iterations=int(data["iterations"]),
                converged=bool(data["converged"]),
                trace=tuple(data.get("trace", ())),
                variant=str(data.get("variant", FULL.name)),
                n_parameters=int(data.get("n_parameters", 0)),
                n_matches=int(data.get("n_matches", 0)),
            )
        except KeyError as exc:
            raise ValueError(f"fit result record is missing {exc.args[0]!r}") from None


def _check_sufficiency(teams: Sequence[str], home_idx: np.ndarray, away_idx: np.ndarray) -> None:
    n_teams = len(teams)
    home_counts = np.bincount(home_idx, minlength=n_teams)
    away_counts = np.bincount(away_idx, minlength=n_teams)

    for i, team in enumerate(teams):
        if home_counts[i] == 0:
            raise DataSufficiencyError(f"team {team!r} has no home matches", team=team)
        if away_counts[i] == 0:
            raise DataSufficiencyError(f"team {team!r} has no away matches", team=team)


class DoublePoissonEstimator:
    def __init__(
        self,
        variant: Union[str, ModelVariant] = FULL,
        max_iterations: Optional[int] = None,
        tolerance: Optional[float] = None,
    ):
        self.variant = get_variant(variant)

        if max_iterations is None:
            max_iterations = config.get_max_iterations()
        if tolerance is None:
            tolerance = config.get_tolerance()

        if int(max_iterations) < 1:
            raise ValueError("max_iterations must be at least 1")
        if not float(tolerance) > 0:
            raise ValueError("tolerance must be positive")

        self.max_iterations = int(max_iterations)
        self.tolerance = float(tolerance)

    def fit(self, matches: Iterable[Match]) -> FitResult:
        matches = list(matches)
        if not matches:
            raise DataSufficiencyError("no matches supplied")

        teams = teams_from_matches(matches)
        team_index = {t: i for i, t in enumerate(teams)}

        home_idx = np.array([team_index[m.home_team] for m in matches], dtype=int)
        away_idx = np.array([team_index[m.away_team] for m in matches], dtype=int)
        home_goals = np.array([m.home_goals for m in matches], dtype=float)
        away_goals = np.array([m.away_goals for m in matches], dtype=float)

        _check_sufficiency(teams, home_idx, away_idx)

        groups = self.variant.group_indices(teams)
        n_parameters = sum(n for _, n in groups.values()) - 2

        values = {pname: np.ones(n, dtype=float) for pname, (_, n) in groups.items()}

        def expand(pname: str) -> np.ndarray:
            return values[pname][groups[pname][0]]

        def block_update(pname: str, idx: np.ndarray, goals: np.ndarray, offsets: np.ndarray, iteration: int) -> np.ndarray:
            group_of_team, n_groups = groups[pname]
            keys = group_of_team[idx]
            num = np.bincount(keys, weights=goals, minlength=n_groups)
            den = np.bincount(keys, weights=offsets, minlength=n_groups)

            bad = ~(np.isfinite(den) & (den > 0))
            if bad.any():
                g = int(np.flatnonzero(bad)[0])
                members = [teams[i] for i in np.flatnonzero(group_of_team == g)]
                raise NumericDomainError(
                    f"{pname} update for {members} has no positive exposure "
                    f"at iteration {iteration}",
                    iteration=iteration,
                )
            return num / den

        def rescale(attack: str, defence: str, iteration: int) -> None:
            s_att = float(expand(attack).sum())
            s_def = float(expand(defence).sum())
            if not (s_att > 0 and s_def > 0 and math.isfinite(s_att) and math.isfinite(s_def)):
                raise NumericDomainError(
                    f"cannot normalize {attack}/{defence}: sums are {s_att} and {s_def} "
                    f"at iteration {iteration}",
                    iteration=iteration,
                )
            c = math.sqrt(s_def / s_att)
            values[attack] = values[attack] * c
            values[defence] = values[defence] / c

        def log_likelihood(iteration: int) -> float:
            alpha, beta, gamma, delta = (expand(p) for p in PARAMETER_NAMES)

            lam_h = alpha[home_idx] * beta[away_idx]
            lam_a = gamma[home_idx] * delta[away_idx]

            bad = ~(np.isfinite(lam_h) & (lam_h > 0) & np.isfinite(lam_a) & (lam_a > 0))
            if bad.any():
                k = int(np.flatnonzero(bad)[0])
                m = matches[k]
                raise NumericDomainError(
                    f"non-positive expected goals in {m.home_team} vs {m.away_team} "
                    f"(home rate {lam_h[k]}, away rate {lam_a[k]}) at iteration {iteration}",
                    iteration=iteration,
                )

            return float(
                np.sum(
                    home_goals * np.log(lam_h) - lam_h
                    + away_goals * np.log(lam_a) - lam_a
                )
            )

        prev_ll = log_likelihood(0)
        prev_params = {p: expand(p) for p in PARAMETER_NAMES}

        trace: list[float] = []
        converged = False
        iteration = 0

        for iteration in range(1, self.max_iterations + 1):
            # home side: alpha against away beta, gamma against away delta
            values["alpha"] = block_update("alpha", home_idx, home_goals, expand("beta")[away_idx], iteration)
            values["gamma"] = block_update("gamma", home_idx, away_goals, expand("delta")[away_idx], iteration)

            # away side, with the fresh home-side values
            values["beta"] = block_update("beta", away_idx, home_goals, expand("alpha")[home_idx], iteration)
            values["delta"] = block_update("delta", away_idx, away_goals, expand("gamma")[home_idx], iteration)

            rescale("alpha", "beta", iteration)
            rescale("gamma", "delta", iteration)

            ll = log_likelihood(iteration)
            trace.append(ll)

            params = {p: expand(p) for p in PARAMETER_NAMES}
            param_change = max(
                float(np.max(np.abs(params[p] - prev_params[p]))) for p in PARAMETER_NAMES
            )
            ll_change = ll - prev_ll

            logger.debug(
                "%s iteration %d: loglik=%.10f change=%.3e max param change=%.3e",
                self.variant.name, iteration, ll, ll_change, param_change,
            )

            prev_ll = ll
            prev_params = params

            if abs(ll_change) < self.tolerance or param_change < self.tolerance:
                converged = True
                break

        if converged:
            logger.info(
                "%s model converged after %d iterations, loglik=%.4f",
                self.variant.name, iteration, prev_ll,
            )
        else:
            logger.warning(
                "%s model did not converge in %d iterations (tolerance %g), loglik=%.4f",
                self.variant.name, self.max_iterations, self.tolerance, prev_ll,
            )

        parameters = TeamParameters(
            teams=tuple(teams),
            alpha=prev_params["alpha"],
            beta=prev_params["beta"],
            gamma=prev_params["gamma"],
            delta=prev_params["delta"],
        )

        return FitResult(
            parameters=parameters,
            log_likelihood=prev_ll,
            iterations=iteration,
            converged=converged,
            trace=tuple(trace),
            variant=self.variant.name,
            n_parameters=n_parameters,
            n_matches=len(matches),
        )


def fit(
    matches: Iterable[Match],
    max_iterations: Optional[int] = None,
    tolerance: Optional[float] = None,
    variant: Union[str, ModelVariant] = FULL,
) -> FitResult:
    return DoublePoissonEstimator(
        variant=variant,
        max_iterations=max_iterations,
        tolerance=tolerance,
    ).fit(matches)


def fit_hierarchy(
    matches: Iterable[Match],
    variants: Optional[Sequence[Union[str, ModelVariant]]] = None,
    max_iterations: Optional[int] = None,
    tolerance: Optional[float] = None,
) -> dict[str, FitResult]:
    matches = list(matches)
    if variants is None:
        variants = list(MODEL_HIERARCHY.values())

    results: dict[str, FitResult] = {}
    for v in variants:
        variant = get_variant(v)
        results[variant.name] = fit(
            matches,
            max_iterations=max_iterations,
            tolerance=tolerance,
            variant=variant,
        )
    return results
