from __future__ import annotations

import numbers
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional, Sequence

import numpy as np
import pandas as pd

from .config import RESULTS_CSV, ensure_data_dir_exists

if TYPE_CHECKING:
    from .models import TeamParameters


MATCH_COLS = [
    "home_team",
    "away_team",
    "home_goals",
    "away_goals",
]


def _check_team(value, field_name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{field_name} must be a non-empty string, got {value!r}")
    return value


def _check_goals(value, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise ValueError(f"{field_name} must be an integer, got {value!r}")
    value = int(value)
    if value < 0:
        raise ValueError(f"{field_name} must be non-negative, got {value}")
    return value


@dataclass(frozen=True)
class Match:
    home_team: str
    away_team: str
    home_goals: int
    away_goals: int

    def __post_init__(self) -> None:
        _check_team(self.home_team, "home_team")
        _check_team(self.away_team, "away_team")
        if self.home_team == self.away_team:
            raise ValueError(f"a team cannot play itself: {self.home_team!r}")
        object.__setattr__(self, "home_goals", _check_goals(self.home_goals, "home_goals"))
        object.__setattr__(self, "away_goals", _check_goals(self.away_goals, "away_goals"))


def teams_from_matches(matches: Iterable[Match]) -> list[str]:
    teams: set[str] = set()
    for m in matches:
        teams.add(m.home_team)
        teams.add(m.away_team)
    return sorted(teams)


def load_results_csv(path: Optional[str | Path] = None) -> pd.DataFrame:
    if path is None:
        path = RESULTS_CSV
    path = Path(path)

    if not path.is_file():
        raise FileNotFoundError(path)

    df = pd.read_csv(path)

    missing = [c for c in MATCH_COLS if c not in df.columns]
    if missing:
        raise ValueError(f"results file missing columns: {missing}")

    for col in ["home_goals", "away_goals"]:
        df[col] = pd.to_numeric(df[col], errors="coerce").astype("Int64")

    df["home_team"] = df["home_team"].astype(str).str.strip()
    df["away_team"] = df["away_team"].astype(str).str.strip()

    if "status" in df.columns:
        df["status"] = df["status"].astype(str).str.lower().str.strip()

    return df


def matches_from_frame(df: pd.DataFrame) -> list[Match]:
    missing = [c for c in MATCH_COLS if c not in df.columns]
    if missing:
        raise ValueError(f"DataFrame missing columns: {missing}")

    played = df[df["home_goals"].notna() & df["away_goals"].notna()]
    if "status" in played.columns:
        played = played[played["status"] == "played"]

    return [
        Match(
            home_team=str(row.home_team),
            away_team=str(row.away_team),
            home_goals=int(row.home_goals),
            away_goals=int(row.away_goals),
        )
        for row in played[MATCH_COLS].itertuples(index=False)
    ]


def matches_to_frame(matches: Sequence[Match]) -> pd.DataFrame:
    rows = [
        {
            "home_team": m.home_team,
            "away_team": m.away_team,
            "home_goals": m.home_goals,
            "away_goals": m.away_goals,
        }
        for m in matches
    ]
    return pd.DataFrame(rows, columns=MATCH_COLS)


def save_results_csv(matches: Sequence[Match], path: Optional[str | Path] = None) -> Path:
    if path is None:
        ensure_data_dir_exists()
        path = RESULTS_CSV
    path = Path(path)

    df = matches_to_frame(matches)
    df.to_csv(path, index=False)

    return path


def sample_matches(
    params: "TeamParameters",
    n_rounds: int = 1,
    random_state: Optional[np.random.Generator] = None,
) -> list[Match]:
    """
    Draws n_rounds double round-robins (every ordered pair of distinct teams
    meets once per round) with Poisson scores from known parameters.
    """
    if n_rounds < 1:
        raise ValueError("n_rounds must be at least 1")

    if random_state is None:
        rng = np.random.default_rng()
    else:
        rng = random_state

    teams = params.teams
    n_teams = len(teams)

    matches: list[Match] = []
    for _ in range(n_rounds):
        for hi in range(n_teams):
            for ai in range(n_teams):
                if hi == ai:
                    continue

                lam_h = float(params.alpha[hi] * params.beta[ai])
                lam_a = float(params.gamma[hi] * params.delta[ai])

                matches.append(
                    Match(
                        home_team=teams[hi],
                        away_team=teams[ai],
                        home_goals=int(rng.poisson(lam_h)),
                        away_goals=int(rng.poisson(lam_a)),
                    )
                )

    return matches
