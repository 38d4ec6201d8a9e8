from __future__ import annotations

import os
from pathlib import Path
from typing import Optional



PACKAGE_DIR: Path = Path(__file__).resolve().parent
PROJECT_ROOT: Path = PACKAGE_DIR.parent



DATA_DIR: Path = PROJECT_ROOT / "data"


RESULTS_CSV: Path = DATA_DIR / "results.csv"


MODEL_COMPARISON_JSON: Path = DATA_DIR / "model_comparison.json"


DEFAULT_MAX_ITERATIONS: int = 1000

DEFAULT_TOLERANCE: float = 1e-8

DEFAULT_MAX_GOALS: int = 10



MAX_ITERATIONS_ENV_VAR: str = "DOUBLE_POISSON_MAX_ITERATIONS"

TOLERANCE_ENV_VAR: str = "DOUBLE_POISSON_TOLERANCE"


ENV_FILE: Path = PROJECT_ROOT / "double_poisson.env"


def _load_env_file(path: Optional[Path] = None) -> None:
    """
    Loads environment variables from a .env style file if it exists.

    Expected format, one per line:
        VARIABLE_NAME=value

    Blank lines and lines starting with '#' are ignored.
    Variables already present in os.environ are not overwritten.
    """
    env_path = path or ENV_FILE
    if not env_path.is_file():
        return

    try:
        text = env_path.read_text(encoding="utf-8")
    except OSError:
        return

    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()
        if key and key not in os.environ:
            os.environ[key] = value


def _read_setting(env_var: str) -> Optional[str]:
    if env_var not in os.environ:
        _load_env_file()

    value = os.environ.get(env_var)
    if value is None or not value.strip():
        return None
    return value.strip()


def get_max_iterations(env_var: str = MAX_ITERATIONS_ENV_VAR) -> int:
    """
    Returns the iteration cap used when the caller does not pass one.

    Lookup order: environment variable, then 'double_poisson.env' in the
    project root, then DEFAULT_MAX_ITERATIONS.
    """
    raw = _read_setting(env_var)
    if raw is None:
        return DEFAULT_MAX_ITERATIONS

    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{env_var} must be an integer, got {raw!r}") from None

    if value < 1:
        raise ValueError(f"{env_var} must be at least 1, got {value}")
    return value


def get_tolerance(env_var: str = TOLERANCE_ENV_VAR) -> float:
    """
    Returns the convergence tolerance used when the caller does not pass one.

    Same lookup order as get_max_iterations.
    """
    raw = _read_setting(env_var)
    if raw is None:
        return DEFAULT_TOLERANCE

    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{env_var} must be a number, got {raw!r}") from None

    if not value > 0:
        raise ValueError(f"{env_var} must be positive, got {value}")
    return value


def ensure_data_dir_exists(path: Optional[Path] = None) -> Path:
    """
    Creates the data directory if missing and returns it.
    """
    target = path or DATA_DIR
    target.mkdir(parents=True, exist_ok=True)
    return target
