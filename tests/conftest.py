import numpy as np
import pytest

from double_poisson import config
from double_poisson.data import Match
from double_poisson.models import TeamParameters


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch, tmp_path):
    # Keep a developer's shell or env file from changing fit defaults.
    # setenv first so teardown also drops values an env file loaded.
    for var in (config.MAX_ITERATIONS_ENV_VAR, config.TOLERANCE_ENV_VAR):
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    monkeypatch.setattr(config, "ENV_FILE", tmp_path / "missing.env")


@pytest.fixture()
def round_robin() -> list[Match]:
    return [
        Match("A", "B", 2, 1),
        Match("B", "C", 1, 1),
        Match("C", "A", 0, 2),
        Match("A", "C", 3, 0),
        Match("B", "A", 2, 0),
        Match("C", "B", 1, 1),
    ]


@pytest.fixture()
def true_params() -> TeamParameters:
    # sum(alpha) == sum(beta) == 4.6, sum(gamma) == sum(delta) == 4.2
    return TeamParameters(
        teams=("A", "B", "C", "D"),
        alpha=[1.6, 1.2, 1.0, 0.8],
        beta=[0.9, 1.0, 1.2, 1.5],
        gamma=[0.8, 1.0, 1.1, 1.3],
        delta=[1.3, 1.1, 0.9, 0.9],
    )


@pytest.fixture()
def rng() -> np.random.Generator:
    return np.random.default_rng(20240817)
