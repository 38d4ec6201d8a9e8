import logging
import math

import numpy as np
import pytest

from double_poisson.data import Match, sample_matches
from double_poisson.errors import DataSufficiencyError, EstimationError, NumericDomainError
from double_poisson.models import DoublePoissonEstimator, FitResult, TeamParameters, fit


def _recovery_error(result: FitResult, truth) -> float:
    fitted = result.coefficients().reindex(list(truth.teams))
    expected = truth.to_frame()
    return float(np.mean(np.abs(fitted.to_numpy() - expected.to_numpy())))


def test_round_robin_converges_with_positive_parameters(round_robin) -> None:
    result = fit(round_robin, max_iterations=100)

    assert result.converged is True
    assert result.iterations <= 100
    assert result.teams == ("A", "B", "C")
    assert result.n_matches == 6
    assert result.n_parameters == 10

    table = result.coefficients()
    values = table.to_numpy()
    assert np.all(np.isfinite(values))
    assert np.all(values > 0)

    gap_attack, gap_defence = result.parameters.normalization_gaps()
    assert gap_attack < 1e-9
    assert gap_defence < 1e-9


def test_normalization_holds_after_every_iteration(round_robin) -> None:
    for k in range(1, 8):
        result = fit(round_robin, max_iterations=k, tolerance=1e-14)
        gap_attack, gap_defence = result.parameters.normalization_gaps()
        assert gap_attack < 1e-9, k
        assert gap_defence < 1e-9, k


def test_log_likelihood_never_decreases(round_robin, true_params, rng) -> None:
    synthetic = sample_matches(true_params, n_rounds=5, random_state=rng)

    for matches in (round_robin, synthetic):
        result = fit(matches, max_iterations=500, tolerance=1e-12)
        trace = np.asarray(result.trace)

        assert len(trace) == result.iterations
        assert trace[-1] == pytest.approx(result.log_likelihood)
        assert np.all(np.diff(trace) >= -1e-9 * np.abs(trace[1:]))


def test_recovers_true_parameters(true_params, rng) -> None:
    small = sample_matches(true_params, n_rounds=10, random_state=rng)
    large = sample_matches(true_params, n_rounds=400, random_state=rng)

    small_fit = fit(small, max_iterations=2000)
    large_fit = fit(large, max_iterations=2000)

    assert large_fit.converged

    fitted = large_fit.coefficients().reindex(list(true_params.teams))
    np.testing.assert_allclose(fitted.to_numpy(), true_params.to_frame().to_numpy(), rtol=0.15)

    assert _recovery_error(large_fit, true_params) < _recovery_error(small_fit, true_params)


def test_team_without_home_matches_is_rejected(round_robin) -> None:
    matches = round_robin + [Match("A", "D", 1, 0), Match("B", "D", 0, 0)]

    with pytest.raises(DataSufficiencyError, match="'D'") as excinfo:
        fit(matches)

    assert excinfo.value.team == "D"
    assert isinstance(excinfo.value, EstimationError)


def test_team_without_away_matches_is_rejected(round_robin) -> None:
    matches = round_robin + [Match("E", "A", 2, 2)]

    with pytest.raises(DataSufficiencyError) as excinfo:
        fit(matches)

    assert excinfo.value.team == "E"


def test_empty_input_is_rejected() -> None:
    with pytest.raises(DataSufficiencyError):
        fit([])


def test_identical_teams_match_global_rates(round_robin) -> None:
    result = fit(round_robin, variant="identical")

    assert result.converged
    assert result.n_parameters == 2

    table = result.coefficients()
    for col in table.columns:
        assert table[col].to_numpy() == pytest.approx(np.full(3, table[col].iloc[0]))

    total_home = sum(m.home_goals for m in round_robin)
    total_away = sum(m.away_goals for m in round_robin)

    lam_h, lam_a = result.expected_goals("A", "B")
    assert lam_h == pytest.approx(total_home / len(round_robin))
    assert lam_a == pytest.approx(total_away / len(round_robin))

    # normalization splits each rate evenly between the two sides
    assert table["alpha"].iloc[0] == pytest.approx(math.sqrt(total_home / len(round_robin)))
    assert table["gamma"].iloc[0] == pytest.approx(math.sqrt(total_away / len(round_robin)))


def test_hitting_iteration_cap_is_not_an_error(round_robin, caplog) -> None:
    with caplog.at_level(logging.WARNING, logger="double_poisson.models"):
        result = fit(round_robin, max_iterations=1, tolerance=1e-14)

    assert result.converged is False
    assert result.iterations == 1
    assert len(result.trace) == 1
    assert np.all(result.coefficients().to_numpy() > 0)
    assert "did not converge" in caplog.text


def test_team_that_never_scores_at_home_hits_numeric_domain() -> None:
    matches = [
        Match("A", "B", 2, 1),
        Match("B", "C", 1, 1),
        Match("C", "A", 0, 2),
        Match("A", "C", 3, 0),
        Match("B", "A", 2, 0),
        Match("C", "B", 0, 1),
    ]

    with pytest.raises(NumericDomainError, match="C vs") as excinfo:
        fit(matches)

    assert excinfo.value.iteration == 1


def test_fit_is_pure(round_robin) -> None:
    snapshot = list(round_robin)

    first = fit(round_robin)
    second = fit(round_robin)

    assert round_robin == snapshot
    assert first is not second
    assert first.trace == second.trace
    np.testing.assert_array_equal(first.parameters.alpha, second.parameters.alpha)


def test_result_arrays_are_read_only(round_robin) -> None:
    result = fit(round_robin)

    with pytest.raises(ValueError):
        result.parameters.alpha[0] = 10.0


def test_estimator_rejects_bad_settings() -> None:
    with pytest.raises(ValueError):
        DoublePoissonEstimator(max_iterations=0)
    with pytest.raises(ValueError):
        DoublePoissonEstimator(tolerance=0.0)


def test_estimator_uses_configured_defaults(monkeypatch) -> None:
    monkeypatch.setenv("DOUBLE_POISSON_MAX_ITERATIONS", "7")
    monkeypatch.setenv("DOUBLE_POISSON_TOLERANCE", "1e-4")

    estimator = DoublePoissonEstimator()

    assert estimator.max_iterations == 7
    assert estimator.tolerance == pytest.approx(1e-4)


def test_fitted_teams_are_queryable_by_their_ids(round_robin) -> None:
    result = fit(round_robin)

    for m in round_robin:
        lam_h, lam_a = result.expected_goals(m.home_team, m.away_team)
        assert lam_h > 0 and lam_a > 0


def test_team_parameters_reject_non_string_teams() -> None:
    with pytest.raises(ValueError, match="must be strings"):
        TeamParameters(teams=(1, 2), alpha=[1, 1], beta=[1, 1], gamma=[1, 1], delta=[1, 1])


def test_converged_when_tolerance_met_on_last_allowed_iteration(round_robin) -> None:
    reference = fit(round_robin, max_iterations=1000)
    assert reference.converged

    capped = fit(round_robin, max_iterations=reference.iterations)

    assert capped.converged is True
    assert capped.iterations == reference.iterations
    assert capped.log_likelihood == reference.log_likelihood

    one_short = fit(round_robin, max_iterations=reference.iterations - 1)
    assert one_short.converged is False
