from __future__ import annotations

from .config import (
    DATA_DIR,
    RESULTS_CSV,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_TOLERANCE,
    get_max_iterations,
    get_tolerance,
    ensure_data_dir_exists,
)

from .errors import (
    EstimationError,
    DataSufficiencyError,
    NumericDomainError,
)
from .data import (
    Match,
    load_results_csv,
    save_results_csv,
    matches_from_frame,
    matches_to_frame,
    teams_from_matches,
    sample_matches,
)
from .models import (
    SHARED,
    TEAM,
    IDENTICAL,
    ATTACK,
    DEFENCE,
    FULL,
    MODEL_HIERARCHY,
    ModelVariant,
    TeamParameters,
    FitResult,
    DoublePoissonEstimator,
    fit,
    fit_hierarchy,
    get_variant,
)
from .comparison import (
    LikelihoodRatioResult,
    likelihood_ratio_test,
    compare_models,
)
from .evaluation import (
    score_matches,
    evaluate_fit,
)
from .artifacts import (
    save_fit_result,
    load_fit_result,
)

__all__ = [
    "DATA_DIR",
    "RESULTS_CSV",
    "DEFAULT_MAX_ITERATIONS",
    "DEFAULT_TOLERANCE",
    "get_max_iterations",
    "get_tolerance",
    "ensure_data_dir_exists",
    "EstimationError",
    "DataSufficiencyError",
    "NumericDomainError",
    "Match",
    "load_results_csv",
    "save_results_csv",
    "matches_from_frame",
    "matches_to_frame",
    "teams_from_matches",
    "sample_matches",
    "SHARED",
    "TEAM",
    "IDENTICAL",
    "ATTACK",
    "DEFENCE",
    "FULL",
    "MODEL_HIERARCHY",
    "ModelVariant",
    "TeamParameters",
    "FitResult",
    "DoublePoissonEstimator",
    "fit",
    "fit_hierarchy",
    "get_variant",
    "LikelihoodRatioResult",
    "likelihood_ratio_test",
    "compare_models",
    "score_matches",
    "evaluate_fit",
    "save_fit_result",
    "load_fit_result",
]
