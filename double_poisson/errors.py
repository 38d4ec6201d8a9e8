from __future__ import annotations

from typing import Optional


class EstimationError(ValueError):
    """Base class for failures of a single fit call."""


class DataSufficiencyError(EstimationError):
    """The matches do not identify every team's parameters."""

    def __init__(self, message: str, team: Optional[str] = None):
        super().__init__(message)
        self.team = team


class NumericDomainError(EstimationError):
    """An expected goal rate left the positive reals during estimation."""

    def __init__(self, message: str, iteration: Optional[int] = None):
        super().__init__(message)
        self.iteration = iteration
