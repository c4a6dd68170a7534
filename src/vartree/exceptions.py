"""Exceptions raised by vartree.

- InvalidInputError: malformed training/prediction data or hyperparameters.
  Subclasses ``ValueError`` so callers catching ``ValueError`` keep working.
- NotFittedError: the estimator was used before ``fit``.
"""
from __future__ import annotations


class InvalidInputError(ValueError):
    """Raised when features, targets or hyperparameters violate the estimator's contract."""


class NotFittedError(InvalidInputError):
    """Raised when predicting or inspecting an estimator that has not been fitted."""

    def __init__(self, message: str = "Estimator not fitted. Call fit(...) first.") -> None:
        super().__init__(message)
