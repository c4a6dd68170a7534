# vartree/__init__.py
"""
vartree: variance-reduction regression trees in pure Python (scikit-learn style).

Exports:
    - VarianceTreeRegressor
    - Leaf, Internal, build_tree, predict, predict_one
    - InvalidInputError, NotFittedError
    - enable_logging
"""
from loguru import logger

from .exceptions import InvalidInputError, NotFittedError
from .logging import PACKAGE_NAME, enable_logging
from .regressor import VarianceTreeRegressor
from .tree import Internal, Leaf, build_tree, predict, predict_one

logger.disable(PACKAGE_NAME)

__all__ = [
    "VarianceTreeRegressor",
    "Leaf",
    "Internal",
    "build_tree",
    "predict",
    "predict_one",
    "InvalidInputError",
    "NotFittedError",
    "enable_logging",
]
__version__ = "0.1.0"
