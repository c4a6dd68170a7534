"""Variance-reduction regression tree: node types, builder and predictor.

A fitted tree is a strict binary tree of frozen :class:`Leaf` and
:class:`Internal` nodes.  :func:`build_tree` grows it greedily, choosing at
every node the axis-aligned split ``x[f] <= t`` that minimizes the
sample-weighted population variance of the two children.  :func:`predict_one`
and :func:`predict` walk it without modifying it.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple, Union
import math

import numpy as np
from loguru import logger

from .exceptions import InvalidInputError
from .stats import is_pure, mean, scale_by_power_of_two, weighted_variance_score

# ----------------------------- Nodes -----------------------------

@dataclass(frozen=True)
class Leaf:
    value: float
    n_samples: int = 0

    @property
    def n_leaves(self) -> int:
        return 1

    @property
    def depth(self) -> int:
        return 0


@dataclass(frozen=True)
class Internal:
    feature_index: int
    threshold: float
    left: Node
    right: Node
    n_samples: int = 0

    @property
    def n_leaves(self) -> int:
        return sum(1 for node in iter_preorder(self) if isinstance(node, Leaf))

    @property
    def depth(self) -> int:
        deepest = 0
        stack = [(self, 0)]
        while stack:
            node, d = stack.pop()
            if isinstance(node, Internal):
                stack.append((node.left, d + 1))
                stack.append((node.right, d + 1))
            elif d > deepest:
                deepest = d
        return deepest


Node = Union[Leaf, Internal]


def iter_preorder(node: Node) -> Iterator[Node]:
    """Yield every node, parent before children, left subtree before right."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        if isinstance(current, Internal):
            stack.append(current.right)
            stack.append(current.left)

# ----------------------------- Input checks -----------------------------

def _as_float_array(a, what: str) -> np.ndarray:
    try:
        return np.asarray(a, dtype=float)
    except (TypeError, ValueError) as e:
        if isinstance(a, (list, tuple)):
            lengths = {len(row) for row in a if hasattr(row, "__len__")}
            if len(lengths) > 1:
                raise InvalidInputError(
                    f"{what} rows must all have the same length, got lengths {sorted(lengths)}"
                ) from e
        raise InvalidInputError(f"{what} must contain only real numbers: {e}") from e


def check_features(X, n_features: Optional[int] = None) -> np.ndarray:
    """
    Convert ``X`` to a finite 2-D float array.

    Raises
    ------
    InvalidInputError
        If ``X`` is ragged, not 2-D, empty, has zero columns, contains
        non-finite values, or its column count differs from ``n_features``.
    """
    X = _as_float_array(X, "features")
    if X.ndim != 2:
        raise InvalidInputError(f"features must be a 2-D table, got an array with ndim={X.ndim}")
    if X.shape[0] == 0:
        raise InvalidInputError("features must contain at least one row")
    if X.shape[1] == 0:
        raise InvalidInputError("features must contain at least one column")
    if not np.all(np.isfinite(X)):
        raise InvalidInputError("features must be finite (no NaN or infinity)")
    if n_features is not None and X.shape[1] != n_features:
        raise InvalidInputError(
            f"features have {X.shape[1]} columns but the tree was fitted with {n_features}"
        )
    return X


def check_table(X, y) -> Tuple[np.ndarray, np.ndarray]:
    """Validate a training table and return ``(features, targets)`` as float arrays."""
    X = check_features(X)
    y = _as_float_array(y, "targets")
    if y.ndim != 1:
        raise InvalidInputError(f"targets must be 1-D, got an array with ndim={y.ndim}")
    if y.shape[0] != X.shape[0]:
        raise InvalidInputError(
            f"features have {X.shape[0]} rows but targets have {y.shape[0]} values"
        )
    if not np.all(np.isfinite(y)):
        raise InvalidInputError("targets must be finite (no NaN or infinity)")
    return X, y

# ----------------------------- Builder -----------------------------

@dataclass
class _Split:
    feature_index: int
    threshold: float
    score: float
    left_rows: np.ndarray
    right_rows: np.ndarray


def _best_split(X: np.ndarray, y: np.ndarray, rows: np.ndarray) -> Optional[_Split]:
    # Features ascending, thresholds ascending; strict < keeps the first of equal scores.
    # Targets are scored after an exact power-of-two rescale so large values cannot overflow.
    y_node, exponent = scale_by_power_of_two(y[rows])
    best: Optional[_Split] = None
    best_score = math.inf
    for f in range(X.shape[1]):
        col = X[rows, f]
        for t in np.unique(col):
            goes_left = col <= t
            n_left = int(goes_left.sum())
            if n_left == 0 or n_left == col.size:
                continue
            score = weighted_variance_score(y_node[goes_left], y_node[~goes_left])
            if best is None or score < best_score:
                best_score = score
                best = _Split(f, float(t), score, rows[goes_left], rows[~goes_left])
    if best is not None:
        with np.errstate(over="ignore"):
            best.score = float(np.ldexp(best_score, 2 * exponent))
    return best


class TreeBuilder:
    """
    Grows a regression tree from a validated table.

    The tree is grown with an explicit work stack, so ``max_depth`` is not
    limited by the interpreter's recursion limit.

    Parameters
    ----------
    max_depth : int
        Nodes at this depth become leaves.  ``0`` yields a single leaf.
    min_samples_split : int
        Nodes with fewer samples become leaves.
    """

    def __init__(self, max_depth: int, min_samples_split: int):
        self.max_depth = max_depth
        self.min_samples_split = min_samples_split

    def build(self, X: np.ndarray, y: np.ndarray) -> Node:
        # Stack entries are (rows, depth, split); a split marks a node whose
        # two subtrees are already on `finished` (left below right).
        stack: List[Tuple[np.ndarray, int, Optional[_Split]]] = [(np.arange(X.shape[0]), 0, None)]
        finished: List[Node] = []
        while stack:
            rows, depth, split = stack.pop()
            if split is not None:
                right = finished.pop()
                left = finished.pop()
                finished.append(Internal(
                    feature_index=split.feature_index,
                    threshold=split.threshold,
                    left=left,
                    right=right,
                    n_samples=int(rows.size),
                ))
                continue
            outcome = self._expand(X, y, rows, depth)
            if isinstance(outcome, Leaf):
                finished.append(outcome)
                continue
            stack.append((rows, depth, outcome))
            stack.append((outcome.right_rows, depth + 1, None))
            stack.append((outcome.left_rows, depth + 1, None))
        return finished.pop()

    def _leaf(self, y: np.ndarray, rows: np.ndarray, depth: int, reason: str) -> Leaf:
        leaf = Leaf(value=mean(y[rows]), n_samples=int(rows.size))
        logger.debug("leaf", depth=depth, reason=reason, value=leaf.value, n_samples=leaf.n_samples)
        return leaf

    def _expand(self, X: np.ndarray, y: np.ndarray, rows: np.ndarray, depth: int) -> Union[Leaf, _Split]:
        """Return the leaf for ``rows`` if a stopping rule applies, else the split to make."""
        if depth >= self.max_depth:
            return self._leaf(y, rows, depth, "max_depth")
        if rows.size < self.min_samples_split:
            return self._leaf(y, rows, depth, "min_samples_split")
        if is_pure(y[rows]):
            return self._leaf(y, rows, depth, "pure")

        split = _best_split(X, y, rows)
        if split is None:
            return self._leaf(y, rows, depth, "no_valid_split")

        logger.debug(
            "split",
            depth=depth,
            feature=split.feature_index,
            threshold=split.threshold,
            score=split.score,
            n_left=int(split.left_rows.size),
            n_right=int(split.right_rows.size),
        )
        return split


def build_tree(features, targets, max_depth: int = 5, min_samples_split: int = 2) -> Node:
    """Validate ``(features, targets)`` and grow a tree from them."""
    X, y = check_table(features, targets)
    return TreeBuilder(max_depth, min_samples_split).build(X, y)

# ----------------------------- Prediction -----------------------------

def leaf_for(x, tree: Node) -> Leaf:
    """Return the leaf that feature vector ``x`` reaches."""
    node = tree
    while isinstance(node, Internal):
        j = node.feature_index
        if j >= len(x):
            raise InvalidInputError(
                f"feature vector has {len(x)} values but the tree splits on feature {j}"
            )
        node = node.left if x[j] <= node.threshold else node.right
    return node


def predict_one(x, tree: Node) -> float:
    return leaf_for(x, tree).value


def predict(X, tree: Node) -> np.ndarray:
    """One prediction per row of ``X``, in row order."""
    X = check_features(X)
    out = np.empty(X.shape[0], dtype=float)
    for i, x in enumerate(X):
        out[i] = predict_one(x, tree)
    return out
