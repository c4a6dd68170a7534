"""Statistics helpers used by the tree builder.

All functions accept any 1-D sequence of floats and return plain Python
floats.  Mean and variance are computed on values rescaled by a power of two,
which is exact, so finite inputs near the float range do not overflow in
intermediate sums and squares.
"""
from __future__ import annotations
from typing import Sequence, Tuple
import math

import numpy as np


def scale_by_power_of_two(values: Sequence[float]) -> Tuple[np.ndarray, int]:
    """
    Return ``(scaled, exponent)`` with ``values == scaled * 2**exponent`` and
    every ``|scaled| < 1``.

    Scaling by a power of two only shifts exponents, so orderings and ties
    between sums of squares of ``scaled`` match those of ``values``.
    """
    v = np.asarray(values, dtype=float)
    if v.size == 0:
        return v, 0
    _, exponent = math.frexp(float(np.max(np.abs(v))))
    return np.ldexp(v, -exponent), exponent


def _unscale(x: float, exponent: int) -> float:
    with np.errstate(over="ignore"):
        return float(np.ldexp(x, exponent))


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean. Raises ``ValueError`` on an empty sequence."""
    s, exponent = scale_by_power_of_two(values)
    if s.size == 0:
        raise ValueError("mean of an empty sequence is undefined")
    return _unscale(s.mean(), exponent)


def is_pure(values: Sequence[float]) -> bool:
    """
    True iff every element equals the first one.

    The comparison is exact float equality, with no tolerance: ``[1.0, 1.0 + 1e-15]``
    is not pure.  An empty sequence is pure.
    """
    v = np.asarray(values, dtype=float)
    if v.size == 0:
        return True
    return bool(np.all(v == v[0]))


def variance(values: Sequence[float]) -> float:
    """
    Population variance (divisor = count); 0.0 for an empty sequence.

    Returns ``inf`` only when the variance itself exceeds the float range.
    """
    s, exponent = scale_by_power_of_two(values)
    if s.size == 0:
        return 0.0
    return _unscale(np.mean((s - s.mean()) ** 2), 2 * exponent)


def weighted_variance_score(left: Sequence[float], right: Sequence[float]) -> float:
    """
    Sample-size-weighted average of the two partitions' population variances.

    ``score = (|L| * var(L) + |R| * var(R)) / (|L| + |R|)``

    Lower is better.  An empty side contributes nothing to the numerator; two
    empty sides score 0.0.
    """
    n_left = len(left)
    n_right = len(right)
    n = n_left + n_right
    if n == 0:
        return 0.0
    return (n_left * variance(left) + n_right * variance(right)) / n
