import inspect
import sys

import numpy as np
import pytest


@pytest.fixture
def shallow_recursion_limit():
    """Allow only 150 frames above the current stack; yields that headroom."""
    headroom = 150
    old = sys.getrecursionlimit()
    sys.setrecursionlimit(len(inspect.stack(0)) + headroom)
    try:
        yield headroom
    finally:
        sys.setrecursionlimit(old)


@pytest.fixture
def one_hot_chain():
    """One-hot rows with distinct targets: every split can only peel off one sample."""
    n = 260
    return np.eye(n), np.arange(n, dtype=float)
