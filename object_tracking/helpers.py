# helpers.py
"""Small matrix utilities that don’t fit elsewhere."""
from typing import Sequence

import numpy as np

STATE_DIM = 4


def diag4(value: float) -> np.ndarray:
    """4×4 diagonal matrix with every diagonal entry equal to ``value``."""
    return np.eye(STATE_DIM) * float(value)


def covariance_from_row_major(values: Sequence[float]) -> np.ndarray:
    """
    Turn a flat 16-element row-major covariance into a symmetric 4×4 matrix.

    Raises ``ValueError`` for a wrong length or non-finite entries.
    """
    arr = np.asarray(values, dtype=float)
    if arr.size != STATE_DIM * STATE_DIM:
        raise ValueError(f"expected {STATE_DIM * STATE_DIM} covariance entries, got {arr.size}")
    if not np.all(np.isfinite(arr)):
        raise ValueError("covariance contains non-finite entries")
    mat = arr.reshape(STATE_DIM, STATE_DIM)
    return 0.5 * (mat + mat.T)

