"""Numeric helpers for the fill detector.

Sequences are 1-D, matrices are 2-D with one observation per row and one
feature per column. Everything here is pure and returns plain Python floats
or numpy arrays.
"""

import numpy as np

# Pivots smaller than this are treated as zero during inversion
SINGULAR_TOLERANCE = 1e-10


def mean(values) -> float:
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return 0.0
    return float(arr.mean())


def standard_deviation(values, sample: bool = False) -> float:
    """Population standard deviation unless `sample` is set."""
    arr = np.asarray(values, dtype=float)
    ddof = 1 if sample else 0
    if arr.size <= ddof:
        return 0.0
    return float(arr.std(ddof=ddof))


def z_score(x: float, mu: float, sigma: float) -> float:
    if sigma == 0:
        return 0.0
    return (x - mu) / sigma


def z_scores(values) -> list[float]:
    mu = mean(values)
    sigma = standard_deviation(values)
    return [z_score(float(v), mu, sigma) for v in values]


def covariance_matrix(data) -> np.ndarray:
    """Sample covariance of the columns of `data` (n-1 denominator).

    Fewer than two observations give an all-zero matrix.
    """
    arr = np.atleast_2d(np.asarray(data, dtype=float))
    n_obs, n_features = arr.shape
    if n_obs < 2:
        return np.zeros((n_features, n_features))
    centered = arr - arr.mean(axis=0)
    return centered.T @ centered / (n_obs - 1)


def identity_matrix(size: int) -> np.ndarray:
    return np.eye(size)


def invert_matrix(matrix) -> np.ndarray | None:
    """Invert a square matrix by Gauss-Jordan elimination with partial pivoting.

    Returns None when the matrix is singular within SINGULAR_TOLERANCE.
    """
    a = np.array(matrix, dtype=float)
    if a.ndim != 2 or a.shape[0] != a.shape[1]:
        raise ValueError(f"Expected a square matrix, got shape {a.shape}")
    n = a.shape[0]

    aug = np.hstack([a, np.eye(n)])
    for col in range(n):
        pivot_row = col + int(np.argmax(np.abs(aug[col:, col])))
        if abs(aug[pivot_row, col]) < SINGULAR_TOLERANCE:
            return None
        if pivot_row != col:
            aug[[col, pivot_row]] = aug[[pivot_row, col]]

        aug[col] /= aug[col, col]
        for row in range(n):
            if row != col:
                aug[row] -= aug[row, col] * aug[col]

    return aug[:, n:]


def regularize_covariance(cov, epsilon: float = 1e-6) -> np.ndarray:
    """Add epsilon to the diagonal so small or degenerate samples stay invertible."""
    arr = np.array(cov, dtype=float)
    return arr + epsilon * np.eye(arr.shape[0])


def mahalanobis_distance(x, mu, inv_cov) -> float:
    diff = np.asarray(x, dtype=float) - np.asarray(mu, dtype=float)
    squared = float(diff @ np.asarray(inv_cov, dtype=float) @ diff)
    # Rounding can push a zero distance slightly negative
    return float(np.sqrt(max(squared, 0.0)))


def _trailing_windows(values, window: int):
    if window <= 0:
        raise ValueError(f"window must be positive, got {window}")
    arr = np.asarray(values, dtype=float)
    for i in range(arr.size):
        yield arr[max(0, i - window + 1) : i + 1]


def rolling_mean(values, window: int) -> list[float]:
    """Mean of the trailing `window` samples (past and current only) at each index."""
    return [float(chunk.mean()) for chunk in _trailing_windows(values, window)]


def rolling_std_dev(values, window: int) -> list[float]:
    """Population std of the trailing `window` samples at each index."""
    return [float(chunk.std()) for chunk in _trailing_windows(values, window)]


def median(values) -> float:
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return 0.0
    return float(np.median(arr))


def quartiles(values) -> tuple[float, float]:
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return 0.0, 0.0
    q1, q3 = np.percentile(arr, [25, 75])
    return float(q1), float(q3)


def inter_quartile_range(values) -> float:
    q1, q3 = quartiles(values)
    return q3 - q1


def detect_outliers(values, k: float = 1.5) -> list[bool]:
    """Flag values outside [Q1 - k*IQR, Q3 + k*IQR]."""
    q1, q3 = quartiles(values)
    iqr = q3 - q1
    low, high = q1 - k * iqr, q3 + k * iqr
    return [bool(v < low or v > high) for v in np.asarray(values, dtype=float)]


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t
