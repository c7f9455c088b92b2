import logging

import numpy as np

from chartfill.services import stats

logger = logging.getLogger(__name__)


class GrooveModel:
    """Mean and regularized inverse covariance of recent groove descriptors."""

    def __init__(self, mean: np.ndarray, inv_cov: np.ndarray):
        self.mean = mean
        self.inv_cov = inv_cov

    @classmethod
    def fit(cls, history, epsilon: float, min_history: int = 2) -> "GrooveModel | None":
        """Fit on the rows of `history`.

        Returns None with fewer than `min_history` rows or when the
        regularized covariance is still singular.
        """
        data = np.asarray(history, dtype=float)
        if data.ndim != 2 or data.shape[0] < min_history:
            return None
        cov = stats.regularize_covariance(stats.covariance_matrix(data), epsilon)
        inv_cov = stats.invert_matrix(cov)
        if inv_cov is None:
            logger.debug(f"Singular groove covariance over {data.shape[0]} windows; skipping")
            return None
        return cls(data.mean(axis=0), inv_cov)

    def distance(self, descriptor) -> float:
        return stats.mahalanobis_distance(descriptor, self.mean, self.inv_cov)


def groove_distance(history, descriptor, epsilon: float, min_history: int = 2) -> float:
    """Mahalanobis distance of `descriptor` from the history, or 0 without a usable model."""
    model = GrooveModel.fit(history, epsilon, min_history)
    if model is None:
        return 0.0
    return model.distance(descriptor)
