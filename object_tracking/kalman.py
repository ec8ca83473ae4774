# kalman.py
"""4-state linear Kalman estimator (pure integrator) on top of filterpy."""
from __future__ import annotations

import logging
from typing import Optional

import numpy as np
from filterpy.kalman import KalmanFilter

from object_tracking.helpers import STATE_DIM

logger = logging.getLogger(__name__)


class LinearKalmanFilter:
    """
    Mean/covariance estimator over ``(x, y, z, theta)``.

    F, B and H are identity for the lifetime of the filter, so ``predict``
    keeps the mean and grows the covariance by Q, and ``update`` blends a
    direct measurement of the full state.
    """

    # Smallest variance allowed on the diagonal of a measurement covariance.
    MIN_MEASUREMENT_VAR = 1e-9
    # Innovation covariances worse conditioned than this are treated as singular.
    MAX_CONDITION = 1e12

    # ------------------------------------------------------------------ #
    #   I N I T
    # ------------------------------------------------------------------ #
    def __init__(self, initial_cov: np.ndarray):
        self.kf = KalmanFilter(dim_x=STATE_DIM, dim_z=STATE_DIM, dim_u=STATE_DIM)
        self.kf.F = np.eye(STATE_DIM)
        self.kf.B = np.eye(STATE_DIM)
        self.kf.H = np.eye(STATE_DIM)
        self.reset(initial_cov)

    def reset(self, initial_cov: np.ndarray) -> None:
        """Back to ``x = 0`` and ``P = initial_cov``."""
        self.kf.x = np.zeros((STATE_DIM, 1))
        self.kf.P = np.array(initial_cov, dtype=float).reshape(STATE_DIM, STATE_DIM).copy()

    # ------------------------------------------------------------------ #
    #   S T A T E
    # ------------------------------------------------------------------ #
    @property
    def mean(self) -> np.ndarray:
        return self.kf.x.flatten().copy()

    @property
    def covariance(self) -> np.ndarray:
        return self.kf.P.copy()

    # ------------------------------------------------------------------ #
    #   P R E D I C T   +   U P D A T E
    # ------------------------------------------------------------------ #
    def predict(self, u: Optional[np.ndarray], Q: np.ndarray) -> None:
        if u is None:
            u = np.zeros((STATE_DIM, 1))
        u = np.asarray(u, dtype=float).reshape(STATE_DIM, 1)
        self.kf.predict(u=u, Q=np.asarray(Q, dtype=float))

    def update(self, z: np.ndarray, R: np.ndarray) -> bool:
        """
        Measurement update. Returns False (state untouched) when the
        innovation covariance cannot be inverted reliably.
        """
        z = np.asarray(z, dtype=float).reshape(STATE_DIM, 1)
        R = self._regularize(R)

        S = self.kf.P + R
        if not np.all(np.isfinite(S)) or np.linalg.cond(S) > self.MAX_CONDITION:
            logger.warning("[Kalman] Ill-conditioned innovation covariance; skipping update.")
            return False

        x_prior, P_prior = self.kf.x.copy(), self.kf.P.copy()
        try:
            self.kf.update(z, R=R)
        except np.linalg.LinAlgError as exc:
            logger.warning("[Kalman] Innovation covariance inversion failed (%s); skipping update.", exc)
            self.kf.x, self.kf.P = x_prior, P_prior
            return False

        if not (np.all(np.isfinite(self.kf.x)) and np.all(np.isfinite(self.kf.P))):
            logger.warning("[Kalman] Update produced non-finite state; reverting.")
            self.kf.x, self.kf.P = x_prior, P_prior
            return False
        return True

    def _regularize(self, R: np.ndarray) -> np.ndarray:
        R = np.array(R, dtype=float).reshape(STATE_DIM, STATE_DIM)
        R = 0.5 * (R + R.T)
        idx = np.diag_indices(STATE_DIM)
        R[idx] = np.maximum(R[idx], self.MIN_MEASUREMENT_VAR)
        return R

    def __repr__(self) -> str:
        x = np.array2string(self.kf.x.flatten(), precision=4)
        p = np.array2string(np.diag(self.kf.P), precision=4)
        return f"<LinearKalmanFilter mean={x} var={p}>"
