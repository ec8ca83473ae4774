# camera.py
"""Pinhole camera model built from ``CameraInfo`` **and** the thread-safe
cache that holds the latest one."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2
import numpy as np

from object_tracking.common import CameraInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CameraModel:
    """Immutable intrinsic model for one camera frame."""
    frame_id: str
    width: int
    height: int
    K: np.ndarray
    D: np.ndarray
    P: np.ndarray

    # ------------------------------------------------------------------ #
    #   C O N S T R U C T I O N
    # ------------------------------------------------------------------ #
    @classmethod
    def from_camera_info(cls, info: CameraInfo) -> "CameraModel":
        """Raises ``ValueError`` when the calibration is unusable."""
        K = np.asarray(info.K, dtype=float)
        if K.size != 9:
            raise ValueError(f"K must have 9 entries, got {K.size}")
        K = K.reshape(3, 3)

        if info.P is not None and len(info.P) > 0:
            P = np.asarray(info.P, dtype=float)
            if P.size != 12:
                raise ValueError(f"P must have 12 entries, got {P.size}")
            P = P.reshape(3, 4)
        else:
            P = np.hstack([K, np.zeros((3, 1))])

        D = np.asarray(info.D, dtype=float).flatten()

        model = cls(
            frame_id=info.frame_id,
            width=int(info.width),
            height=int(info.height),
            K=K,
            D=D,
            P=P,
        )
        if not (np.all(np.isfinite(K)) and np.all(np.isfinite(P))):
            raise ValueError("calibration contains non-finite entries")
        if model.fx <= 0.0 or model.fy <= 0.0:
            raise ValueError(f"focal length must be positive (fx={model.fx}, fy={model.fy})")
        return model

    # ------------------------------------------------------------------ #
    #   R E C T I F I E D   I N T R I N S I C S
    # ------------------------------------------------------------------ #
    @property
    def fx(self) -> float:
        return float(self.P[0, 0])

    @property
    def fy(self) -> float:
        return float(self.P[1, 1])

    @property
    def cx(self) -> float:
        return float(self.P[0, 2])

    @property
    def cy(self) -> float:
        return float(self.P[1, 2])

    @property
    def Tx(self) -> float:
        return float(self.P[0, 3])

    @property
    def Ty(self) -> float:
        return float(self.P[1, 3])

    def project_pixel_to_ray(self, u: float, v: float) -> np.ndarray:
        """Ray through a rectified pixel, normalised so that z == 1."""
        x = (u - self.cx - self.Tx) / self.fx
        y = (v - self.cy - self.Ty) / self.fy
        return np.array([x, y, 1.0])

    def rectify_point(self, u: float, v: float) -> Tuple[float, float]:
        """Map a raw-image pixel into the rectified image."""
        if self.D.size == 0 or not np.any(self.D):
            return float(u), float(v)
        src = np.array([[[u, v]]], dtype=np.float64)
        dst = cv2.undistortPoints(src, self.K, self.D, P=self.P[:, :3])
        return float(dst[0, 0, 0]), float(dst[0, 0, 1])


class CameraModelCache:
    """Holds the most recent ``CameraModel``; swapped as a whole object."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._model: Optional[CameraModel] = None

    def update(self, info: CameraInfo) -> bool:
        """Cache a new calibration. Invalid calibrations keep the old model."""
        try:
            model = CameraModel.from_camera_info(info)
        except ValueError as exc:
            logger.warning("[Camera] Ignoring camera info for frame '%s': %s", info.frame_id, exc)
            return False
        with self._lock:
            first = self._model is None
            self._model = model
        if first:
            logger.info(
                "[Camera] Camera model ready for frame '%s' (%dx%d, fx=%.1f)",
                model.frame_id, model.width, model.height, model.fx,
            )
        return True

    def get(self) -> Optional[CameraModel]:
        with self._lock:
            return self._model

    @property
    def ready(self) -> bool:
        return self.get() is not None

    @property
    def frame_id(self) -> Optional[str]:
        model = self.get()
        return model.frame_id if model is not None else None
