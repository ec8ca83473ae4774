# reprojection.py
"""Lift 2D detections into 3D camera-frame positions."""
from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import Dict, Tuple, Type

from object_tracking.camera import CameraModel
from object_tracking.common import ReprojectionError

logger = logging.getLogger(__name__)

DEFAULT_DEPTH_METHOD = "monocular"


class DepthStrategy(ABC):
    """Template-method reprojector; subclasses only decide the depth."""

    name: str = ""

    def reproject(
        self,
        model: CameraModel,
        u: float,
        v: float,
        scale: float,
        ideal_radius: float,
    ) -> Tuple[float, float, float]:
        depth = self.depth(model, scale, ideal_radius)
        ray = model.project_pixel_to_ray(float(u), float(v))
        point = ray * depth
        return float(point[0]), float(point[1]), float(point[2])

    @abstractmethod
    def depth(self, model: CameraModel, scale: float, ideal_radius: float) -> float:
        raise NotImplementedError


class MonocularDepth(DepthStrategy):
    """Depth from apparent size: ``z = fx * ideal_radius / scale``."""

    name = "monocular"

    def depth(self, model: CameraModel, scale: float, ideal_radius: float) -> float:
        if not math.isfinite(scale) or scale <= 0.0:
            raise ReprojectionError(f"apparent scale must be positive, got {scale}")
        if not math.isfinite(ideal_radius) or ideal_radius <= 0.0:
            raise ReprojectionError(f"ideal radius must be positive, got {ideal_radius}")
        return model.fx * ideal_radius / scale


DEPTH_STRATEGIES: Dict[str, Type[DepthStrategy]] = {
    MonocularDepth.name: MonocularDepth,
}


def make_depth_strategy(method: str) -> DepthStrategy:
    """Build the configured strategy; unknown names fall back to monocular."""
    cls = DEPTH_STRATEGIES.get(str(method).strip().lower())
    if cls is None:
        logger.warning(
            "[Tracker] Got depth method [ %s ], but only %s is supported. Switching...",
            method, ", ".join(sorted(DEPTH_STRATEGIES)),
        )
        cls = DEPTH_STRATEGIES[DEFAULT_DEPTH_METHOD]
    return cls()


def reproject_object_to_3d(
    model: CameraModel, u: float, v: float, scale: float, ideal_radius: float
) -> Tuple[float, float, float]:
    return MonocularDepth().reproject(model, u, v, scale, ideal_radius)
