# common.py
"""Objects that are shared across multiple modules."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np


# ------------------- Exceptions -------------------
class TrackingError(RuntimeError):
    """Base class for errors raised by the object tracker."""


class ConfigError(TrackingError):
    """Raised when a configuration file cannot be read at all."""


class ReprojectionError(TrackingError):
    """Raised when a detection cannot be lifted into 3D."""


# ------------------- Attribute key -------------------
@dataclass(frozen=True, order=True)
class AttributeKey:
    """``shape/color`` pair identifying one tracked object class."""
    shape: str
    color: str

    @classmethod
    def of(cls, shape: str, color: str) -> "AttributeKey":
        shape = str(shape).strip().lower()
        color = str(color).strip().lower()
        if not shape or not color:
            raise ValueError(f"empty shape or color in ({shape!r}, {color!r})")
        if "/" in shape or "/" in color:
            raise ValueError(f"'/' is not allowed in shape or color ({shape!r}, {color!r})")
        return cls(shape=shape, color=color)

    def __str__(self) -> str:
        return f"{self.shape}/{self.color}"


# ------------------- Inbound messages -------------------
@dataclass(frozen=True)
class MatchedShape:
    """One classified 2D detection coming out of the vision stage."""
    shape: str
    color: str
    x: float
    y: float
    scale: float
    theta: float = 0.0
    covariance: Tuple[float, ...] = field(default_factory=tuple)

    @property
    def key(self) -> AttributeKey:
        # Raw fields: association is exact, only config keys are normalised.
        return AttributeKey(self.shape, self.color)


@dataclass(frozen=True)
class MatchedShapeArray:
    """A batch of detections sharing one frame id and timestamp."""
    frame_id: str
    shapes: Sequence[MatchedShape] = field(default_factory=tuple)
    stamp: float = 0.0


@dataclass(frozen=True)
class CameraInfo:
    """Camera calibration as delivered by the camera driver."""
    frame_id: str
    width: int
    height: int
    K: Tuple[float, ...]
    D: Tuple[float, ...] = field(default_factory=tuple)
    P: Optional[Tuple[float, ...]] = None


# ------------------- Outbound report -------------------
@dataclass(frozen=True)
class TrackedObjectReport:
    """
    A single snapshot of one tracker entry.
    Positions are in the camera optical frame, theta as reported by the detector.
    """
    name: str
    key: AttributeKey
    tracked: bool
    mean: Tuple[float, float, float, float]
    covariance: np.ndarray
    frame_id: Optional[str]
    stamp: Optional[float]
    updates: int


def shapes_from_dicts(items: List[dict]) -> List[MatchedShape]:
    return [
        MatchedShape(
            shape=item["shape"],
            color=item["color"],
            x=float(item["x"]),
            y=float(item["y"]),
            scale=float(item["scale"]),
            theta=float(item.get("theta", 0.0)),
            covariance=tuple(float(c) for c in item.get("covariance", ())),
        )
        for item in items
    ]
