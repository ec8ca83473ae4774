# registry.py
"""Attribute-keyed registry of per-object Kalman estimators."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from object_tracking.common import AttributeKey, TrackedObjectReport
from object_tracking.config import ObjectConfig, TrackedObjectParams
from object_tracking.helpers import diag4
from object_tracking.kalman import LinearKalmanFilter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NoiseParams:
    """Process-noise and initial covariance, always swapped as a pair."""
    process_noise_cov: np.ndarray
    initial_cov: np.ndarray

    @classmethod
    def from_params(cls, params: TrackedObjectParams) -> "NoiseParams":
        return cls(
            process_noise_cov=diag4(params.predict_variance),
            initial_cov=diag4(params.initial_variance),
        )


@dataclass
class TrackerEntry:
    name: str
    key: AttributeKey
    ideal_radius: float
    tracked: bool
    filter: LinearKalmanFilter
    _noise: NoiseParams
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    # bookkeeping for reports
    updates: int = 0
    last_stamp: Optional[float] = None
    last_frame_id: Optional[str] = None

    @property
    def noise(self) -> NoiseParams:
        with self._lock:
            return self._noise

    def set_noise(self, noise: NoiseParams) -> None:
        with self._lock:
            self._noise = noise

    @property
    def process_noise_cov(self) -> np.ndarray:
        return self.noise.process_noise_cov

    @property
    def initial_cov(self) -> np.ndarray:
        return self.noise.initial_cov

    def predict(self) -> None:
        self.filter.predict(None, self.noise.process_noise_cov)

    def report(self, name: Optional[str] = None) -> TrackedObjectReport:
        mean = self.filter.mean
        return TrackedObjectReport(
            name=name or self.name,
            key=self.key,
            tracked=self.tracked,
            mean=(float(mean[0]), float(mean[1]), float(mean[2]), float(mean[3])),
            covariance=self.filter.covariance,
            frame_id=self.last_frame_id,
            stamp=self.last_stamp,
            updates=self.updates,
        )


class TrackerRegistry:
    """Owns every ``TrackerEntry``; entries are never removed."""

    def __init__(self) -> None:
        self._entries: Dict[AttributeKey, TrackerEntry] = {}
        self._names: Dict[str, AttributeKey] = {}

    # ------------------------------------------------------------------ #
    #   R E G I S T R A T I O N
    # ------------------------------------------------------------------ #
    def register(self, obj: ObjectConfig, params: TrackedObjectParams, tracked: bool) -> TrackerEntry:
        key = obj.key
        noise = NoiseParams.from_params(params)
        if key in self._entries:
            logger.warning(
                "[Tracker] Object [ %s ] aliases attributes [ %s ] already used by [ %s ]; replacing.",
                obj.name, key, self._entries[key].name,
            )
        entry = TrackerEntry(
            name=obj.name,
            key=key,
            ideal_radius=float(obj.ideal_radius),
            tracked=tracked,
            filter=LinearKalmanFilter(noise.initial_cov),
            _noise=noise,
        )
        self._entries[key] = entry
        self._names[obj.name] = key
        logger.info("[Tracker] Loaded object [ %s ] with attributes [ %s ].", obj.name, key)
        return entry

    # ------------------------------------------------------------------ #
    #   L O O K U P
    # ------------------------------------------------------------------ #
    def get(self, key: AttributeKey) -> Optional[TrackerEntry]:
        return self._entries.get(key)

    def key_for(self, name: str) -> Optional[AttributeKey]:
        return self._names.get(name)

    def by_name(self, name: str) -> Optional[TrackerEntry]:
        key = self._names.get(name)
        return self._entries.get(key) if key is not None else None

    def name_table(self) -> Dict[str, AttributeKey]:
        return dict(self._names)

    def names(self) -> List[str]:
        return list(self._names)

    def __len__(self) -> int:
        return len(self._entries)

    def tracked_entries(self) -> List[TrackerEntry]:
        return [e for e in self._entries.values() if e.tracked]

    # ------------------------------------------------------------------ #
    #   S T A T E   T R A N S I T I O N S
    # ------------------------------------------------------------------ #
    def set_tracked(self, key: AttributeKey, tracked: bool) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            logger.warning("[Tracker] Cannot set tracking for unknown attributes [ %s ].", key)
            return False
        if entry.tracked != tracked:
            entry.tracked = tracked
            logger.info("[Tracker] %s tracking [ %s ].", "Started" if tracked else "Stopped", key)
        return True

    def reset(self, key: AttributeKey) -> bool:
        """Reinitialise mean/covariance from the entry's current initial_cov."""
        entry = self._entries.get(key)
        if entry is None:
            logger.warning("[Tracker] Cannot reset unknown attributes [ %s ].", key)
            return False
        entry.filter.reset(entry.initial_cov)
        entry.updates = 0
        entry.last_stamp = None
        entry.last_frame_id = None
        logger.info("[Tracker] Reset tracker [ %s ].", key)
        return True
