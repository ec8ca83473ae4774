# processor.py
"""Glue logic that wires camera info → detections → reprojection → trackers.

One ``ObjectTrackerProcessor`` owns the registry, the camera model cache and
the parameter-update channel. Detection batches are processed one at a time;
camera info and parameter updates may arrive from other threads.
"""
from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional

import numpy as np

from object_tracking.camera import CameraModel, CameraModelCache
from object_tracking.common import (
    CameraInfo,
    MatchedShape,
    MatchedShapeArray,
    ReprojectionError,
    TrackedObjectReport,
)
from object_tracking.config import TrackedObjectParams, TrackerConfig
from object_tracking.helpers import covariance_from_row_major
from object_tracking.reconfigure import ParameterUpdateChannel
from object_tracking.registry import TrackerEntry, TrackerRegistry
from object_tracking.reprojection import DepthStrategy, make_depth_strategy

logger = logging.getLogger(__name__)


class ObjectTrackerProcessor:
    """The main high-level orchestrator."""

    # ------------------------------------------------------------------ #
    #   I N I T
    # ------------------------------------------------------------------ #
    def __init__(
        self,
        registry: TrackerRegistry,
        channel: ParameterUpdateChannel,
        depth: DepthStrategy,
        *,
        rectify_detections: bool = False,
        object_params: Optional[Dict[str, TrackedObjectParams]] = None,
    ):
        self.registry = registry
        self.channel = channel
        self.depth = depth
        self.rectify_detections = rectify_detections
        self.object_params: Dict[str, TrackedObjectParams] = dict(object_params or {})
        self.camera = CameraModelCache()

        self._ingest_lock = threading.Lock()

        # Runtime metrics
        self.batches_processed = 0
        self.batches_dropped = 0
        self.updates_applied = 0

    # ------------------------------------------------------------------ #
    #   C A M E R A   I N F O
    # ------------------------------------------------------------------ #
    def on_camera_info(self, info: CameraInfo) -> bool:
        return self.camera.update(info)

    # ------------------------------------------------------------------ #
    #   P A R A M E T E R S
    # ------------------------------------------------------------------ #
    def update_tracker_params(self, name: str, predict_variance: float, initial_variance: float) -> bool:
        return self.channel.update_params(name, predict_variance, initial_variance)

    def start_tracking(self, name: str) -> bool:
        return self._set_tracked(name, True)

    def stop_tracking(self, name: str) -> bool:
        return self._set_tracked(name, False)

    def reset_tracking(self, name: str) -> bool:
        key = self.registry.key_for(name)
        if key is None:
            logger.warning("[Processor] Cannot reset unknown object [ %s ].", name)
            return False
        with self._ingest_lock:
            return self.registry.reset(key)

    def _set_tracked(self, name: str, tracked: bool) -> bool:
        key = self.registry.key_for(name)
        if key is None:
            logger.warning("[Processor] Unknown object [ %s ].", name)
            return False
        with self._ingest_lock:
            return self.registry.set_tracked(key, tracked)

    # ------------------------------------------------------------------ #
    #   R E P O R T S
    # ------------------------------------------------------------------ #
    # Snapshots are taken under the ingest lock so mean and covariance
    # always come from the same update.
    def report(self, name: str) -> Optional[TrackedObjectReport]:
        entry = self.registry.by_name(name)
        if entry is None:
            return None
        with self._ingest_lock:
            return entry.report(name)

    def reports(self) -> List[TrackedObjectReport]:
        out = []
        with self._ingest_lock:
            for name in self.registry.names():
                entry = self.registry.by_name(name)
                if entry is not None:
                    out.append(entry.report(name))
        return out

    # ------------------------------------------------------------------ #
    #   I N G E S T
    # ------------------------------------------------------------------ #
    def on_matched_shapes(self, batch: MatchedShapeArray) -> int:
        """
        Run one predict/update cycle for a detection batch.
        Returns the number of measurement updates applied; a dropped batch
        returns 0 and leaves every tracker untouched.
        """
        with self._ingest_lock:
            model = self.camera.get()

            # -------- gates (whole batch) --------
            if model is None:
                logger.warning("[Processor] Camera model is not ready. Discarding message...")
                self.batches_dropped += 1
                return 0
            if batch.frame_id != model.frame_id:
                logger.warning(
                    "[Processor] Matched shape frame '%s' does not match camera frame '%s'. "
                    "Discarding message...",
                    batch.frame_id, model.frame_id,
                )
                self.batches_dropped += 1
                return 0

            # -------- predict no change --------
            for entry in self.registry.tracked_entries():
                entry.predict()

            # -------- associate + update --------
            applied = 0
            for shape in batch.shapes:
                entry = self._associate(shape)
                if entry is None:
                    continue
                if self._update_entry(entry, shape, model, batch):
                    applied += 1

            self.batches_processed += 1
            self.updates_applied += applied
            return applied

    def _associate(self, shape: MatchedShape) -> Optional[TrackerEntry]:
        key = shape.key
        entry = self.registry.get(key)
        if entry is None:
            logger.debug("[Processor] No tracker for attributes [ %s ].", key)
            return None
        if not entry.tracked:
            logger.debug("[Processor] Attributes [ %s ] are not being tracked.", key)
            return None
        return entry

    def _measurement(
        self, entry: TrackerEntry, shape: MatchedShape, model: CameraModel
    ) -> Optional[np.ndarray]:
        u, v = float(shape.x), float(shape.y)
        if self.rectify_detections:
            u, v = model.rectify_point(u, v)
        try:
            x, y, z = self.depth.reproject(model, u, v, float(shape.scale), entry.ideal_radius)
        except ReprojectionError as exc:
            logger.warning("[Processor] Cannot reproject [ %s ]: %s", entry.key, exc)
            return None
        return np.array([x, y, z, float(shape.theta)])

    def _update_entry(
        self,
        entry: TrackerEntry,
        shape: MatchedShape,
        model: CameraModel,
        batch: MatchedShapeArray,
    ) -> bool:
        try:
            R = covariance_from_row_major(shape.covariance)
        except ValueError as exc:
            logger.warning("[Processor] Bad covariance for [ %s ]: %s", entry.key, exc)
            return False

        z = self._measurement(entry, shape, model)
        if z is None:
            return False

        if not entry.filter.update(z, R):
            return False

        entry.updates += 1
        entry.last_stamp = batch.stamp
        entry.last_frame_id = batch.frame_id
        logger.debug("[Processor] %s: %r", entry.key, entry.filter)
        return True


# ------------------------------------------------------------------ #
#   S T A R T U P
# ------------------------------------------------------------------ #
def build_tracker(cfg: TrackerConfig) -> ObjectTrackerProcessor:
    """
    Two-phase startup: register every configured object first, then wire
    the parameter-update channel from the finished name → key table.
    """
    depth = make_depth_strategy(cfg.depth_method)

    registry = TrackerRegistry()
    object_params: Dict[str, TrackedObjectParams] = {}
    for obj in cfg.objects:
        params = cfg.params_for(obj)
        registry.register(obj, params, tracked=cfg.immediate_tracking)
        object_params[obj.name] = params

    channel = ParameterUpdateChannel(registry, registry.name_table())

    logger.info(
        "[Processor] Tracking %d object class(es) with %s depth (immediate_tracking=%s).",
        len(registry), depth.name, cfg.immediate_tracking,
    )
    return ObjectTrackerProcessor(
        registry,
        channel,
        depth,
        rectify_detections=cfg.rectify_detections,
        object_params=object_params,
    )
