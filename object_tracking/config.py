# config.py
"""Typed configuration blobs for the object tracker."""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from object_tracking.common import AttributeKey, ConfigError

logger = logging.getLogger(__name__)


@dataclass
class TrackedObjectParams:
    """Per-object live-tunable noise terms."""
    predict_variance: float = 0.01   # added to every diagonal entry of P per predict
    initial_variance: float = 1.0    # P at (re)initialisation


@dataclass
class ObjectConfig:
    name: str
    shape: str
    color: str
    ideal_radius: float              # metres
    params: Optional[TrackedObjectParams] = None

    @property
    def key(self) -> AttributeKey:
        return AttributeKey.of(self.shape, self.color)


@dataclass
class TrackerConfig:
    immediate_tracking: bool = False
    depth_method: str = "monocular"
    rectify_detections: bool = False   # undistort raw-image detections first
    default_params: TrackedObjectParams = field(default_factory=TrackedObjectParams)
    objects: List[ObjectConfig] = field(default_factory=list)

    def params_for(self, obj: ObjectConfig) -> TrackedObjectParams:
        return obj.params if obj.params is not None else self.default_params


# ------------------------------------------------------------------ #
#   L O A D I N G
# ------------------------------------------------------------------ #
def _variance(raw: Any, what: str, default: float) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning("[Config] %s=%r is not a number; using %s", what, raw, default)
        return default
    if not math.isfinite(value) or value < 0.0:
        logger.warning("[Config] %s=%r must be finite and >= 0; using %s", what, raw, default)
        return default
    return value


def _flag(data: Dict[str, Any], what: str, default: bool) -> bool:
    raw = data.get(what, default)
    if not isinstance(raw, bool):
        logger.warning("[Config] %s=%r is not true/false; using %s", what, raw, default)
        return default
    return raw


def _parse_object(name: str, raw: Any, defaults: TrackedObjectParams) -> Optional[ObjectConfig]:
    if not isinstance(raw, dict):
        logger.warning("[Config] Object [ %s ] is not a mapping; skipping.", name)
        return None
    missing = [k for k in ("shape", "color", "ideal_radius") if k not in raw]
    if missing:
        logger.warning("[Config] Object [ %s ] is missing %s; skipping.", name, ", ".join(missing))
        return None
    try:
        AttributeKey.of(raw["shape"], raw["color"])
        radius = float(raw["ideal_radius"])
    except (TypeError, ValueError) as exc:
        logger.warning("[Config] Object [ %s ] is malformed (%s); skipping.", name, exc)
        return None
    if not math.isfinite(radius) or radius <= 0.0:
        logger.warning("[Config] Object [ %s ] has non-positive ideal_radius %r; skipping.", name, raw["ideal_radius"])
        return None

    params = None
    if "predict_variance" in raw or "initial_variance" in raw:
        params = TrackedObjectParams(
            predict_variance=_variance(
                raw.get("predict_variance", defaults.predict_variance),
                f"{name}.predict_variance", defaults.predict_variance,
            ),
            initial_variance=_variance(
                raw.get("initial_variance", defaults.initial_variance),
                f"{name}.initial_variance", defaults.initial_variance,
            ),
        )
    return ObjectConfig(
        name=name,
        shape=str(raw["shape"]),
        color=str(raw["color"]),
        ideal_radius=radius,
        params=params,
    )


def config_from_dict(data: Dict[str, Any]) -> TrackerConfig:
    """Build a ``TrackerConfig``; bad entries are warned about and dropped."""
    base = TrackerConfig()
    defaults = TrackedObjectParams(
        predict_variance=_variance(
            data.get("default_predict_variance", base.default_params.predict_variance),
            "default_predict_variance", base.default_params.predict_variance,
        ),
        initial_variance=_variance(
            data.get("default_initial_variance", base.default_params.initial_variance),
            "default_initial_variance", base.default_params.initial_variance,
        ),
    )

    raw_objects = data.get("objects", [])
    if isinstance(raw_objects, dict):
        named = list(raw_objects.items())
    elif isinstance(raw_objects, list):
        named = []
        for i, item in enumerate(raw_objects):
            name = item.get("name") if isinstance(item, dict) else None
            if not name:
                logger.warning("[Config] Object #%d has no name; skipping.", i)
                continue
            named.append((str(name), item))
    else:
        logger.warning("[Config] 'objects' must be a list or mapping; no objects loaded.")
        named = []

    objects = []
    seen = set()
    for name, raw in named:
        if name in seen:
            logger.warning("[Config] Object [ %s ] is defined more than once; keeping the first.", name)
            continue
        obj = _parse_object(name, raw, defaults)
        if obj is not None:
            objects.append(obj)
            seen.add(name)

    return TrackerConfig(
        immediate_tracking=_flag(data, "immediate_tracking", base.immediate_tracking),
        depth_method=str(data.get("depth_method", base.depth_method)),
        rectify_detections=_flag(data, "rectify_detections", base.rectify_detections),
        default_params=defaults,
        objects=objects,
    )


def load_config(path: str | Path) -> TrackerConfig:
    path = Path(path).expanduser()
    try:
        with path.open("r", encoding="utf-8") as fp:
            data = json.load(fp)
    except FileNotFoundError as exc:
        raise ConfigError(f"config file {path} not found") from exc
    except json.JSONDecodeError as exc:
        raise ConfigError(f"JSON error in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    cfg = config_from_dict(data)
    logger.info("[Config] Loaded %d object(s) from %s", len(cfg.objects), path)
    return cfg
