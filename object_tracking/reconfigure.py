# reconfigure.py
"""Named, live reconfiguration of per-object noise parameters."""
from __future__ import annotations

import logging
import math
from typing import Dict, Mapping

from object_tracking.common import AttributeKey
from object_tracking.config import TrackedObjectParams
from object_tracking.registry import NoiseParams, TrackerRegistry

logger = logging.getLogger(__name__)


class ParameterUpdateChannel:
    """
    Resolves an object name to its attribute key through an explicit table
    and swaps that entry's noise pair. Mean and covariance are left alone;
    only later predict/update calls see the new values.
    """

    def __init__(self, registry: TrackerRegistry, name_table: Mapping[str, AttributeKey]):
        self.registry = registry
        self._name_table: Dict[str, AttributeKey] = dict(name_table)

    def update_params(self, name: str, predict_variance: float, initial_variance: float) -> bool:
        key = self._name_table.get(name)
        entry = self.registry.get(key) if key is not None else None
        if entry is None:
            logger.warning("[Reconfigure] No tracker registered for object [ %s ].", name)
            return False

        try:
            cvar = float(predict_variance)
            ivar = float(initial_variance)
        except (TypeError, ValueError):
            logger.warning(
                "[Reconfigure] Non-numeric variances for [ %s ]: %r, %r",
                name, predict_variance, initial_variance,
            )
            return False
        if not (math.isfinite(cvar) and math.isfinite(ivar)) or cvar < 0.0 or ivar < 0.0:
            logger.warning(
                "[Reconfigure] Variances for [ %s ] must be finite and >= 0, got %r, %r",
                name, predict_variance, initial_variance,
            )
            return False

        entry.set_noise(NoiseParams.from_params(TrackedObjectParams(cvar, ivar)))
        logger.info("[Reconfigure] Updated tracker params [ %s ].", name)
        return True

    def apply(self, name: str, params: TrackedObjectParams) -> bool:
        return self.update_params(name, params.predict_variance, params.initial_variance)
