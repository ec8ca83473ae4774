# live_tuning.py
"""Hot-reload per-object noise parameters from a JSON file.

The file maps object names to their tunables::

    {
      "gate": {"predict_variance": 0.02, "initial_variance": 2.0},
      "buoy": {"predict_variance": 0.05}
    }

Missing fields keep the value last applied for that object.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Tuple

from object_tracking.config import TrackedObjectParams
from object_tracking.reconfigure import ParameterUpdateChannel

logger = logging.getLogger(__name__)


class RuntimeParamWatcher:
    """Watch a JSON file and hot-reload its contents when it changes."""

    def __init__(self, path: str | Path = "runtime_params.json") -> None:
        self.path = Path(path).expanduser().resolve()
        self._stamp: Tuple[float, int] = (0.0, -1)  # (mtime, size)
        self.params: Dict[str, Any] = {}
        self._applied: Dict[str, TrackedObjectParams] = {}

        logger.info("[Runtime] Watching: %s", self.path)
        self._load(initial=True)

    # ------------------------------------------------------------------
    #   Internal helpers
    # ------------------------------------------------------------------
    def _load(self, *, initial: bool = False) -> None:
        try:
            with self.path.open("r", encoding="utf-8") as fp:
                params = json.load(fp)
            stat = self.path.stat()
            self._stamp = (stat.st_mtime, stat.st_size)
        except FileNotFoundError:
            if initial:
                logger.info(
                    "[Runtime] %s not found – live-tuning disabled (create the file to enable).",
                    self.path,
                )
            else:
                logger.warning("[Runtime] %s was deleted – keeping old params.", self.path)
            return
        except json.JSONDecodeError as exc:
            logger.warning("[Runtime] JSON error in %s: %s", self.path, exc)
            return
        except OSError as exc:
            logger.warning("[Runtime] Failed to reload %s: %s", self.path, exc)
            return

        if not isinstance(params, dict):
            logger.warning("[Runtime] %s must contain a JSON object; ignoring.", self.path)
            return
        self.params = params
        if not initial:
            logger.info("[Runtime] Reloaded parameters from %s", self.path)

    # ------------------------------------------------------------------
    #   Public API
    # ------------------------------------------------------------------
    def maybe_reload(self) -> bool:
        """
        If the watched file changed since the last call reload it and
        return **True**, else return **False**.
        """
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return False

        mtime, fsize = self._stamp
        # Some filesystems only update timestamps in 1- or 2-second ticks,
        # so we treat any change >=1 s *or* size change as “modified”.
        if stat.st_size != fsize or stat.st_mtime - mtime >= 1.0:
            self._load()
            return True
        return False

    def apply_to(self, channel: ParameterUpdateChannel, defaults: Dict[str, TrackedObjectParams]) -> int:
        """
        Push every object whose tunables differ from what was last applied.
        ``defaults`` gives the starting values per name. Returns the number
        of objects updated.
        """
        updated = 0
        for name, raw in self.params.items():
            if not isinstance(raw, dict):
                logger.warning("[Runtime] Entry for [ %s ] is not a mapping; ignoring.", name)
                continue
            base = self._applied.get(name) or defaults.get(name) or TrackedObjectParams()
            wanted = TrackedObjectParams(
                predict_variance=raw.get("predict_variance", base.predict_variance),
                initial_variance=raw.get("initial_variance", base.initial_variance),
            )
            if name in self._applied and wanted == self._applied[name]:
                continue
            if channel.apply(name, wanted):
                self._applied[name] = wanted
                updated += 1
        return updated
