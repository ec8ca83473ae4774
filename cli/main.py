# main.py
"""
Entry-point for the object tracker: offline replay of recorded detections.

Usage
-----
::

    object-tracker --config objects.json --camera-info camera_info.json \\
                   --batches matched_shapes.jsonl

``matched_shapes.jsonl`` holds one detection batch per line::

    {"frame_id": "cam0", "stamp": 12.5,
     "shapes": [{"shape": "gate", "color": "red", "x": 320, "y": 240,
                 "scale": 50, "theta": 0.0, "covariance": [16 floats]}]}

Live-tuning
-----------
Pass ``--runtime-params params.json`` and edit that file while the replay is
running; per-object ``predict_variance`` / ``initial_variance`` take effect on
the next batch.  See ``object_tracking/live_tuning.py`` for details.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Iterator, Optional, Sequence

from object_tracking.common import (
    CameraInfo,
    ConfigError,
    MatchedShapeArray,
    shapes_from_dicts,
)
from object_tracking.config import load_config
from object_tracking.live_tuning import RuntimeParamWatcher
from object_tracking.logger import setup_logger
from object_tracking.processor import ObjectTrackerProcessor, build_tracker

logger = logging.getLogger("object_tracking.cli")


# ────────────────────────────────────────────────────────────────────────────
#   I N P U T   H E L P E R S
# ────────────────────────────────────────────────────────────────────────────
def load_camera_info(path: str | Path) -> CameraInfo:
    path = Path(path).expanduser()
    try:
        with path.open("r", encoding="utf-8") as fp:
            data = json.load(fp)
        return CameraInfo(
            frame_id=str(data["frame_id"]),
            width=int(data.get("width", 0)),
            height=int(data.get("height", 0)),
            K=tuple(float(v) for v in data["K"]),
            D=tuple(float(v) for v in data.get("D", ())),
            P=tuple(float(v) for v in data["P"]) if data.get("P") else None,
        )
    except FileNotFoundError as exc:
        raise ConfigError(f"camera info file {path} not found") from exc
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
        raise ConfigError(f"bad camera info in {path}: {exc}") from exc


def iter_batches(path: str | Path) -> Iterator[MatchedShapeArray]:
    """Yield batches from a JSONL file; malformed lines are skipped."""
    path = Path(path).expanduser()
    try:
        fp = path.open("r", encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigError(f"batch file {path} not found") from exc
    with fp:
        for lineno, line in enumerate(fp, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
                yield MatchedShapeArray(
                    frame_id=str(data["frame_id"]),
                    shapes=shapes_from_dicts(data.get("shapes", [])),
                    stamp=float(data.get("stamp", 0.0)),
                )
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
                logger.warning("[Replay] Skipping line %d of %s: %s", lineno, path, exc)


def log_reports(processor: ObjectTrackerProcessor) -> None:
    for rpt in processor.reports():
        if not rpt.tracked:
            continue
        x, y, z, theta = rpt.mean
        logger.info(
            "[Replay] %-12s %-14s pos=(%.3f, %.3f, %.3f) theta=%.3f trace(P)=%.4f updates=%d",
            rpt.name, str(rpt.key), x, y, z, theta, float(rpt.covariance.trace()), rpt.updates,
        )


# ────────────────────────────────────────────────────────────────────────────
#   R U N
# ────────────────────────────────────────────────────────────────────────────
def run(
    config_path: str | Path,
    camera_info_path: str | Path,
    batches_path: str | Path,
    runtime_params_path: Optional[str | Path] = None,
    period_s: float = 0.0,
) -> ObjectTrackerProcessor:
    cfg = load_config(config_path)
    processor = build_tracker(cfg)
    processor.on_camera_info(load_camera_info(camera_info_path))

    watcher = RuntimeParamWatcher(runtime_params_path) if runtime_params_path else None
    if watcher is not None:
        watcher.apply_to(processor.channel, processor.object_params)

    for batch in iter_batches(batches_path):
        if watcher is not None and watcher.maybe_reload():
            watcher.apply_to(processor.channel, processor.object_params)
        processor.on_matched_shapes(batch)
        log_reports(processor)
        if period_s > 0:
            time.sleep(period_s)

    logger.info(
        "[Replay] Done. batches=%d dropped=%d updates=%d",
        processor.batches_processed, processor.batches_dropped, processor.updates_applied,
    )
    return processor


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Replay matched shapes through the object tracker.")
    parser.add_argument("--config", required=True, help="tracker configuration (JSON)")
    parser.add_argument("--camera-info", required=True, help="camera calibration (JSON)")
    parser.add_argument("--batches", required=True, help="matched-shape batches (JSON lines)")
    parser.add_argument("--runtime-params", default=None, help="live-tuning file (JSON)")
    parser.add_argument("--period", type=float, default=0.0, help="seconds to wait between batches")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument("--log-dir", default=None, help="also write a log file here")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logger(
        "object_tracking",
        level=args.log_level,
        log_dir=args.log_dir or "logs",
        save_to_file=args.log_dir is not None,
    )
    try:
        run(args.config, args.camera_info, args.batches, args.runtime_params, args.period)
    except ConfigError as exc:
        logger.error("[Replay] %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("[Replay] Stopped by user.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
