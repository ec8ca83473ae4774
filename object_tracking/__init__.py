# object_tracking/__init__.py
"""Attribute-keyed multi-object Kalman tracker – re-export high-level API."""
from .camera import CameraModel, CameraModelCache                # noqa: F401
from .common import (                                            # noqa: F401
    AttributeKey, CameraInfo, ConfigError, MatchedShape, MatchedShapeArray,
    ReprojectionError, TrackedObjectReport, TrackingError,
)
from .config import (                                            # noqa: F401
    ObjectConfig, TrackedObjectParams, TrackerConfig,
    config_from_dict, load_config,
)
from .kalman import LinearKalmanFilter                           # noqa: F401
from .processor import ObjectTrackerProcessor, build_tracker     # noqa: F401
from .reconfigure import ParameterUpdateChannel                  # noqa: F401
from .registry import NoiseParams, TrackerEntry, TrackerRegistry  # noqa: F401
from .reprojection import (                                      # noqa: F401
    DepthStrategy, MonocularDepth, make_depth_strategy, reproject_object_to_3d,
)
