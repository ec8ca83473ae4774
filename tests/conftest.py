import pytest

from object_tracking.common import CameraInfo
from object_tracking.config import ObjectConfig, TrackedObjectParams, TrackerConfig
from object_tracking.processor import build_tracker

FX = 500.0
K_CAM0 = (FX, 0.0, 320.0, 0.0, FX, 240.0, 0.0, 0.0, 1.0)


@pytest.fixture
def camera_info():
    return CameraInfo(frame_id="cam0", width=640, height=480, K=K_CAM0)


@pytest.fixture
def tracker_config():
    return TrackerConfig(
        immediate_tracking=True,
        depth_method="monocular",
        default_params=TrackedObjectParams(predict_variance=0.01, initial_variance=1.0),
        objects=[
            ObjectConfig(name="gate", shape="gate", color="red", ideal_radius=0.5),
            ObjectConfig(name="buoy", shape="buoy", color="green", ideal_radius=0.2),
        ],
    )


@pytest.fixture
def processor(tracker_config, camera_info):
    proc = build_tracker(tracker_config)
    assert proc.on_camera_info(camera_info)
    return proc
