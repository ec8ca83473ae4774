import logging
import threading

import numpy as np
import pytest

from object_tracking.config import ObjectConfig, TrackedObjectParams
from object_tracking.helpers import diag4
from object_tracking.reconfigure import ParameterUpdateChannel
from object_tracking.registry import TrackerRegistry


@pytest.fixture
def registry():
    reg = TrackerRegistry()
    reg.register(
        ObjectConfig(name="gate", shape="gate", color="red", ideal_radius=0.5),
        TrackedObjectParams(predict_variance=0.01, initial_variance=1.0),
        tracked=True,
    )
    return reg


@pytest.fixture
def channel(registry):
    return ParameterUpdateChannel(registry, registry.name_table())


def test_update_params_swaps_noise_but_not_state(registry, channel):
    entry = registry.by_name("gate")
    entry.predict()
    entry.filter.update(np.array([1.0, 2.0, 3.0, 0.1]), diag4(0.1))
    mean, cov = entry.filter.mean, entry.filter.covariance

    assert channel.update_params("gate", 0.5, 4.0)

    assert np.allclose(entry.filter.mean, mean)
    assert np.allclose(entry.filter.covariance, cov)
    assert np.allclose(entry.process_noise_cov, diag4(0.5))
    assert np.allclose(entry.initial_cov, diag4(4.0))

    entry.predict()
    assert np.allclose(entry.filter.covariance, cov + diag4(0.5))


def test_new_initial_cov_only_used_on_reset(registry, channel):
    channel.update_params("gate", 0.01, 9.0)
    entry = registry.by_name("gate")
    assert np.allclose(entry.filter.covariance, diag4(1.0))
    registry.reset(entry.key)
    assert np.allclose(entry.filter.covariance, diag4(9.0))


def test_unknown_name_fails_without_raising(channel, caplog):
    with caplog.at_level(logging.WARNING):
        assert not channel.update_params("gate/red", 0.1, 0.1)
    assert "gate/red" in caplog.text


@pytest.mark.parametrize("cvar, ivar", [(-0.1, 1.0), (0.1, -1.0), (float("nan"), 1.0), ("abc", 1.0)])
def test_invalid_variances_are_rejected(registry, channel, cvar, ivar):
    assert not channel.update_params("gate", cvar, ivar)
    assert np.allclose(registry.by_name("gate").process_noise_cov, diag4(0.01))


def test_apply_uses_params_blob(registry, channel):
    assert channel.apply("gate", TrackedObjectParams(predict_variance=0.3, initial_variance=0.7))
    assert np.allclose(registry.by_name("gate").process_noise_cov, diag4(0.3))


def test_concurrent_updates_never_tear_process_noise(registry, channel):
    entry = registry.by_name("gate")
    stop = threading.Event()

    def flip():
        i = 0
        while not stop.is_set():
            channel.update_params("gate", 1.0 if i % 2 else 2.0, 1.0)
            i += 1

    worker = threading.Thread(target=flip)
    worker.start()
    try:
        for _ in range(500):
            before = entry.filter.covariance
            entry.predict()
            step = np.diag(entry.filter.covariance - before)
            assert np.allclose(step, step[0])
    finally:
        stop.set()
        worker.join()
