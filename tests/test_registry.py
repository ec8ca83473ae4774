import logging

import numpy as np

from object_tracking.common import AttributeKey
from object_tracking.config import ObjectConfig, TrackedObjectParams
from object_tracking.helpers import diag4
from object_tracking.registry import TrackerRegistry

GATE = ObjectConfig(name="gate", shape="gate", color="red", ideal_radius=0.5)
PARAMS = TrackedObjectParams(predict_variance=0.1, initial_variance=2.0)


def _is_nonneg_diagonal(mat):
    off = mat - np.diag(np.diag(mat))
    return mat.shape == (4, 4) and np.all(off == 0.0) and np.all(np.diag(mat) >= 0.0)


def test_register_builds_entry_from_params():
    registry = TrackerRegistry()
    entry = registry.register(GATE, PARAMS, tracked=False)

    assert registry.get(AttributeKey("gate", "red")) is entry
    assert registry.by_name("gate") is entry
    assert not entry.tracked
    assert np.allclose(entry.process_noise_cov, diag4(0.1))
    assert np.allclose(entry.initial_cov, diag4(2.0))
    assert np.allclose(entry.filter.covariance, diag4(2.0))
    assert np.allclose(entry.filter.mean, np.zeros(4))
    assert _is_nonneg_diagonal(entry.process_noise_cov)
    assert _is_nonneg_diagonal(entry.initial_cov)


def test_alias_names_share_key_last_registration_wins(caplog):
    registry = TrackerRegistry()
    first = registry.register(GATE, PARAMS, tracked=True)
    alias = ObjectConfig(name="start_gate", shape="gate", color="red", ideal_radius=0.7)
    with caplog.at_level(logging.WARNING):
        second = registry.register(alias, PARAMS, tracked=True)

    assert len(registry) == 1
    assert registry.get(AttributeKey("gate", "red")) is second
    assert second is not first
    assert registry.by_name("gate") is second
    assert registry.by_name("start_gate") is second
    assert registry.names() == ["gate", "start_gate"]
    assert "aliases" in caplog.text


def test_tracked_entries_and_set_tracked():
    registry = TrackerRegistry()
    registry.register(GATE, PARAMS, tracked=False)
    buoy = ObjectConfig(name="buoy", shape="buoy", color="green", ideal_radius=0.2)
    registry.register(buoy, PARAMS, tracked=True)

    assert [e.name for e in registry.tracked_entries()] == ["buoy"]
    assert registry.set_tracked(AttributeKey("gate", "red"), True)
    assert {e.name for e in registry.tracked_entries()} == {"gate", "buoy"}
    assert not registry.set_tracked(AttributeKey("gate", "blue"), True)


def test_reset_restores_mean_and_covariance():
    registry = TrackerRegistry()
    entry = registry.register(GATE, PARAMS, tracked=True)
    entry.predict()
    entry.filter.update(np.ones(4), diag4(0.1))
    entry.updates = 3

    assert registry.reset(entry.key)
    assert np.allclose(entry.filter.mean, np.zeros(4))
    assert np.allclose(entry.filter.covariance, diag4(2.0))
    assert entry.updates == 0
    assert not registry.reset(AttributeKey("nope", "red"))


def test_report_snapshot_is_detached_from_filter():
    registry = TrackerRegistry()
    entry = registry.register(GATE, PARAMS, tracked=True)
    rpt = entry.report()
    entry.predict()
    assert np.allclose(rpt.covariance, diag4(2.0))
    assert rpt.key == AttributeKey("gate", "red")
    assert rpt.stamp is None
