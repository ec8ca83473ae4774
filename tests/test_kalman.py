import numpy as np
import pytest

from object_tracking.helpers import diag4
from object_tracking.kalman import LinearKalmanFilter


def test_construction_starts_at_origin_with_initial_cov():
    kf = LinearKalmanFilter(diag4(2.0))
    assert np.allclose(kf.mean, np.zeros(4))
    assert np.allclose(kf.covariance, diag4(2.0))


def test_predict_keeps_mean_and_grows_covariance():
    kf = LinearKalmanFilter(diag4(1.0))
    kf.update(np.array([1.0, 2.0, 3.0, 0.5]), diag4(1.0))
    mean_before = kf.mean

    traces = [np.trace(kf.covariance)]
    for _ in range(10):
        kf.predict(None, diag4(0.05))
        traces.append(np.trace(kf.covariance))

    assert np.allclose(kf.mean, mean_before)
    assert all(b >= a for a, b in zip(traces, traces[1:]))
    assert traces[-1] == pytest.approx(traces[0] + 10 * 4 * 0.05)


def test_zero_process_noise_leaves_covariance_constant():
    kf = LinearKalmanFilter(diag4(1.0))
    for _ in range(5):
        kf.predict(np.zeros(4), diag4(0.0))
    assert np.allclose(kf.covariance, diag4(1.0))


def test_tiny_measurement_noise_pulls_mean_to_measurement():
    kf = LinearKalmanFilter(diag4(1.0))
    z = np.array([1.0, -2.0, 5.0, 0.3])
    assert kf.update(z, np.zeros((4, 4)))
    assert kf.mean == pytest.approx(z, rel=1e-6)


def test_huge_measurement_noise_leaves_mean_unchanged():
    kf = LinearKalmanFilter(diag4(1.0))
    assert kf.update(np.array([1.0, -2.0, 5.0, 0.3]), diag4(1e12))
    assert kf.mean == pytest.approx(np.zeros(4), abs=1e-9)


def test_update_shrinks_covariance():
    kf = LinearKalmanFilter(diag4(1.0))
    kf.predict(None, diag4(0.01))
    predicted = np.trace(kf.covariance)
    kf.update(np.ones(4), diag4(0.1))
    assert np.trace(kf.covariance) < predicted
    assert kf.covariance[0, 0] == pytest.approx(1.01 * 0.1 / 1.11)


def test_singular_innovation_skips_update():
    kf = LinearKalmanFilter(diag4(0.0))
    assert not kf.update(np.ones(4), np.ones((4, 4)))
    assert np.allclose(kf.mean, np.zeros(4))
    assert np.allclose(kf.covariance, np.zeros((4, 4)))


def test_non_finite_measurement_covariance_skips_update():
    kf = LinearKalmanFilter(diag4(1.0))
    R = diag4(1.0)
    R[0, 0] = np.inf
    assert not kf.update(np.ones(4), R)
    assert np.allclose(kf.covariance, diag4(1.0))


def test_failed_inversion_restores_prior(monkeypatch):
    kf = LinearKalmanFilter(diag4(1.0))
    kf.predict(None, diag4(0.5))

    def boom(*args, **kwargs):
        raise np.linalg.LinAlgError("Singular matrix")

    monkeypatch.setattr(kf.kf, "update", boom)
    assert not kf.update(np.ones(4), diag4(0.1))
    assert np.allclose(kf.mean, np.zeros(4))
    assert np.allclose(kf.covariance, diag4(1.5))


def test_reset_restores_defaults():
    kf = LinearKalmanFilter(diag4(1.0))
    kf.update(np.ones(4), diag4(0.1))
    kf.reset(diag4(3.0))
    assert np.allclose(kf.mean, np.zeros(4))
    assert np.allclose(kf.covariance, diag4(3.0))
