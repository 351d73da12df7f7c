import numpy as np
import pytest

from fusion_engine.configs.schema import Filter
from fusion_engine.handlers.models import ProfileParameters, RawPositionSample
from fusion_engine.processing.position_filter import PositionFilter

RURAL = ProfileParameters(process_noise=0.02, measurement_noise_base=1.0,
                          outlier_threshold_m=100, min_acceptable_accuracy_m=50)
URBAN = ProfileParameters(process_noise=0.005, measurement_noise_base=2.0,
                          outlier_threshold_m=50, min_acceptable_accuracy_m=30)


def _start(lat=37.5, lng=127.0, accuracy=10.0, params=RURAL, config=None) -> PositionFilter:
    f = PositionFilter(params, config)
    f.initialize(RawPositionSample(lat, lng, accuracy, 0))
    return f


def test_initialize_sets_position_and_zero_velocity():
    f = _start()
    assert f.is_initialized
    assert f.current_estimate() == (37.5, 127.0, 0.0, 0.0)
    assert np.array_equal(f.covariance(), np.eye(4) * 1000.0)


def test_predict_before_initialize_raises():
    f = PositionFilter(RURAL)
    with pytest.raises(RuntimeError):
        f.predict(1.0)


def test_predict_keeps_stationary_position_and_grows_covariance():
    f = _start()
    before = f.covariance()
    f.predict(1.0)
    lat, lng, _, _ = f.current_estimate()
    assert (lat, lng) == (37.5, 127.0)
    assert f.covariance()[0, 0] > before[0, 0]


def test_measurement_noise_follows_accuracy():
    f = _start()
    assert np.allclose(f.measurement_noise(8.0), np.diag([0.8, 0.8]))
    assert np.allclose(f.measurement_noise(0.0), np.diag([1.0, 1.0]))


def test_process_noise_velocity_terms_are_ten_times_position():
    f = _start()
    f.predict(0.0)
    cov = f.covariance()
    assert cov[0, 0] == pytest.approx(1000.0 + 0.02)
    assert cov[2, 2] == pytest.approx(1000.0 + 0.2)


def test_stationary_noisy_fixes_converge():
    rng = np.random.default_rng(42)
    truth = (37.5, 127.0)
    f = _start(*truth, accuracy=5.0)
    variances = []
    for _ in range(30):
        f.predict(1.0)
        noisy = (truth[0] + rng.normal(0, 2e-5), truth[1] + rng.normal(0, 2e-5))
        f.update(noisy, 5.0)
        variances.append(f.covariance()[0, 0])

    for earlier, later in zip(variances, variances[1:]):
        assert later <= earlier + 1e-12

    lat, lng, _, _ = f.current_estimate()
    assert abs(lat - truth[0]) < 1e-4
    assert abs(lng - truth[1]) < 1e-4


def test_covariance_stays_symmetric():
    f = _start()
    for i in range(5):
        f.predict(1.0)
        f.update((37.5 + i * 1e-5, 127.0 - i * 1e-5), 12.0)
    cov = f.covariance()
    assert np.allclose(cov, cov.T)
    assert np.all(np.linalg.eigvalsh(cov) >= -1e-6)


def test_velocity_converges_for_constant_northward_motion():
    f = _start(accuracy=10.0)
    for i in range(1, 11):
        f.predict(1.0)
        f.update((37.5 + 0.0001 * i, 127.0), 8.0)
    _, _, v_lat, v_lng = f.current_estimate()
    assert v_lat == pytest.approx(0.0001, abs=1e-5)
    assert v_lng == pytest.approx(0.0, abs=1e-9)


def test_profile_change_keeps_state():
    f = _start()
    f.predict(1.0)
    f.update((37.5001, 127.0), 8.0)
    estimate = f.current_estimate()
    covariance = f.covariance()

    f.set_profile(URBAN)

    assert f.current_estimate() == estimate
    assert np.array_equal(f.covariance(), covariance)
    assert f.parameters == URBAN


def test_degenerate_innovation_uses_identity_and_is_counted():
    f = _start(config=Filter(singular_det_epsilon=1e12))
    f.predict(1.0)
    f.update((37.5001, 127.0001), 8.0)
    assert f.degeneracy_count == 1
    assert all(np.isfinite(v) for v in f.current_estimate())
    assert np.all(np.isfinite(f.covariance()))


def test_time_step_uses_default_then_timestamps():
    f = PositionFilter(RURAL)
    assert f.time_step(5000, default_seconds=1.0) == 1.0
    assert f.time_step(7500) == pytest.approx(2.5)
    assert f.time_step(7000) == 0.0


def test_reset_forgets_state():
    f = _start()
    f.reset()
    assert not f.is_initialized
