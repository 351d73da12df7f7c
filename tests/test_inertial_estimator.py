import math

import pytest

from fusion_engine.configs.schema import Inertial
from fusion_engine.handlers.models import MotionSample, OrientationSample, PositionSource
from fusion_engine.processing.inertial_estimator import InertialEstimator
from fusion_engine.utils.geometry import haversine_m, project
from fusion_engine.utils.track_generator import generate_steps


@pytest.fixture
def estimator():
    return InertialEstimator(Inertial())


def spike(timestamp_ms, magnitude=15.0):
    return MotionSample(ax=0.0, ay=0.0, az=magnitude, timestamp_ms=timestamp_ms)


def test_first_motion_sample_passes_unfiltered(estimator):
    estimator.ingest_motion(MotionSample(1.0, 2.0, 3.0, 0))
    estimator.ingest_motion(MotionSample(6.0, 2.0, 3.0, 100))
    assert estimator._motion[0].ax == 1.0
    assert estimator._motion[1].ax == pytest.approx(0.8 * 1.0 + 0.2 * 6.0)


def test_step_debounce_250ms_counts_once(estimator):
    assert estimator.detect_step(spike(1000)) is not None
    assert estimator.detect_step(spike(1250)) is None
    assert estimator.step_count == 1


def test_step_debounce_350ms_counts_twice(estimator):
    assert estimator.detect_step(spike(1000)) is not None
    step = estimator.detect_step(spike(1350))
    assert step is not None
    assert step.step_index == 2
    assert estimator.step_count == 2


def test_step_interval_boundary_is_inclusive(estimator):
    estimator.detect_step(spike(0))
    assert estimator.detect_step(spike(300)) is not None


def test_magnitude_must_exceed_threshold(estimator):
    assert estimator.detect_step(spike(0, magnitude=12.0)) is None
    assert estimator.detect_step(MotionSample(7.0, 7.0, 7.0, 100)) is not None


def test_ingest_motion_publishes_steps(estimator):
    steps = []
    estimator.step_events.add_listener(steps.append)
    for sample in generate_steps(0, 4, step_interval_ms=400):
        estimator.ingest_motion(sample)
    assert [s.step_index for s in steps] == [1, 2, 3, 4]


def test_non_finite_motion_is_rejected(estimator):
    assert estimator.ingest_motion(MotionSample(math.nan, 0.0, 20.0, 0)) is None
    assert estimator.rejected_samples == 1
    assert estimator.history_sizes()["motion"] == 0


def test_histories_are_bounded(estimator):
    for i in range(200):
        estimator.ingest_motion(spike(i * 400))
        estimator.ingest_orientation(OrientationSample(10.0, 0.0, 0.0, i * 400))
    sizes = estimator.history_sizes()
    assert sizes == {"motion": 50, "orientation": 50, "step": 100}
    assert estimator.step_count == 200


@pytest.mark.parametrize("raw, expected", [(-90.0, 270.0), (720.0, 0.0), (359.5, 359.5), (365.0, 5.0)])
def test_heading_is_normalized(estimator, raw, expected):
    estimator.ingest_orientation(OrientationSample(raw, 0.0, 0.0, 0))
    assert estimator.heading == pytest.approx(expected)


def test_heading_is_not_smoothed_but_pitch_is(estimator):
    estimator.ingest_orientation(OrientationSample(10.0, 10.0, 0.0, 0))
    estimator.ingest_orientation(OrientationSample(200.0, 20.0, 0.0, 100))
    assert estimator.heading == 200.0
    assert estimator.pitch == pytest.approx(12.0)


def test_no_dead_reckoning_without_gps_anchor(estimator):
    step = estimator.detect_step(spike(20000))
    assert estimator.estimate_position_from_step(step) is None


def test_no_dead_reckoning_within_gps_gap(estimator):
    estimator.update_gps_position(37.5, 127.0, 5.0, 0)
    step = estimator.detect_step(spike(10000))
    assert estimator.estimate_position_from_step(step) is None
    assert estimator.position == (37.5, 127.0)


def test_dead_reckoning_projects_step_along_heading(estimator):
    estimator.update_gps_position(37.5, 127.0, 5.0, 0)
    estimator.ingest_orientation(OrientationSample(90.0, 0.0, 0.0, 10500))
    step = estimator.detect_step(spike(11000))
    position = estimator.estimate_position_from_step(step)

    assert position is not None
    assert position.source == PositionSource.INERTIAL
    assert position.confidence == pytest.approx(0.3)
    assert position.lat == pytest.approx(37.5, abs=1e-7)
    assert position.lng > 127.0
    assert haversine_m(37.5, 127.0, position.lat, position.lng) == pytest.approx(0.75, rel=1e-2)
    assert position.accuracy_estimate > 5.0


def test_dead_reckoning_accumulates(estimator):
    estimator.update_gps_position(37.5, 127.0, 5.0, 0)
    positions = []
    for t in (11000, 11400, 11800):
        positions.append(estimator.estimate_position_from_step(estimator.detect_step(spike(t))))
    distance = haversine_m(37.5, 127.0, positions[-1].lat, positions[-1].lng)
    assert distance == pytest.approx(2.25, rel=1e-2)
    assert positions[-1].accuracy_estimate > positions[0].accuracy_estimate


def _walk_ten_steps(estimator):
    for i in range(10):
        estimator.detect_step(spike(1000 + i * 400))


def test_calibration_blends_implied_step_length(estimator):
    estimator.update_gps_position(37.5, 127.0, 5.0, 0)
    _walk_ten_steps(estimator)
    lat, lng = project(37.5, 127.0, 8.0, 0.0)
    implied = haversine_m(37.5, 127.0, lat, lng) / 10

    assert estimator.calibrate_step_length(lat, lng, 5.0)
    assert estimator.average_step_length_m == pytest.approx(0.8 * 0.75 + 0.2 * implied)
    assert estimator.steps_since_calibration == 0


@pytest.mark.parametrize("meters", [100.0, 2.0])
def test_calibration_rejects_out_of_range_step_length(estimator, meters):
    estimator.update_gps_position(37.5, 127.0, 5.0, 0)
    _walk_ten_steps(estimator)
    lat, lng = project(37.5, 127.0, meters, 0.0)

    assert not estimator.calibrate_step_length(lat, lng, 5.0)
    assert estimator.average_step_length_m == 0.75


def test_calibration_requires_good_accuracy_and_enough_steps(estimator):
    estimator.update_gps_position(37.5, 127.0, 5.0, 0)
    for i in range(9):
        estimator.detect_step(spike(1000 + i * 400))
    lat, lng = project(37.5, 127.0, 7.0, 0.0)
    assert not estimator.calibrate_step_length(lat, lng, 5.0)

    estimator.detect_step(spike(5000))
    assert not estimator.calibrate_step_length(lat, lng, 20.0)
    assert estimator.average_step_length_m == 0.75
    assert estimator.calibrate_step_length(lat, lng, 19.9)


def test_update_gps_position_triggers_calibration(estimator):
    estimator.update_gps_position(37.5, 127.0, 5.0, 0)
    _walk_ten_steps(estimator)
    lat, lng = project(37.5, 127.0, 9.0, 0.0)
    assert estimator.update_gps_position(lat, lng, 5.0, 6000)
    assert estimator.average_step_length_m > 0.75


def test_velocity_integrates_with_decay_while_gps_is_stale(estimator):
    estimator.ingest_motion(MotionSample(1.0, 0.0, 9.8, 0))
    assert estimator.velocity[0] == pytest.approx(1.0 * 0.1 * 0.95)
    estimator.ingest_motion(MotionSample(1.0, 0.0, 9.8, 100))
    assert estimator.velocity[0] == pytest.approx((0.095 + 0.1) * 0.95)


def test_velocity_not_integrated_with_fresh_gps(estimator):
    estimator.update_gps_position(37.5, 127.0, 5.0, 0)
    estimator.ingest_motion(MotionSample(1.0, 0.0, 9.8, 1000))
    assert estimator.velocity[0] == 0.0


def test_sensor_bias_calibration(estimator):
    bias = estimator.calibrate_sensor_bias([
        MotionSample(0.1, -0.1, 9.7, 0),
        MotionSample(0.3, 0.1, 9.9, 100),
    ])
    assert bias == pytest.approx((0.2, 0.0, 9.8))
    assert estimator.is_calibrated

    estimator.ingest_motion(MotionSample(0.2, 0.0, 9.8, 200))
    assert estimator.velocity[0] == pytest.approx(0.0, abs=1e-12)


def test_status_and_reset(estimator):
    estimator.update_gps_position(37.5, 127.0, 5.0, 0)
    _walk_ten_steps(estimator)
    status = estimator.status()
    assert status["step_count"] == 10
    assert status["estimated_distance_m"] == pytest.approx(7.5)

    estimator.reset()
    assert estimator.step_count == 0
    assert estimator.position is None
    assert estimator.history_sizes() == {"motion": 0, "orientation": 0, "step": 0}
