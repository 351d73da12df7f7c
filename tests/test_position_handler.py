import pytest

from fusion_engine.configs.schema import Fusion
from fusion_engine.handlers.models import ProfileParameters, ValidationResult
from fusion_engine.handlers.position_handler import (GateDecision, PositionDataHandler,
                                                     SampleValidator)

from conftest import meters_north, sample

RURAL = ProfileParameters(process_noise=0.02, measurement_noise_base=1.0,
                          outlier_threshold_m=100.0, min_acceptable_accuracy_m=50.0)
REFERENCE = (37.5, 127.0)


@pytest.fixture
def handler():
    return PositionDataHandler(Fusion())


@pytest.mark.parametrize("raw, expected", [
    (sample(37.5, 127.0, 5.0, 0), ValidationResult.VALID),
    (sample(90.0, 180.0, 0.0, 0), ValidationResult.VALID),
    (sample(90.5, 127.0, 5.0, 0), ValidationResult.LATITUDE_OUT_OF_RANGE),
    (sample(37.5, 180.5, 5.0, 0), ValidationResult.LONGITUDE_OUT_OF_RANGE),
    (sample(37.5, 127.0, -1.0, 0), ValidationResult.INVALID_ACCURACY),
    (sample(37.5, 127.0, 5.0, -1), ValidationResult.INVALID_TIMESTAMP),
    (sample(float("nan"), 127.0, 5.0, 0), ValidationResult.NON_FINITE),
    (sample(37.5, float("-inf"), 5.0, 0), ValidationResult.NON_FINITE),
])
def test_validator(raw, expected):
    result, reason = SampleValidator().validate(raw)
    assert result == expected
    assert reason


def test_validation_statistics(handler):
    handler.validate(sample(37.5, 127.0, 5.0, 0))
    handler.validate(sample(95.0, 127.0, 5.0, 0))
    handler.validate(sample(96.0, 127.0, 5.0, 0))

    stats = handler.get_processing_stats()
    assert stats["total_processed"] == 3
    assert stats["valid_count"] == 1
    assert stats["invalid_count"] == 2
    assert stats["validation_errors"] == {"latitude_out_of_range": 2}

    handler.reset_stats()
    assert handler.get_processing_stats()["total_processed"] == 0


def test_accuracy_threshold_is_inclusive(handler):
    decision, _ = handler.evaluate(sample(37.5, 127.0, 50.0, 0), RURAL, REFERENCE)
    assert decision == GateDecision.ACCEPT
    decision, distance = handler.evaluate(sample(37.5, 127.0, 50.01, 0), RURAL, REFERENCE)
    assert decision == GateDecision.LOW_ACCURACY
    assert distance is None


def test_first_sample_has_no_reference(handler):
    decision, distance = handler.evaluate(sample(10.0, 10.0, 5.0, 0), RURAL, None)
    assert decision == GateDecision.ACCEPT
    assert distance is None


def test_outlier_boundary(handler):
    inside = meters_north(REFERENCE[0], 99.9)
    outside = meters_north(REFERENCE[0], 100.1)

    decision, distance = handler.evaluate(sample(inside, 127.0, 5.0, 0), RURAL, REFERENCE)
    assert decision == GateDecision.ACCEPT
    assert distance == pytest.approx(99.9, abs=0.01)

    decision, distance = handler.evaluate(sample(outside, 127.0, 5.0, 0), RURAL, REFERENCE)
    assert decision == GateDecision.OUTLIER
    assert distance == pytest.approx(100.1, abs=0.01)


def test_fifth_consecutive_outlier_requests_reset(handler):
    far = sample(meters_north(REFERENCE[0], 500.0), 127.0, 5.0, 0)
    decisions = [handler.evaluate(far, RURAL, REFERENCE)[0] for _ in range(5)]
    assert decisions == [GateDecision.OUTLIER] * 4 + [GateDecision.FORCED_RESET]

    stats = handler.get_processing_stats()
    assert stats["outlier_count"] == 5
    assert stats["forced_reset_count"] == 1
    assert stats["consecutive_outliers"] == 0


def test_accepted_sample_breaks_outlier_streak(handler):
    far = sample(meters_north(REFERENCE[0], 500.0), 127.0, 5.0, 0)
    near = sample(REFERENCE[0], REFERENCE[1], 5.0, 0)
    for _ in range(4):
        handler.evaluate(far, RURAL, REFERENCE)
    handler.evaluate(near, RURAL, REFERENCE)
    assert handler.consecutive_outliers == 0
    assert handler.evaluate(far, RURAL, REFERENCE)[0] == GateDecision.OUTLIER


def test_low_accuracy_does_not_touch_outlier_streak(handler):
    far = sample(meters_north(REFERENCE[0], 500.0), 127.0, 5.0, 0)
    handler.evaluate(far, RURAL, REFERENCE)
    handler.evaluate(sample(37.5, 127.0, 80.0, 0), RURAL, REFERENCE)
    assert handler.consecutive_outliers == 1
