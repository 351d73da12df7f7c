import pytest

from fusion_engine.configs.schema import Environment
from fusion_engine.handlers.models import EnvironmentProfile
from fusion_engine.processing.environment_classifier import EnvironmentClassifier


@pytest.fixture
def classifier():
    return EnvironmentClassifier(Environment())


@pytest.mark.parametrize("accuracy, expected", [
    (3.0, EnvironmentProfile.RURAL),
    (10.0, EnvironmentProfile.RURAL),
    (10.5, EnvironmentProfile.SUBURBAN),
    (30.0, EnvironmentProfile.SUBURBAN),
    (30.5, EnvironmentProfile.URBAN),
    (120.0, EnvironmentProfile.URBAN),
])
def test_bands(classifier, accuracy, expected):
    assert classifier.band_for(accuracy) == expected
    assert classifier.classify(accuracy) == expected


def test_initial_profile_is_suburban(classifier):
    assert classifier.current == EnvironmentProfile.SUBURBAN
    params = classifier.parameters()
    assert params.outlier_threshold_m == 75
    assert params.min_acceptable_accuracy_m == 40


def test_profile_parameters(classifier):
    urban = classifier.parameters(EnvironmentProfile.URBAN)
    rural = classifier.parameters(EnvironmentProfile.RURAL)
    assert (urban.process_noise, urban.measurement_noise_base) == (0.005, 2.0)
    assert (urban.outlier_threshold_m, urban.min_acceptable_accuracy_m) == (50, 30)
    assert (rural.process_noise, rural.outlier_threshold_m) == (0.02, 100)


def test_transition_listener_receives_old_new_and_parameters(classifier):
    calls = []
    classifier.on_transition(lambda old, new, params: calls.append((old, new, params)))

    classifier.classify(25.0)
    assert calls == []

    classifier.classify(5.0)
    assert len(calls) == 1
    old, new, params = calls[0]
    assert (old, new) == (EnvironmentProfile.SUBURBAN, EnvironmentProfile.RURAL)
    assert params == classifier.parameters(EnvironmentProfile.RURAL)
    assert classifier.transition_count == 1


def test_without_debounce_each_sample_can_toggle(classifier):
    for accuracy in (9.0, 11.0, 9.0, 11.0):
        classifier.classify(accuracy)
    assert classifier.transition_count == 4


def test_debounce_requires_consecutive_agreement():
    classifier = EnvironmentClassifier(Environment(debounce_samples=3))
    classifier.classify(50.0)
    classifier.classify(50.0)
    assert classifier.current == EnvironmentProfile.SUBURBAN
    classifier.classify(50.0)
    assert classifier.current == EnvironmentProfile.URBAN


def test_debounce_candidate_resets_on_disagreement():
    classifier = EnvironmentClassifier(Environment(debounce_samples=2))
    classifier.classify(50.0)
    classifier.classify(20.0)
    classifier.classify(50.0)
    assert classifier.current == EnvironmentProfile.SUBURBAN


def test_failing_listener_does_not_block_transition(classifier):
    received = []

    def broken(old, new, params):
        raise ValueError("boom")

    classifier.on_transition(broken)
    classifier.on_transition(lambda old, new, params: received.append(new))
    classifier.classify(50.0)
    assert classifier.current == EnvironmentProfile.URBAN
    assert received == [EnvironmentProfile.URBAN]


def test_unsubscribe(classifier):
    calls = []
    unsubscribe = classifier.on_transition(lambda *args: calls.append(args))
    unsubscribe()
    classifier.classify(50.0)
    assert calls == []


def test_recent_accuracies_are_bounded():
    classifier = EnvironmentClassifier(Environment(accuracy_window=3))
    for accuracy in (1.0, 2.0, 3.0, 4.0):
        classifier.classify(accuracy)
    assert classifier.recent_accuracies == [2.0, 3.0, 4.0]
    assert classifier.average_accuracy == pytest.approx(3.0)


def test_quality_grade_and_signal_strength():
    assert EnvironmentClassifier.quality_grade(8) == "excellent"
    assert EnvironmentClassifier.quality_grade(15) == "good"
    assert EnvironmentClassifier.quality_grade(50) == "fair"
    assert EnvironmentClassifier.quality_grade(80) == "poor"
    assert EnvironmentClassifier.signal_strength(30) == 70
    assert EnvironmentClassifier.signal_strength(150) == 0


def test_invalid_band_configuration_rejected():
    with pytest.raises(ValueError):
        Environment(rural_max_accuracy_m=40.0, suburban_max_accuracy_m=30.0)
