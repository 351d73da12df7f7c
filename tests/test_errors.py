import pytest

from fusion_engine.errors import (AcquisitionTimeout, ErrorKind, PermissionDenied,
                                  ProviderError, ProviderUnavailable, SensorUnavailable,
                                  error_from_code)


@pytest.mark.parametrize("code, error_cls, fatal", [
    (1, PermissionDenied, True),
    (2, ProviderUnavailable, True),
    (3, AcquisitionTimeout, False),
    (99, ProviderError, False),
])
def test_error_from_code(code, error_cls, fatal):
    error = error_from_code(code, "platform message")
    assert type(error) is error_cls
    assert error.fatal is fatal
    assert error.code == code
    assert str(error) == "platform message"


def test_error_serialization():
    error = SensorUnavailable("no accelerometer")
    assert error.to_dict() == {
        "kind": ErrorKind.SENSOR_UNAVAILABLE.value,
        "message": "no accelerometer",
        "code": None,
        "fatal": False,
    }


def test_default_message_is_class_name():
    assert str(AcquisitionTimeout()) == "AcquisitionTimeout"
