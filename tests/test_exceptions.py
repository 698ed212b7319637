"""Smoke tests for the exception hierarchy."""

import pytest

from imageupload.core.exceptions import (
    ConfigurationError,
    ConnectionFailedError,
    CredentialsError,
    DiskImageError,
    ImageUploadError,
    MalformedResponseError,
    MissingFieldError,
    NotificationError,
    RemoteCallError,
    RequestFailedError,
    ResourceStateError,
)


def test_exception_hierarchy():
    """Test that all exceptions inherit from ImageUploadError."""
    for exc_type in [
        ConfigurationError,
        RemoteCallError,
        MissingFieldError,
        ResourceStateError,
        NotificationError,
    ]:
        assert issubclass(exc_type, ImageUploadError)

    assert issubclass(CredentialsError, ConfigurationError)
    assert issubclass(DiskImageError, ConfigurationError)


def test_retryable_errors():
    """Test only transport and protocol failures are retryable."""
    assert issubclass(ConnectionFailedError, RemoteCallError)
    assert issubclass(RequestFailedError, RemoteCallError)
    assert issubclass(MalformedResponseError, RemoteCallError)
    assert not issubclass(MissingFieldError, RemoteCallError)
    assert not issubclass(ResourceStateError, RemoteCallError)


def test_request_failed_error_fields():
    error = RequestFailedError("EC2 Op failed", status_code=503, body="<Error/>")

    assert error.status_code == 503
    assert error.body == "<Error/>"
    assert str(error) == "EC2 Op failed"


def test_resource_state_error_message():
    error = ResourceStateError("DescribeSnapshots", "error", "<status>error</status>")

    assert str(error) == "Bad status from DescribeSnapshots: error"
    assert error.operation == "DescribeSnapshots"


def test_exceptions_can_be_caught_as_base():
    with pytest.raises(ImageUploadError):
        raise MissingFieldError("CreateSnapshot", "snapshotId")
