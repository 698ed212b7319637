"""Custom exceptions for the EC2 image uploader."""


class ImageUploadError(Exception):
    """Base exception for the image upload pipeline."""
    pass


class ConfigurationError(ImageUploadError):
    """Exception raised for local configuration problems found at startup."""
    pass


class CredentialsError(ConfigurationError):
    """Exception raised when the credential file cannot be used."""
    pass


class DiskImageError(ConfigurationError):
    """Exception raised when the disk image cannot be read."""
    pass


class RemoteCallError(ImageUploadError):
    """Base exception for remote call failures that may be retried."""
    pass


class ConnectionFailedError(RemoteCallError):
    """Exception raised when the transport cannot complete a request."""
    pass


class RequestFailedError(RemoteCallError):
    """Exception raised when a service answers with a non-200 status."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MalformedResponseError(RemoteCallError):
    """Exception raised when a response body is corrupt or unparseable."""
    pass


class MissingFieldError(ImageUploadError):
    """Exception raised when a well-formed response lacks an expected field."""

    def __init__(self, operation: str, field: str, body: str = ""):
        super().__init__(f"Could not find <{field}> in {operation} response:\n{body}")
        self.operation = operation
        self.field = field
        self.body = body


class ResourceStateError(ImageUploadError):
    """Exception raised when a remote resource enters an error state."""

    def __init__(self, operation: str, status: str, body: str = ""):
        super().__init__(f"Bad status from {operation}: {status}")
        self.operation = operation
        self.status = status
        self.body = body


class NotificationError(ImageUploadError):
    """Exception raised when publishing the release notification fails."""
    pass
