"""Error taxonomy for the upload gateway.

Components raise these; the API layer maps each kind to an HTTP status code
in exactly one place (``repo_analyzer.api.errors``).
"""


class GatewayError(Exception):
    """Base exception for the gateway."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class PayloadError(GatewayError):
    """Exception raised when the request input is missing or invalid."""
    pass


class AuthError(GatewayError):
    """Exception raised when the shared-secret credential is missing or wrong."""
    pass


class NotFoundError(GatewayError):
    """Exception raised when a job or stored object does not exist."""
    pass


class MethodError(GatewayError):
    """Exception raised when an endpoint is called with the wrong method."""
    pass


class StorageError(GatewayError):
    """Exception raised when the object-storage backend fails."""
    pass


class UploadError(GatewayError):
    """Exception raised when an upload could not be written to storage."""
    pass


class InvariantError(GatewayError):
    """Exception raised on an illegal state transition or identifier collision."""
    pass
