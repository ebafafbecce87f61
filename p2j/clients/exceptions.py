"""Common exceptions for all client modules."""


class ClientError(Exception):
    """Base exception for all client errors."""


class ClientConnectionError(ClientError):
    """Error when connection to a service fails."""


# The transport raises this for network failures on either attempt
TransportError = ClientConnectionError


class AuthenticationError(ClientError):
    """Error when authentication fails."""


class ApiError(ClientError):
    """General API error."""

    def __init__(self, message: str, status_code: int | None = None, body: str = "") -> None:
        """Initialize an API error with the HTTP status and response text."""
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class CreateIssueError(ApiError):
    """Error when an issue cannot be created."""


class FieldUpdateError(ApiError):
    """Error when a field (story points) cannot be updated."""


class TransitionError(ApiError):
    """Error when an issue cannot be moved to the requested status."""


class CommentError(ApiError):
    """Error when a comment cannot be added."""


class UploadError(ApiError):
    """Error when an attachment cannot be read or uploaded."""
