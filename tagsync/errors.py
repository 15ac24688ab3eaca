class TagSyncError(Exception):
    pass


class TransportError(TagSyncError):
    """Network failure or non-2xx response from an origin site."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """
        Initialize the error with a message and the optional HTTP status.

        Parameters:
            message (str): Human readable description naming the failed request.
            status_code (int | None): HTTP status of the response, or None when
                the request never produced a response.
        """
        self.status_code = status_code
        super().__init__(message)


class AuthError(TransportError):
    """Origin site rejected the configured credentials."""


class ParseError(TagSyncError):
    """Expected structural element is absent or malformed."""


class StorageError(TagSyncError):
    """Catalog store could not be read or written."""


class ConfigError(TagSyncError):
    """A setting has a value the program cannot use."""
