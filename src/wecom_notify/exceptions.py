"""Custom exceptions for the WeCom notify client."""

from __future__ import annotations


class WeComError(Exception):
    """Base exception for all WeCom client errors."""

    pass


class ValidationError(WeComError, ValueError):
    """Raised when a request is rejected locally before any network call."""

    pass


class UnrecognizedMessageTypeError(ValidationError, TypeError):
    """Raised when a message is not one of the known message variants."""

    def __init__(self, message: object) -> None:
        """Initialize the exception.

        Args:
            message: The offending message value
        """
        self.message_type = type(message).__name__
        super().__init__(f"unrecognized message type: {self.message_type}")


class TransportError(WeComError):
    """Raised on network failures or undecodable responses."""

    def __init__(self, message: str, url: str | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Error message
            url: Endpoint that failed, without query parameters
        """
        self.url = url
        super().__init__(message)


class TokenExchangeError(WeComError):
    """Raised when the credential exchange endpoint returns a non-zero errcode."""

    def __init__(self, errcode: int, errmsg: str) -> None:
        self.errcode = errcode
        self.errmsg = errmsg
        super().__init__(f"token get error {errcode}: {errmsg}")


class RemoteAPIError(WeComError):
    """Raised by ``raise_for_error()`` on results carrying a non-zero errcode."""

    def __init__(self, errcode: int, errmsg: str) -> None:
        self.errcode = errcode
        self.errmsg = errmsg
        super().__init__(f"WeCom API error {errcode}: {errmsg}")


class PersistenceError(WeComError):
    """Raised when the token cache file cannot be read or written."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.path = path
        super().__init__(message)
