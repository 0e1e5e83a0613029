"""Custom exception classes for LEGA Commander."""

from typing import Optional


class LegaError(Exception):
    """
    Base exception class for all LEGA Commander errors.
    """
    pass


class ConfigurationError(LegaError):
    """
    Raised when a required setting (credential, URL) is missing or unusable.
    """
    pass


class ValidationError(LegaError):
    """
    Raised when a local precondition fails: the path is neither a file nor a
    directory, the file is not a Crypt4GH container, the file already exists
    in the inbox, or a download target already exists locally.
    """
    pass


class NotFoundError(LegaError):
    """
    Raised when a requested file is not present in the outbox.
    """
    pass


class TransportError(LegaError):
    """
    Raised on non-success HTTP status, connection failure or malformed body.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TokenError(LegaError):
    """
    Raised when a session token cannot be acquired, or when no trusted time
    server answered during an expiry check.
    """
    pass
