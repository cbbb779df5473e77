"""Custom exceptions for the request identity layer."""


class RequestIdentityError(Exception):
    """Base exception for the request identity layer."""
    pass


class ConfigurationError(RequestIdentityError):
    """Raised when configuration is invalid."""

    def __init__(self, message: str, setting: str = None):
        super().__init__(message)
        self.setting = setting
