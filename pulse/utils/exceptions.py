"""Custom exceptions for the Social Pulse relay"""

from typing import Optional


class PulseError(Exception):
    """Base exception for Social Pulse"""
    pass


class GraphAPIError(PulseError):
    """Error from the Meta Graph API (or the transport in front of it)"""

    def __init__(
        self,
        message: str,
        error_code: Optional[int] = None,
        error_subcode: Optional[int] = None,
        status_code: Optional[int] = None,
    ):
        self.error_code = error_code
        self.error_subcode = error_subcode
        self.status_code = status_code
        super().__init__(message)


class AuthSetupError(PulseError):
    """Token handoff could not produce a usable session"""

    def __init__(self, message: str, status_code: int = 400):
        self.status_code = status_code
        super().__init__(message)


class ConfigError(PulseError):
    """Configuration error"""
    pass
