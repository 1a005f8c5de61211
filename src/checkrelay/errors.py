"""
Check Relay Errors

Every failure is scoped to a single request and maps to one of the
configurable HTTP status codes.
"""


class CheckRelayError(Exception):
    """Base class for relay errors."""


class RegistryUnavailableError(CheckRelayError):
    """The registry could not be reached (refused, timed out, network error)."""


class UnprocessableResponseError(CheckRelayError):
    """The registry answered with a body that is not a check mapping."""


class UnsupportedStatusError(CheckRelayError):
    """A status string is not part of the configured severity vocabulary."""

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Unsupported status: {status}")


class BadRequestError(CheckRelayError):
    """The caller supplied an unusable request parameter."""
