"""Exceptions for FitBark integration."""
from typing import Optional


class FitBarkError(Exception):
    """Base error for FitBark operations."""


class TransportFailure(FitBarkError):
    """Network or HTTP-layer failure."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        raw_body: Optional[str] = None,
    ) -> None:
        """Initialize the failure."""
        super().__init__(message)
        self.status = status
        self.message = message
        self.raw_body = raw_body

    def __str__(self) -> str:
        """Return the message with the status code when known."""
        if self.status is None:
            return self.message
        return f"{self.message} (status {self.status})"


class RemoteFailure(TransportFailure):
    """The FitBark API answered with an error or could not be reached."""


class ProtocolFailure(FitBarkError):
    """Well-formed HTTP response missing or mangling an expected field."""


class PreconditionFailure(FitBarkError):
    """Operation invoked in the wrong authorization or entity state."""


class Unauthorized(PreconditionFailure):
    """No valid FitBark access token is stored."""


class MissingAuthorizationCode(PreconditionFailure):
    """OAuth callback arrived without a temporary authorization code."""


class UserInputFailure(FitBarkError):
    """Value supplied by the user was rejected."""


class EntityCreationFailure(FitBarkError):
    """A discovered dog could not be added to the local registry."""
