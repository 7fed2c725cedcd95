"""Failure taxonomy shared by every ceremony component."""

from __future__ import annotations

from typing import Literal

ErrorKind = Literal[
    "validation_error",
    "network_error",
    "server_error",
    "user_cancelled",
    "authenticator_error",
    "no_credential_available",
    "server_rejected",
    "busy",
]


class CeremonyError(Exception):
    """Ceremony failure carrying a stable code and a human-readable detail."""

    code: ErrorKind = "server_error"
    retryable: bool = True
    alarming: bool = True
    default_detail = "Passkey ceremony failed"

    def __init__(self, detail: str | None = None) -> None:
        """Create a ceremony failure with an optional display message."""
        text = detail if detail else self.default_detail
        super().__init__(text)
        self.detail = text

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, detail={self.detail!r})"


class ValidationError(CeremonyError):
    """Input rejected before any request was made."""

    code: ErrorKind = "validation_error"
    default_detail = "Enter a valid email address."


class NetworkError(CeremonyError):
    """The relying party could not be reached or answered unintelligibly."""

    code: ErrorKind = "network_error"
    default_detail = "Could not communicate with the server."


class ServerError(CeremonyError):
    """The relying party refused the request with a structured reason."""

    code: ErrorKind = "server_error"
    retryable = False
    default_detail = "The server rejected the request."

    def __init__(self, detail: str | None = None, status_code: int | None = None) -> None:
        """Create a server error keeping the relying party's message verbatim."""
        super().__init__(detail)
        self.status_code = status_code


class UserCancelled(CeremonyError):
    """The user dismissed or let the authenticator prompt time out."""

    code: ErrorKind = "user_cancelled"
    alarming = False
    default_detail = "The passkey prompt was cancelled."


class AuthenticatorError(CeremonyError):
    """The platform authenticator failed for a device-level reason."""

    code: ErrorKind = "authenticator_error"
    default_detail = "The authenticator could not complete the request."


class NoCredentialAvailable(AuthenticatorError):
    """The authenticator holds no credential for this relying party."""

    code: ErrorKind = "no_credential_available"
    default_detail = "No passkey for this site was found on the authenticator."


class ServerRejected(CeremonyError):
    """Verification completed but the relying party did not accept the proof."""

    code: ErrorKind = "server_rejected"
    default_detail = "The server could not verify the passkey."


class Busy(CeremonyError):
    """Another ceremony is already in flight."""

    code: ErrorKind = "busy"
    alarming = False
    default_detail = "Another passkey ceremony is already in progress."


__all__ = [
    "AuthenticatorError",
    "Busy",
    "CeremonyError",
    "ErrorKind",
    "NetworkError",
    "NoCredentialAvailable",
    "ServerError",
    "ServerRejected",
    "UserCancelled",
    "ValidationError",
]
