"""Data model for passkey ceremonies and their wire payloads."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .errors import CeremonyError, ErrorKind, ValidationError

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(email: str | None) -> bool:
    """Return True when ``email`` looks like a deliverable address."""
    if not isinstance(email, str):
        return False
    return bool(_EMAIL_PATTERN.match(email.strip()))


def normalize_email(email: str | None) -> str:
    """Trim ``email`` and raise ``ValidationError`` when it is malformed."""
    if not isinstance(email, str) or not email.strip():
        msg = "Email address must not be empty."
        raise ValidationError(msg)
    candidate = email.strip()
    if not is_valid_email(candidate):
        msg = "Enter a valid email address."
        raise ValidationError(msg)
    return candidate


@dataclass(frozen=True)
class Identity:
    """Authenticated user identity established by a login ceremony."""

    email: str
    display_name: str | None = None

    def __post_init__(self) -> None:
        if self.email != self.email.strip() or not is_valid_email(self.email):
            msg = f"Invalid identity email: {self.email!r}"
            raise ValueError(msg)

    @property
    def label(self) -> str:
        """Name to show for this identity."""
        return self.display_name or self.email


@dataclass(frozen=True)
class Session:
    """The single live session of a client process."""

    identity: Identity
    established_at: datetime

    @classmethod
    def start(cls, identity: Identity) -> Session:
        """Open a session for ``identity`` stamped with the current UTC time."""
        return cls(identity=identity, established_at=datetime.now(tz=UTC))


@dataclass(frozen=True)
class CeremonyResult:
    """Outcome of exactly one registration or authentication attempt."""

    success: bool
    identity: Identity | None = None
    error: CeremonyError | None = None

    @property
    def reason(self) -> ErrorKind | None:
        """Error kind of a failed ceremony."""
        return None if self.error is None else self.error.code

    @classmethod
    def failed(cls, error: CeremonyError) -> CeremonyResult:
        """Build a failed result."""
        return cls(success=False, error=error)


class _ChallengeOptions(BaseModel):
    """Opaque WebAuthn options issued by the relying party."""

    model_config = ConfigDict(extra="allow", frozen=True)

    challenge: str = Field(min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _unwrap_public_key(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("publicKey"), dict):
            return data["publicKey"]
        return data

    def to_options(self) -> dict[str, Any]:
        """Return the options exactly as the relying party sent them."""
        return self.model_dump(mode="json")


class RegistrationChallenge(_ChallengeOptions):
    """Credential creation options for a registration ceremony."""

    rp: dict[str, Any]
    user: dict[str, Any]


class AuthenticationChallenge(_ChallengeOptions):
    """Credential request options for an authentication ceremony."""


class _CredentialResponse(BaseModel):
    """Signed public-key credential in WebAuthn JSON form."""

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    id: str = Field(min_length=1)
    raw_id: str = Field(alias="rawId", min_length=1)
    type: str = "public-key"
    response: dict[str, Any]

    def to_json(self) -> dict[str, Any]:
        """Serialize with WebAuthn field names for submission."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AttestationResponse(_CredentialResponse):
    """Authenticator output of a registration ceremony."""

    @model_validator(mode="after")
    def _require_attestation(self) -> Self:
        if "attestationObject" not in self.response:
            msg = "attestation response is missing attestationObject"
            raise ValueError(msg)
        return self


class AssertionResponse(_CredentialResponse):
    """Authenticator output of an authentication ceremony."""

    @model_validator(mode="after")
    def _require_signature(self) -> Self:
        if "signature" not in self.response:
            msg = "assertion response is missing signature"
            raise ValueError(msg)
        return self


class VerificationOutcome(BaseModel):
    """Relying party verdict on a submitted attestation or assertion."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    success: bool
    message: str | None = None
    email: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")

    def to_identity(self) -> Identity | None:
        """Identity named by a successful verification, if it names one."""
        if not self.success or not is_valid_email(self.email):
            return None
        email = (self.email or "").strip()
        display_name = (self.display_name or "").strip() or email
        return Identity(email=email, display_name=display_name)
