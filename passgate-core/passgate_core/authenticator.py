"""Bridge between the orchestrator and the platform authenticator."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Literal, Protocol

from fido2.client import (
    ClientError,
    DefaultClientDataCollector,
    Fido2Client,
    UserInteraction,
)
from fido2.ctap import CtapDevice, CtapError
from fido2.hid import CtapHidDevice
from fido2.webauthn import (
    PublicKeyCredentialCreationOptions,
    PublicKeyCredentialRequestOptions,
)
from pydantic import ValidationError as PayloadValidationError

from .errors import (
    AuthenticatorError,
    CeremonyError,
    NoCredentialAvailable,
    UserCancelled,
)
from .models import (
    AssertionResponse,
    AttestationResponse,
    AuthenticationChallenge,
    RegistrationChallenge,
)

logger = logging.getLogger(__name__)

CeremonyKind = Literal["registration", "authentication"]

_CANCEL_CODES: frozenset[int] = frozenset(
    {
        CtapError.ERR.KEEPALIVE_CANCEL,
        CtapError.ERR.OPERATION_DENIED,
        CtapError.ERR.USER_ACTION_TIMEOUT,
        CtapError.ERR.ACTION_TIMEOUT,
    },
)
_PLATFORM_ERRORS = (ClientError, CtapError, OSError)


class PlatformAuthenticator(Protocol):
    """Native credential operations; both calls block while the user is prompted."""

    def create_credential(self, options: dict[str, Any]) -> dict[str, Any]:
        """Create a credential and return the attestation in WebAuthn JSON form."""

    def get_assertion(self, options: dict[str, Any]) -> dict[str, Any]:
        """Sign a challenge and return the assertion in WebAuthn JSON form."""


def classify_platform_error(
    exc: BaseException,
    ceremony: CeremonyKind,
) -> CeremonyError:
    """Translate a platform failure into the ceremony failure taxonomy."""
    ctap_error: CtapError | None = None
    if isinstance(exc, CtapError):
        ctap_error = exc
    elif isinstance(exc, ClientError) and isinstance(exc.cause, CtapError):
        ctap_error = exc.cause

    if isinstance(exc, ClientError) and exc.code == ClientError.ERR.TIMEOUT:
        return UserCancelled("The passkey prompt timed out.")

    if ctap_error is not None:
        code = ctap_error.code
        if code in _CANCEL_CODES:
            return UserCancelled()
        if code == CtapError.ERR.NO_CREDENTIALS and ceremony == "authentication":
            return NoCredentialAvailable()
        if code == CtapError.ERR.CREDENTIAL_EXCLUDED:
            return AuthenticatorError(
                "A passkey for this account is already registered on this authenticator.",
            )
        if code in {CtapError.ERR.PIN_INVALID, CtapError.ERR.PIN_BLOCKED}:
            return AuthenticatorError("The authenticator PIN was rejected.")

    if isinstance(exc, ClientError) and exc.code == ClientError.ERR.DEVICE_INELIGIBLE:
        if ceremony == "authentication":
            return NoCredentialAvailable()
        return AuthenticatorError("This authenticator cannot be used for this site.")

    if isinstance(exc, OSError):
        return AuthenticatorError(f"Could not talk to the authenticator: {exc}")
    return AuthenticatorError()


class AuthenticatorBridge:
    """Runs platform credential operations as awaitable ceremony steps."""

    def __init__(self, platform: PlatformAuthenticator) -> None:
        self._platform = platform

    async def _invoke(
        self,
        operation: Callable[[dict[str, Any]], dict[str, Any]],
        options: dict[str, Any],
        ceremony: CeremonyKind,
    ) -> dict[str, Any]:
        try:
            return await asyncio.to_thread(operation, options)
        except CeremonyError as exc:
            if isinstance(exc, NoCredentialAvailable) and ceremony == "registration":
                raise AuthenticatorError(exc.detail) from exc
            raise
        except _PLATFORM_ERRORS as exc:
            error = classify_platform_error(exc, ceremony)
            logger.info("Authenticator %s failed: %s", ceremony, error.code)
            raise error from exc

    async def perform_registration(
        self,
        challenge: RegistrationChallenge,
    ) -> AttestationResponse:
        """Create a credential bound to ``challenge``."""
        raw = await self._invoke(
            self._platform.create_credential,
            challenge.to_options(),
            "registration",
        )
        try:
            return AttestationResponse.model_validate(raw)
        except PayloadValidationError as exc:
            msg = "The authenticator returned a malformed attestation."
            raise AuthenticatorError(msg) from exc

    async def perform_authentication(
        self,
        challenge: AuthenticationChallenge,
    ) -> AssertionResponse:
        """Sign ``challenge`` with a credential the device already holds."""
        raw = await self._invoke(
            self._platform.get_assertion,
            challenge.to_options(),
            "authentication",
        )
        try:
            return AssertionResponse.model_validate(raw)
        except PayloadValidationError as exc:
            msg = "The authenticator returned a malformed assertion."
            raise AuthenticatorError(msg) from exc


def _first_hid_device() -> CtapDevice | None:
    return next(iter(CtapHidDevice.list_devices()), None)


class Fido2PlatformAuthenticator:
    """FIDO2 security key reached over USB HID through python-fido2."""

    def __init__(
        self,
        origin: str,
        *,
        user_interaction: UserInteraction | None = None,
        device_factory: Callable[[], CtapDevice | None] | None = None,
    ) -> None:
        self.origin = origin
        self._user_interaction = user_interaction or UserInteraction()
        self._device_factory = device_factory or _first_hid_device

    def _client(self) -> Fido2Client:
        device = self._device_factory()
        if device is None:
            msg = "No eligible authenticator was found."
            raise AuthenticatorError(msg)
        return Fido2Client(
            device,
            client_data_collector=DefaultClientDataCollector(self.origin),
            user_interaction=self._user_interaction,
        )

    def create_credential(self, options: dict[str, Any]) -> dict[str, Any]:
        """Run authenticatorMakeCredential for the given creation options."""
        client = self._client()
        result = client.make_credential(
            PublicKeyCredentialCreationOptions.from_dict(options),
        )
        return dict(result)

    def get_assertion(self, options: dict[str, Any]) -> dict[str, Any]:
        """Run authenticatorGetAssertion and return the first matching response."""
        client = self._client()
        selection = client.get_assertion(
            PublicKeyCredentialRequestOptions.from_dict(options),
        )
        return dict(selection.get_response(0))
