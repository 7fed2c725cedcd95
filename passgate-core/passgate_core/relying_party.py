"""Async client for the relying party's four ceremony endpoints."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Self
from urllib.parse import urlparse

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PayloadValidationError

from .errors import NetworkError, ServerError
from .models import (
    AssertionResponse,
    AttestationResponse,
    AuthenticationChallenge,
    RegistrationChallenge,
    VerificationOutcome,
    normalize_email,
)

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)

DEFAULT_RP_URL = "http://localhost:8080/api"
_DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0

REGISTER_OPTIONS_PATH = "/register/options"
REGISTER_VERIFY_PATH = "/register/verify"
LOGIN_OPTIONS_PATH = "/login/options"
LOGIN_VERIFY_PATH = "/login/verify"


def _extract_error_message(response: httpx.Response) -> str | None:
    """Return the human-readable reason of a structured error body."""
    try:
        payload = response.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None

    message = payload.get("message")
    if isinstance(message, str) and message.strip():
        return message

    detail = payload.get("detail")
    if isinstance(detail, str) and detail.strip():
        return detail
    if isinstance(detail, dict):
        nested = detail.get("message") or detail.get("detail")
        if isinstance(nested, str) and nested.strip():
            return nested
    return None


def validate_base_url(base_url: str) -> str:
    """Return ``base_url`` without a trailing slash after checking its shape."""
    parsed = urlparse(base_url.strip())
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        msg = f"Invalid relying party URL: {base_url}"
        raise ValueError(msg)
    return base_url.strip().rstrip("/")


class RelyingPartyClient:
    """Typed calls to the relying party with uniform failure normalization.

    One ``httpx.AsyncClient`` is shared by every call so cookies issued with a
    challenge are presented again when the proof is submitted.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_RP_URL,
        *,
        timeout_seconds: float = _DEFAULT_HTTP_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.base_url = validate_base_url(base_url)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout_seconds,
            transport=transport,
            headers={"Accept": "application/json", **(headers or {})},
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Release the underlying connection pool."""
        await self._client.aclose()

    async def _post[M: BaseModel](
        self,
        path: str,
        model: type[M],
        payload: dict[str, Any] | None = None,
    ) -> M:
        try:
            response = await self._client.post(path, json=payload)
        except httpx.RequestError as exc:
            logger.warning("Request to %s failed: %s", path, type(exc).__name__)
            raise NetworkError from exc

        if not response.is_success:
            message = _extract_error_message(response)
            logger.info("Relying party answered %s for %s", response.status_code, path)
            if message is None:
                msg = f"Server responded with HTTP {response.status_code}."
                raise NetworkError(msg)
            raise ServerError(message, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError as exc:
            msg = "Server response was not valid JSON."
            raise ServerError(msg, status_code=response.status_code) from exc
        try:
            return model.model_validate(body)
        except PayloadValidationError as exc:
            msg = f"Server returned a malformed {path} response."
            raise ServerError(msg, status_code=response.status_code) from exc

    async def request_registration_challenge(self, email: str) -> RegistrationChallenge:
        """Fetch credential creation options for ``email``."""
        address = normalize_email(email)
        return await self._post(
            REGISTER_OPTIONS_PATH,
            RegistrationChallenge,
            {"email": address},
        )

    async def submit_registration_proof(
        self,
        email: str,
        attestation: AttestationResponse,
    ) -> VerificationOutcome:
        """Submit a new credential for verification."""
        return await self._post(
            REGISTER_VERIFY_PATH,
            VerificationOutcome,
            {"email": normalize_email(email), "attestationResponse": attestation.to_json()},
        )

    async def request_authentication_challenge(self) -> AuthenticationChallenge:
        """Fetch credential request options; the server resolves candidates."""
        return await self._post(LOGIN_OPTIONS_PATH, AuthenticationChallenge)

    async def submit_authentication_proof(
        self,
        assertion: AssertionResponse,
    ) -> VerificationOutcome:
        """Submit an assertion for verification."""
        return await self._post(
            LOGIN_VERIFY_PATH,
            VerificationOutcome,
            {"assertionResponse": assertion.to_json()},
        )
