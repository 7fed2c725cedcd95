"""Registration and authentication state machines for passkey ceremonies.

The orchestrator owns the only ceremony state of a client process. Each step
awaits the relying party or the authenticator; a request that arrives while a
ceremony is suspended is answered with ``Busy`` instead of being queued.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

from .errors import Busy, CeremonyError, ServerError, ServerRejected, ValidationError
from .models import CeremonyResult, Identity, Session, normalize_email

if TYPE_CHECKING:
    from .authenticator import AuthenticatorBridge
    from .relying_party import RelyingPartyClient
    from .session_store import SessionStore

logger = logging.getLogger(__name__)

REGISTRATION_NOTICE = (
    "Passkey registration is complete. You can now sign in with the new passkey."
)

CeremonyName = Literal["registration", "authentication"]
StatusListener = Callable[["CeremonyStatus"], None]


class CeremonyState(StrEnum):
    """Steps of a passkey ceremony."""

    IDLE = "idle"
    VALIDATING = "validating"
    AWAITING_CHALLENGE = "awaiting_challenge"
    AWAITING_AUTHENTICATOR = "awaiting_authenticator"
    VERIFYING = "verifying"
    SUCCESS = "success"
    FAILED = "failed"


_IN_FLIGHT_STATES = frozenset(
    {
        CeremonyState.VALIDATING,
        CeremonyState.AWAITING_CHALLENGE,
        CeremonyState.AWAITING_AUTHENTICATOR,
        CeremonyState.VERIFYING,
    },
)


@dataclass(frozen=True)
class CeremonyStatus:
    """Snapshot observed by the presentation layer."""

    state: CeremonyState = CeremonyState.IDLE
    ceremony: CeremonyName | None = None
    error: CeremonyError | None = None
    notice: str | None = None
    email: str = ""
    identity: Identity | None = None

    @property
    def busy(self) -> bool:
        """True while a ceremony is suspended on I/O or the user."""
        return self.state in _IN_FLIGHT_STATES


class CeremonyOrchestrator:
    """Drives passkey ceremonies and owns session transitions."""

    def __init__(
        self,
        relying_party: RelyingPartyClient,
        authenticator: AuthenticatorBridge,
        session_store: SessionStore,
    ) -> None:
        self._relying_party = relying_party
        self._authenticator = authenticator
        self._session_store = session_store
        self._listeners: list[StatusListener] = []
        self._status = CeremonyStatus(identity=session_store.load())

    @property
    def status(self) -> CeremonyStatus:
        """Current ceremony snapshot."""
        return self._status

    @property
    def identity(self) -> Identity | None:
        """Identity of the live session, if any."""
        return self._session_store.load()

    @property
    def session(self) -> Session | None:
        """Live session including when it was established."""
        return self._session_store.session()

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Call ``listener`` on every transition; returns an unsubscribe function."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self, status: CeremonyStatus) -> None:
        if status.state != self._status.state:
            logger.debug("Ceremony state %s -> %s", self._status.state, status.state)
        self._status = status
        for listener in list(self._listeners):
            listener(status)

    def _advance(self, state: CeremonyState) -> None:
        self._emit(replace(self._status, state=state))

    def _begin(self, ceremony: CeremonyName, email: str = "") -> None:
        self._emit(
            replace(
                self._status,
                state=(
                    CeremonyState.VALIDATING
                    if ceremony == "registration"
                    else CeremonyState.AWAITING_CHALLENGE
                ),
                ceremony=ceremony,
                error=None,
                notice=None,
                email=email,
            ),
        )

    def _finish_failed(self, error: CeremonyError) -> CeremonyResult:
        ceremony = self._status.ceremony
        if error.alarming:
            logger.warning("Passkey %s failed: %s (%s)", ceremony, error.detail, error.code)
        else:
            logger.info("Passkey %s ended: %s", ceremony, error.code)
        self._emit(replace(self._status, state=CeremonyState.FAILED, error=error))
        self._emit(replace(self._status, state=CeremonyState.IDLE, ceremony=None))
        return CeremonyResult.failed(error)

    def _reset_after_crash(self) -> None:
        if self._status.busy:
            self._emit(replace(self._status, state=CeremonyState.IDLE, ceremony=None))

    def _busy(self, requested: CeremonyName) -> CeremonyResult:
        logger.info(
            "Rejected %s request while %s is in progress",
            requested,
            self._status.ceremony,
        )
        return CeremonyResult.failed(Busy())

    async def register(self, email: str) -> CeremonyResult:
        """Register a new passkey for ``email``.

        A successful registration does not sign the user in; the pending email
        is cleared and a dismissible notice is published instead.
        """
        # busy check and state change happen without an await in between
        if self._status.busy:
            return self._busy("registration")

        try:
            self._begin("registration", email)
            try:
                address = normalize_email(email)
            except ValidationError as exc:
                self._emit(
                    replace(
                        self._status,
                        state=CeremonyState.IDLE,
                        ceremony=None,
                        error=exc,
                    ),
                )
                return CeremonyResult.failed(exc)

            try:
                self._advance(CeremonyState.AWAITING_CHALLENGE)
                challenge = await self._relying_party.request_registration_challenge(
                    address,
                )
                self._advance(CeremonyState.AWAITING_AUTHENTICATOR)
                attestation = await self._authenticator.perform_registration(challenge)
                self._advance(CeremonyState.VERIFYING)
                outcome = await self._relying_party.submit_registration_proof(
                    address,
                    attestation,
                )
            except CeremonyError as exc:
                return self._finish_failed(exc)

            if not outcome.success:
                return self._finish_failed(
                    ServerRejected(outcome.message or "Passkey registration failed."),
                )

            logger.info("Passkey registration completed")
            self._emit(
                replace(
                    self._status,
                    state=CeremonyState.SUCCESS,
                    notice=REGISTRATION_NOTICE,
                    email="",
                ),
            )
            self._emit(replace(self._status, state=CeremonyState.IDLE, ceremony=None))
            return CeremonyResult(success=True)
        finally:
            self._reset_after_crash()

    async def authenticate(self) -> CeremonyResult:
        """Sign in with any passkey the relying party accepts."""
        if self._status.busy:
            return self._busy("authentication")

        try:
            self._begin("authentication", self._status.email)
            try:
                challenge = await self._relying_party.request_authentication_challenge()
                self._advance(CeremonyState.AWAITING_AUTHENTICATOR)
                assertion = await self._authenticator.perform_authentication(challenge)
                self._advance(CeremonyState.VERIFYING)
                outcome = await self._relying_party.submit_authentication_proof(assertion)
            except CeremonyError as exc:
                return self._finish_failed(exc)

            if not outcome.success:
                return self._finish_failed(
                    ServerRejected(outcome.message or "Authentication failed."),
                )
            identity = outcome.to_identity()
            if identity is None:
                return self._finish_failed(
                    ServerError("The server did not identify the signed-in account."),
                )

            self._session_store.save(identity)
            logger.info("Passkey authentication completed")
            self._emit(
                replace(self._status, state=CeremonyState.SUCCESS, identity=identity),
            )
            self._emit(replace(self._status, state=CeremonyState.IDLE, ceremony=None))
            return CeremonyResult(success=True, identity=identity)
        finally:
            self._reset_after_crash()

    def logout(self) -> None:
        """End the live session. Never fails and may be repeated."""
        self._session_store.clear()
        logger.info("Signed out")
        self._emit(replace(self._status, identity=None, notice=None))

    def dismiss_notice(self) -> None:
        """Hide the registration success notice."""
        if self._status.notice is not None:
            self._emit(replace(self._status, notice=None))
