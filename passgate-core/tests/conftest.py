"""Test configuration: an in-process relying party and a scripted authenticator."""

from __future__ import annotations

import secrets
import threading
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from passgate_core import (
    AuthenticatorBridge,
    CeremonyOrchestrator,
    MemorySessionStore,
    RelyingPartyClient,
)

RP_BASE_URL = "http://rp.example.com/api"
_SESSION_COOKIE = "rp_session"


@dataclass
class RelyingPartyState:
    """Knobs and observations of the stand-in relying party."""

    allowed_emails: set[str] | None = None
    verify_success: bool = True
    verify_message: str | None = None
    login_email: str | None = "a@b.com"
    login_display_name: str | None = None
    unstructured_failures: dict[str, int] = field(default_factory=dict)
    calls: list[str] = field(default_factory=list)
    bodies: list[dict[str, Any]] = field(default_factory=list)
    issued_sessions: set[str] = field(default_factory=set)


def build_relying_party_app(state: RelyingPartyState) -> FastAPI:
    """Serve the four ceremony endpoints the way a WebAuthn backend does."""
    rp = FastAPI()

    async def _record(request: Request, name: str) -> Response | None:
        state.calls.append(name)
        raw = await request.body()
        state.bodies.append(await request.json() if raw else {})
        status_code = state.unstructured_failures.get(name)
        if status_code is not None:
            return PlainTextResponse("upstream unavailable", status_code=status_code)
        return None

    def _issue_session(response: Response) -> None:
        token = secrets.token_urlsafe(8)
        state.issued_sessions.add(token)
        response.set_cookie(_SESSION_COOKIE, token, path="/")

    def _missing_session(request: Request) -> JSONResponse | None:
        if request.cookies.get(_SESSION_COOKIE) in state.issued_sessions:
            return None
        return JSONResponse({"message": "Ceremony session not found."}, status_code=400)

    def _verdict() -> dict[str, Any]:
        if not state.verify_success:
            return {"success": False, "message": state.verify_message}
        return {"success": True, "message": "Verified."}

    @rp.post("/api/register/options")
    async def register_options(request: Request) -> Response:
        failure = await _record(request, "register/options")
        if failure is not None:
            return failure
        email = state.bodies[-1].get("email")
        if state.allowed_emails is not None and email not in state.allowed_emails:
            return JSONResponse(
                {"message": "This email address is not allowed to register."},
                status_code=403,
            )
        response = JSONResponse(
            {
                "challenge": secrets.token_urlsafe(32),
                "rp": {"name": "Passkey Sample App", "id": "localhost"},
                "user": {"id": "dXNlcg", "name": email, "displayName": email},
                "pubKeyCredParams": [{"type": "public-key", "alg": -7}],
                "timeout": 60000,
                "attestation": "none",
            },
        )
        _issue_session(response)
        return response

    @rp.post("/api/register/verify")
    async def register_verify(request: Request) -> Response:
        failure = await _record(request, "register/verify")
        if failure is not None:
            return failure
        return _missing_session(request) or JSONResponse(_verdict())

    @rp.post("/api/login/options")
    async def login_options(request: Request) -> Response:
        failure = await _record(request, "login/options")
        if failure is not None:
            return failure
        response = JSONResponse(
            {
                "publicKey": {
                    "challenge": secrets.token_urlsafe(32),
                    "timeout": 60000,
                    "rpId": "localhost",
                    "allowCredentials": [],
                    "userVerification": "preferred",
                },
            },
        )
        _issue_session(response)
        return response

    @rp.post("/api/login/verify")
    async def login_verify(request: Request) -> Response:
        failure = await _record(request, "login/verify")
        if failure is not None:
            return failure
        missing = _missing_session(request)
        if missing is not None:
            return missing
        verdict = _verdict()
        if verdict["success"]:
            verdict["email"] = state.login_email
            if state.login_display_name is not None:
                verdict["displayName"] = state.login_display_name
        return JSONResponse(verdict)

    return rp


class ScriptedPlatform:
    """Platform authenticator returning canned responses or raising on demand."""

    def __init__(self) -> None:
        self.error: BaseException | None = None
        self.attestation: dict[str, Any] = {
            "id": "Y3JlZC0x",
            "rawId": "Y3JlZC0x",
            "type": "public-key",
            "response": {
                "clientDataJSON": "eyJ0eXBlIjoid2ViYXV0aG4uY3JlYXRlIn0",
                "attestationObject": "o2NmbXRkbm9uZQ",
            },
        }
        self.assertion: dict[str, Any] = {
            "id": "Y3JlZC0x",
            "rawId": "Y3JlZC0x",
            "type": "public-key",
            "response": {
                "clientDataJSON": "eyJ0eXBlIjoid2ViYXV0aG4uZ2V0In0",
                "authenticatorData": "SZYN5YgO",
                "signature": "MEUCIQ",
            },
        }
        self.seen_options: list[dict[str, Any]] = []
        self.gate: threading.Event | None = None

    def _run(self, options: dict[str, Any], response: dict[str, Any]) -> dict[str, Any]:
        self.seen_options.append(options)
        if self.gate is not None and not self.gate.wait(timeout=5):
            msg = "gate was never released"
            raise TimeoutError(msg)
        if self.error is not None:
            raise self.error
        return response

    def create_credential(self, options: dict[str, Any]) -> dict[str, Any]:
        return self._run(options, self.attestation)

    def get_assertion(self, options: dict[str, Any]) -> dict[str, Any]:
        return self._run(options, self.assertion)


@pytest.fixture
def rp_state() -> RelyingPartyState:
    """Fresh relying party state."""
    return RelyingPartyState()


@pytest_asyncio.fixture
async def relying_party(
    rp_state: RelyingPartyState,
) -> AsyncIterator[RelyingPartyClient]:
    """Client wired to the in-process relying party."""
    transport = httpx.ASGITransport(app=build_relying_party_app(rp_state))
    async with RelyingPartyClient(RP_BASE_URL, transport=transport) as client:
        yield client


@pytest.fixture
def platform() -> ScriptedPlatform:
    """Scripted platform authenticator."""
    return ScriptedPlatform()


@pytest.fixture
def store() -> MemorySessionStore:
    """Empty in-memory session store."""
    return MemorySessionStore()


@pytest.fixture
def orchestrator(
    relying_party: RelyingPartyClient,
    platform: ScriptedPlatform,
    store: MemorySessionStore,
) -> CeremonyOrchestrator:
    """Orchestrator over the stand-in relying party and scripted platform."""
    return CeremonyOrchestrator(relying_party, AuthenticatorBridge(platform), store)
