"""CLI entry point using Typer."""

import asyncio
import json
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Annotated, Any

import typer
from fido2.client import UserInteraction
from passgate_core import (
    AuthenticatorBridge,
    CeremonyOrchestrator,
    CeremonyResult,
    CeremonyState,
    CeremonyStatus,
    FileSessionStore,
    Fido2PlatformAuthenticator,
    PlatformAuthenticator,
    RelyingPartyClient,
    SessionStore,
)

from passgate.endpoint_config import (
    ClientConfig,
    effective_config,
    load_client_config,
    resolve_rp_url,
    save_client_config,
    session_path,
)
from passgate.logging_utils import setup_logging

app = typer.Typer(help="Passgate CLI - Passkey registration and sign-in")
config_app = typer.Typer(help="Relying party connection settings")

app.add_typer(config_app, name="config")

_PROGRESS_MESSAGES: dict[CeremonyState, str] = {
    CeremonyState.AWAITING_CHALLENGE: "Requesting a challenge from the server...",
    CeremonyState.AWAITING_AUTHENTICATOR: (
        "Waiting for the authenticator. Follow the prompt on your device."
    ),
    CeremonyState.VERIFYING: "Verifying with the server...",
}


class CliInteraction(UserInteraction):
    """Terminal prompts for authenticator presence, PIN and verification."""

    def prompt_up(self) -> None:
        """Ask the user to touch the authenticator."""
        typer.echo("Touch your authenticator to continue.", err=True)

    def request_pin(self, permissions: object, rp_id: str | None) -> str | None:
        """Read the authenticator PIN without echoing it."""
        _ = permissions, rp_id
        return typer.prompt("Authenticator PIN", hide_input=True)

    def request_uv(self, permissions: object, rp_id: str | None) -> bool:
        """Allow built-in user verification."""
        _ = permissions, rp_id
        return True


def handle_cli_errors[R](func: Callable[..., R]) -> Callable[..., R]:
    """Handle common CLI errors.

    Wraps CLI commands to catch known exceptions and print user-friendly error messages.

    Args:
        func: The CLI command function to wrap.

    Returns:
        The wrapped function with error handling.

    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> R:
        try:
            return func(*args, **kwargs)
        except typer.Exit:
            raise
        except Exception as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(code=1) from e

    return wrapper


def _session_store() -> SessionStore:
    return FileSessionStore(session_path())


def _platform_authenticator(config: ClientConfig) -> PlatformAuthenticator:
    return Fido2PlatformAuthenticator(config.origin, user_interaction=CliInteraction())


def _relying_party(config: ClientConfig) -> RelyingPartyClient:
    return RelyingPartyClient(
        resolve_rp_url(config),
        timeout_seconds=config.timeout_seconds,
    )


def _echo_progress(status: CeremonyStatus) -> None:
    message = _PROGRESS_MESSAGES.get(status.state)
    if message is not None:
        typer.echo(message, err=True)


async def _with_orchestrator[T](
    action: Callable[[CeremonyOrchestrator], Awaitable[T]],
) -> T:
    config = effective_config()
    async with _relying_party(config) as relying_party:
        orchestrator = CeremonyOrchestrator(
            relying_party,
            AuthenticatorBridge(_platform_authenticator(config)),
            _session_store(),
        )
        orchestrator.subscribe(_echo_progress)
        return await action(orchestrator)


def _raise_for_result(result: CeremonyResult) -> None:
    error = result.error
    if result.success or error is None:
        return
    if not error.alarming:
        typer.echo(error.detail, err=True)
        raise typer.Exit(code=1)
    raise error


@app.command("register")
@handle_cli_errors
def cmd_register(
    email: Annotated[str, typer.Argument(help="Email address of the new account")],
) -> None:
    """Register a new passkey for EMAIL."""
    setup_logging()

    async def _register(orchestrator: CeremonyOrchestrator) -> CeremonyStatus:
        _raise_for_result(await orchestrator.register(email))
        return orchestrator.status

    status = asyncio.run(_with_orchestrator(_register))
    typer.echo(status.notice)


@app.command("login")
@handle_cli_errors
def cmd_login() -> None:
    """Sign in with a registered passkey."""
    setup_logging()

    async def _login(orchestrator: CeremonyOrchestrator) -> CeremonyResult:
        result = await orchestrator.authenticate()
        _raise_for_result(result)
        return result

    result = asyncio.run(_with_orchestrator(_login))
    if result.identity is not None:
        typer.echo(f"Signed in as {result.identity.label} <{result.identity.email}>")


@app.command("logout")
@handle_cli_errors
def cmd_logout() -> None:
    """Sign out and forget the stored session."""
    setup_logging()

    async def _logout(orchestrator: CeremonyOrchestrator) -> None:
        orchestrator.logout()

    asyncio.run(_with_orchestrator(_logout))
    typer.echo("Signed out.")


@app.command("whoami")
@handle_cli_errors
def cmd_whoami() -> None:
    """Show the signed-in identity."""
    setup_logging()

    async def _whoami(orchestrator: CeremonyOrchestrator) -> dict[str, Any]:
        session = orchestrator.session
        if session is None:
            return {"authenticated": False}
        return {
            "authenticated": True,
            "email": session.identity.email,
            "displayName": session.identity.label,
            "establishedAt": session.established_at.isoformat(),
        }

    typer.echo(json.dumps(asyncio.run(_with_orchestrator(_whoami)), indent=2))


@config_app.command("show")
@handle_cli_errors
def cmd_config_show() -> None:
    """Show the relying party settings in effect."""
    setup_logging()
    config = effective_config()
    typer.echo(
        json.dumps(
            {
                "rp_url": config.rp_url,
                "origin": config.origin,
                "timeout_seconds": config.timeout_seconds,
            },
            indent=2,
        ),
    )


@config_app.command("set")
@handle_cli_errors
def cmd_config_set(
    rp_url: Annotated[
        str | None,
        typer.Option(help="Relying party API base URL"),
    ] = None,
    origin: Annotated[
        str | None,
        typer.Option(help="WebAuthn origin presented to the authenticator"),
    ] = None,
    timeout: Annotated[
        float | None,
        typer.Option(help="HTTP timeout in seconds"),
    ] = None,
) -> None:
    """Persist relying party settings to ~/.passgate/."""
    setup_logging()
    current = load_client_config()
    config = ClientConfig(
        rp_url=(rp_url or "").strip() or current.rp_url,
        origin=(origin or "").strip() or current.origin,
        timeout_seconds=current.timeout_seconds if timeout is None else timeout,
    )
    try:
        resolve_rp_url(config)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc
    if config.timeout_seconds <= 0:
        msg = "timeout must be greater than zero"
        raise typer.BadParameter(msg)

    path = save_client_config(config)
    typer.echo(f"Saved client config to {path}")
