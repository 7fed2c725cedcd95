"""Single-slot persistence for the authenticated identity."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol

from .models import Identity, Session, is_valid_email

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    """Storage contract for the current session record."""

    def save(self, identity: Identity) -> None:
        """Persist ``identity``, replacing any previous session."""

    def load(self) -> Identity | None:
        """Return the stored identity, or None when absent or malformed."""

    def session(self) -> Session | None:
        """Return the stored session including its establishment time."""

    def clear(self) -> None:
        """Forget the stored session. Safe to call when nothing is stored."""


def _session_to_record(session: Session) -> dict[str, Any]:
    record: dict[str, Any] = {
        "authenticated": True,
        "email": session.identity.email,
        "establishedAt": session.established_at.isoformat(),
    }
    if session.identity.display_name:
        record["displayName"] = session.identity.display_name
    return record


def _session_from_record(payload: object) -> Session | None:
    if not isinstance(payload, dict):
        return None
    if payload.get("authenticated") is not True:
        return None

    email = payload.get("email")
    if not isinstance(email, str) or email != email.strip() or not is_valid_email(email):
        return None
    display_name = payload.get("displayName")
    if not isinstance(display_name, str) or not display_name.strip():
        display_name = None

    established_at = datetime.now(tz=UTC)
    raw_established = payload.get("establishedAt")
    if isinstance(raw_established, str):
        try:
            established_at = datetime.fromisoformat(raw_established)
        except ValueError:
            return None

    return Session(
        identity=Identity(email=email, display_name=display_name),
        established_at=established_at,
    )


class FileSessionStore:
    """Session record kept as a JSON file that survives process restarts."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path).expanduser()

    def save(self, identity: Identity) -> None:
        """Write the session record atomically."""
        session = Session.start(identity)
        payload = json.dumps(_session_to_record(session), indent=2)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        tmp_path.replace(self.path)
        logger.debug("Saved session record to %s", self.path)

    def session(self) -> Session | None:
        """Read the session record, treating anything unreadable as absent."""
        if not self.path.exists():
            return None
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Ignoring unreadable session record at %s", self.path)
            return None

        session = _session_from_record(payload)
        if session is None:
            logger.warning("Ignoring malformed session record at %s", self.path)
        return session

    def load(self) -> Identity | None:
        """Return the stored identity."""
        session = self.session()
        return None if session is None else session.identity

    def clear(self) -> None:
        """Remove the session record."""
        self.path.unlink(missing_ok=True)
        logger.debug("Cleared session record at %s", self.path)


class MemorySessionStore:
    """In-process session slot for embedding and tests."""

    def __init__(self) -> None:
        self._session: Session | None = None

    def save(self, identity: Identity) -> None:
        """Replace the current session."""
        self._session = Session.start(identity)

    def session(self) -> Session | None:
        """Return the current session."""
        return self._session

    def load(self) -> Identity | None:
        """Return the current identity."""
        return None if self._session is None else self._session.identity

    def clear(self) -> None:
        """Drop the current session."""
        self._session = None
