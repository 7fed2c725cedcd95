"""CLI relying-party settings and local state locations."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path

from passgate_core import DEFAULT_RP_URL, validate_base_url

_CONFIG_DIRNAME = ".passgate"
_CONFIG_FILENAME = "cli-config.json"
_SESSION_FILENAME = "session.json"
_DEFAULT_ORIGIN = "http://localhost:3000"
_DEFAULT_TIMEOUT_SECONDS = 30.0

RP_URL_ENV = "PASSGATE_RP_URL"
ORIGIN_ENV = "PASSGATE_ORIGIN"


@dataclass
class ClientConfig:
    """Persistent relying-party settings for CLI ceremonies."""

    rp_url: str = DEFAULT_RP_URL
    origin: str = _DEFAULT_ORIGIN
    timeout_seconds: float = _DEFAULT_TIMEOUT_SECONDS


def config_dir() -> Path:
    """Return the per-user state directory ~/.passgate/."""
    return Path.home() / _CONFIG_DIRNAME


def client_config_path() -> Path:
    """Return the config file path under ~/.passgate/."""
    return config_dir() / _CONFIG_FILENAME


def session_path() -> Path:
    """Return the session record path under ~/.passgate/."""
    return config_dir() / _SESSION_FILENAME


def _text_or_default(value: object, default: str) -> str:
    if not isinstance(value, str) or not value.strip():
        return default
    return value.strip()


def load_client_config() -> ClientConfig:
    """Load config from disk, returning defaults when missing/invalid."""
    path = client_config_path()
    payload: object = {}
    if path.exists():
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            payload = {}
    if not isinstance(payload, dict):
        payload = {}

    timeout = payload.get("timeout_seconds", _DEFAULT_TIMEOUT_SECONDS)
    if isinstance(timeout, bool) or not isinstance(timeout, int | float) or timeout <= 0:
        timeout = _DEFAULT_TIMEOUT_SECONDS

    return ClientConfig(
        rp_url=_text_or_default(payload.get("rp_url"), ClientConfig.rp_url),
        origin=_text_or_default(payload.get("origin"), ClientConfig.origin),
        timeout_seconds=float(timeout),
    )


def save_client_config(config: ClientConfig) -> Path:
    """Persist config to ~/.passgate/cli-config.json."""
    path = client_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(asdict(config), indent=2), encoding="utf-8")
    return path


def effective_config() -> ClientConfig:
    """Return the persisted config with environment overrides applied."""
    config = load_client_config()
    return ClientConfig(
        rp_url=_text_or_default(os.environ.get(RP_URL_ENV), config.rp_url),
        origin=_text_or_default(os.environ.get(ORIGIN_ENV), config.origin),
        timeout_seconds=config.timeout_seconds,
    )


def resolve_rp_url(config: ClientConfig) -> str:
    """Return the relying-party base URL, raising ValueError when unusable."""
    return validate_base_url(config.rp_url)
