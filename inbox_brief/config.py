"""Environment-backed configuration for the mail, summarizer and state layers."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import click

from inbox_brief.errors import ConfigError, MissingCredentialError


APP_NAME = "inbox-brief"

_DEFAULT_IMAP_PORT = 993
_DEFAULT_MAILBOX = "INBOX"
_DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
_DEFAULT_STAGE_TIMEOUT = 60.0
_GEMINI_ENDPOINT = (
    "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
)


def _required(name: str) -> str:
    value = os.environ.get(name, "").strip()
    if not value:
        raise MissingCredentialError(name)
    return value


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive, got {raw!r}")
    return value


def stage_timeout_from_env() -> float:
    """Per-stage network deadline in seconds (REFRESH_STAGE_TIMEOUT_SECONDS)."""
    return _float_env("REFRESH_STAGE_TIMEOUT_SECONDS", _DEFAULT_STAGE_TIMEOUT)


@dataclass(frozen=True)
class MailConfig:
    """IMAP server location and credentials."""

    host: str
    username: str
    password: str = field(repr=False)
    port: int = _DEFAULT_IMAP_PORT
    mailbox: str = _DEFAULT_MAILBOX
    timeout: float = _DEFAULT_STAGE_TIMEOUT

    @classmethod
    def from_env(cls) -> MailConfig:
        """Build MailConfig from IMAP_* environment variables.

        Raises:
            MissingCredentialError: if the server, username or password is unset.
            ConfigError: if IMAP_PORT is not an integer.
        """
        raw_port = os.environ.get("IMAP_PORT", str(_DEFAULT_IMAP_PORT))
        try:
            port = int(raw_port)
        except ValueError as exc:
            raise ConfigError(f"IMAP_PORT must be an integer, got {raw_port!r}") from exc
        return cls(
            host=_required("IMAP_SERVER"),
            username=_required("IMAP_USERNAME"),
            password=_required("IMAP_PASSWORD"),
            port=port,
            mailbox=os.environ.get("IMAP_MAILBOX", _DEFAULT_MAILBOX) or _DEFAULT_MAILBOX,
            timeout=stage_timeout_from_env(),
        )


@dataclass(frozen=True)
class SummarizerConfig:
    """Gemini endpoint settings.  The API key is kept out of repr()."""

    api_key: str = field(repr=False)
    model: str = _DEFAULT_GEMINI_MODEL
    user_name: str = "there"
    timeout: float = _DEFAULT_STAGE_TIMEOUT

    @property
    def endpoint(self) -> str:
        return _GEMINI_ENDPOINT.format(model=self.model)

    @classmethod
    def from_env(cls) -> SummarizerConfig:
        """Build SummarizerConfig from the environment.

        Raises:
            MissingCredentialError: if GEMINI_API_KEY is unset.  This happens
                before any network traffic.
        """
        return cls(
            api_key=_required("GEMINI_API_KEY"),
            model=os.environ.get("GEMINI_MODEL", _DEFAULT_GEMINI_MODEL) or _DEFAULT_GEMINI_MODEL,
            user_name=os.environ.get("BRIEFING_USER_NAME", "there") or "there",
            timeout=stage_timeout_from_env(),
        )


def state_file_path() -> Path:
    """Location of the persisted briefing state.

    INBOX_BRIEF_STATE_PATH wins; otherwise ``state.json`` in the platform's
    per-application config directory as reported by click.
    """
    override = os.environ.get("INBOX_BRIEF_STATE_PATH")
    if override:
        return Path(override).expanduser()
    return Path(click.get_app_dir(APP_NAME)) / "state.json"
