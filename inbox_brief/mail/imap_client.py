"""IMAP client — TLS session setup, date search and batched RFC822 fetch.

imaplib is blocking, so every protocol round-trip runs in a worker thread via
asyncio.to_thread and is bounded by the configured per-stage deadline.
"""

from __future__ import annotations

import asyncio
import imaplib
import logging
import re
import ssl
from collections.abc import AsyncIterator, Callable, Iterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Any, TypeVar

from inbox_brief.config import MailConfig
from inbox_brief.errors import (
    AuthError,
    FetchError,
    MailboxError,
    MailConnectionError,
    SearchError,
    StageTimeoutError,
    TlsError,
)
from inbox_brief.mail.types import RawMessage

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

# IMAP dates use English month abbreviations regardless of the process locale.
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
           "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_SEQ_RE = re.compile(rb"^\s*(\d+)\s")


def previous_day_cutoff(now: datetime | None = None) -> datetime:
    """Return local midnight at the start of the previous calendar day."""
    now = now or datetime.now()
    return datetime.combine(now.date() - timedelta(days=1), time.min)


def imap_date(value: datetime) -> str:
    """Format a date as IMAP SEARCH expects it, e.g. ``17-Oct-2026``."""
    return f"{value.day:02d}-{_MONTHS[value.month - 1]}-{value.year:04d}"


@dataclass(frozen=True)
class FetchedItem:
    """One entry of a FETCH response: either a raw message or a per-item error."""

    sequence: str | None
    raw: RawMessage | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.raw is not None


def iter_fetch_response(data: list[Any]) -> Iterator[FetchedItem]:
    """Walk an imaplib FETCH payload one message at a time.

    imaplib returns a flat list where each message with a literal is a
    ``(envelope, literal)`` tuple followed by a closing ``b")"`` (sometimes
    with trailing attributes such as ``b" FLAGS (\\Seen))"``).  A bytes entry
    that opens a new message but carries no literal is reported as an error
    item rather than raised, so one malformed message never sinks the batch.
    """
    for item in data:
        if isinstance(item, tuple):
            envelope = item[0] if item and isinstance(item[0], bytes) else b""
            sequence = _sequence_number(envelope)
            literal = item[1] if len(item) > 1 else None
            if isinstance(literal, bytes) and literal:
                yield FetchedItem(sequence, raw=literal)
            else:
                yield FetchedItem(sequence, error="empty or missing message literal")
        elif isinstance(item, bytes):
            sequence = _sequence_number(item)
            if sequence is None:
                continue  # closing paren / trailing attributes of the previous item
            yield FetchedItem(sequence, error=f"no message literal in {item[:80]!r}")


def _sequence_number(envelope: bytes) -> str | None:
    match = _SEQ_RE.match(envelope)
    return match.group(1).decode("ascii") if match else None


def _server_text(data: Any) -> str:
    """Best-effort readable text from an imaplib response payload."""
    if isinstance(data, (list, tuple)):
        return " ".join(_server_text(d) for d in data if d is not None)
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return str(data)


class ImapMailClient:
    """Async facade over an authenticated-or-about-to-be imaplib connection.

    Use the ``imap_client()`` context manager to construct and tear down
    correctly; it handles connect, login and logout.
    """

    def __init__(
        self,
        conn: imaplib.IMAP4,
        *,
        mailbox: str = "INBOX",
        timeout: float = 60.0,
    ) -> None:
        self._conn = conn
        self._mailbox = mailbox
        self._timeout = timeout
        self._broken = False

    # ── Public API ─────────────────────────────────────────────────────────────

    async def login(self, username: str, password: str) -> None:
        """Authenticate.  The password is scrubbed from any error text."""
        try:
            await self._run("login", self._conn.login, username, password)
        except imaplib.IMAP4.abort as exc:
            self._broken = True
            raise MailConnectionError(f"Connection lost during login: {exc}") from None
        except imaplib.IMAP4.error as exc:
            reason = str(exc)
            if password:
                reason = reason.replace(password, "***")
            raise AuthError(f"Login rejected for {username}: {reason}") from None
        except OSError as exc:
            self._broken = True
            raise MailConnectionError(f"Connection lost during login: {exc}") from exc
        logger.info("IMAP login succeeded for %s", username)

    async def get_messages_since(self, cutoff: datetime) -> list[RawMessage]:
        """Return every message received on or after ``cutoff``'s date.

        Makes at most three round-trips: SELECT, SEARCH and one batched FETCH.
        An empty search result returns immediately without fetching.
        """
        await self.select_mailbox()
        ids = await self.search_since(cutoff)
        if not ids:
            logger.info("No messages since %s", imap_date(cutoff))
            return []
        logger.info("Found %d message(s) since %s", len(ids), imap_date(cutoff))
        return await self.fetch_messages(ids)

    async def select_mailbox(self) -> int:
        """SELECT the configured mailbox read-only and return its message count."""
        name = f'"{self._mailbox}"' if " " in self._mailbox else self._mailbox
        try:
            typ, data = await self._run("select", self._conn.select, name, True)
        except (imaplib.IMAP4.error, OSError) as exc:
            self._mark_broken(exc)
            raise MailboxError(f"Failed to select {self._mailbox}: {exc}") from exc
        if typ != "OK":
            raise MailboxError(f"Failed to select {self._mailbox}: {_server_text(data)}")
        try:
            return int(data[0])
        except (TypeError, ValueError, IndexError):
            return 0

    async def search_since(self, cutoff: datetime) -> list[bytes]:
        """Return the message sequence numbers matching ``SINCE <cutoff>``."""
        criterion = f"SINCE {imap_date(cutoff)}"
        try:
            typ, data = await self._run("search", self._conn.search, None, criterion)
        except (imaplib.IMAP4.error, OSError) as exc:
            self._mark_broken(exc)
            raise SearchError(f"Failed to search inbox: {exc}") from exc
        if typ != "OK":
            raise SearchError(f"Failed to search inbox: {_server_text(data)}")
        if not data or not data[0]:
            return []
        return data[0].split()

    async def fetch_messages(self, ids: list[bytes]) -> list[RawMessage]:
        """Fetch full RFC822 content for ``ids`` in one batched request.

        Individual bad entries are logged and skipped; only a broken channel
        or a rejected command raises FetchError.
        """
        sequence_set = ",".join(i.decode("ascii") for i in ids)
        try:
            typ, data = await self._run("fetch", self._conn.fetch, sequence_set, "(RFC822)")
        except (imaplib.IMAP4.error, OSError) as exc:
            self._mark_broken(exc)
            raise FetchError(f"Failed to fetch emails: {exc}") from exc
        if typ != "OK":
            raise FetchError(f"Failed to fetch emails: {_server_text(data)}")

        messages: list[RawMessage] = []
        for item in iter_fetch_response(data or []):
            if item.ok:
                messages.append(item.raw)  # type: ignore[arg-type]
            else:
                logger.warning(
                    "Error fetching message %s: %s — skipping",
                    item.sequence or "?",
                    item.error,
                )
        logger.info("Fetched %d of %d message(s)", len(messages), len(ids))
        return messages

    async def close(self) -> None:
        """LOGOUT, or just drop the socket if the channel is already unusable."""
        try:
            if self._broken:
                await asyncio.to_thread(self._conn.shutdown)
            else:
                await self._run("logout", self._conn.logout)
        except (imaplib.IMAP4.error, OSError, StageTimeoutError) as exc:
            logger.debug("Ignoring error while closing IMAP session: %s", exc)

    # ── Internal helpers ───────────────────────────────────────────────────────

    def _mark_broken(self, exc: BaseException) -> None:
        if isinstance(exc, (imaplib.IMAP4.abort, OSError)):
            self._broken = True

    async def _run(self, stage: str, func: Callable[..., _T], *args: Any) -> _T:
        """Run a blocking imaplib call in a thread under the stage deadline."""
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args), timeout=self._timeout
            )
        except (asyncio.TimeoutError, TimeoutError):
            self._broken = True
            raise StageTimeoutError(f"IMAP {stage}", self._timeout) from None


def _open_connection(config: MailConfig) -> imaplib.IMAP4_SSL:
    """Open the TLS connection and read the server greeting (blocking)."""
    context = ssl.create_default_context()
    try:
        return imaplib.IMAP4_SSL(
            config.host, config.port, ssl_context=context, timeout=config.timeout
        )
    except ssl.SSLError as exc:
        raise TlsError(f"Failed to establish TLS connection to {config.host}: {exc}") from exc
    except TimeoutError:
        raise
    except OSError as exc:
        raise MailConnectionError(
            f"Failed to connect to IMAP server {config.host}:{config.port}: {exc}"
        ) from exc
    except imaplib.IMAP4.error as exc:
        raise MailConnectionError(f"Unexpected greeting from {config.host}: {exc}") from exc


@asynccontextmanager
async def imap_client(config: MailConfig) -> AsyncIterator[ImapMailClient]:
    """Async context manager that yields a logged-in ImapMailClient.

    One outbound connection per call and no retry; the caller decides whether
    to retry the whole refresh.

    Example::

        async with imap_client(MailConfig.from_env()) as client:
            raw = await client.get_messages_since(previous_day_cutoff())
    """
    try:
        conn = await asyncio.wait_for(
            asyncio.to_thread(_open_connection, config), timeout=config.timeout
        )
    except (asyncio.TimeoutError, TimeoutError):
        raise StageTimeoutError("IMAP connect", config.timeout) from None
    logger.debug("Connected to %s:%d", config.host, config.port)

    client = ImapMailClient(conn, mailbox=config.mailbox, timeout=config.timeout)
    try:
        await client.login(config.username, config.password)
        yield client
    finally:
        await client.close()
