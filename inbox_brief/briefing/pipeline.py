"""Refresh pipeline — connect, search, fetch, extract, format, summarize."""

from __future__ import annotations

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable

from inbox_brief.config import MailConfig, SummarizerConfig
from inbox_brief.errors import RefreshError
from inbox_brief.mail.extractor import extract_record
from inbox_brief.mail.formatter import format_digest
from inbox_brief.mail.imap_client import ImapMailClient, imap_client, previous_day_cutoff
from inbox_brief.mail.types import EmailRecord
from inbox_brief.summarizer.gemini_client import GeminiClient

logger = logging.getLogger(__name__)


@runtime_checkable
class Summarizer(Protocol):
    """Anything that turns a non-empty digest into briefing text."""

    async def summarize(self, digest: str) -> str:
        ...


#: Opens an authenticated mail session for a MailConfig.
SessionFactory = Callable[[MailConfig], AbstractAsyncContextManager[ImapMailClient]]


@dataclass(frozen=True)
class RefreshResult:
    """Outcome of one refresh: generated text on success, a message on failure."""

    text: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, text: str) -> RefreshResult:
        return cls(text=text)

    @classmethod
    def failure(cls, message: str) -> RefreshResult:
        return cls(error=message)


class BriefingPipeline:
    """Runs one end-to-end refresh.

    Configuration is resolved lazily on every run so a missing credential
    surfaces as a failed refresh rather than a crash at start-up.  The Gemini
    credential in particular is only read once there is something to send.

    Usage::

        pipeline = BriefingPipeline()
        result = await pipeline.refresh()
    """

    def __init__(
        self,
        mail_config: MailConfig | None = None,
        summarizer: Summarizer | None = None,
        *,
        session_factory: SessionFactory = imap_client,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._mail_config = mail_config
        self._summarizer = summarizer
        self._session_factory = session_factory
        self._clock = clock

    async def refresh(self) -> RefreshResult:
        """Run the pipeline and fold any RefreshError into a failed result."""
        try:
            text = await self.run()
        except RefreshError as exc:
            logger.error("Refresh failed: %s", exc)
            return RefreshResult.failure(str(exc))
        return RefreshResult.success(text)

    async def run(self) -> str:
        """Return briefing text, or ``""`` when there is no qualifying mail.

        Raises:
            RefreshError: any fatal retrieval, configuration or summarization error.
        """
        records = await self.collect_records()
        digest = format_digest(records)
        if not digest:
            logger.info("No qualifying messages — skipping summarization")
            return ""

        summarizer = self._summarizer or GeminiClient(SummarizerConfig.from_env())
        logger.info("Summarizing %d message(s) (%d chars)", len(records), len(digest))
        return await summarizer.summarize(digest)

    async def collect_records(self) -> list[EmailRecord]:
        """Fetch everything since the start of yesterday and extract each message."""
        config = self._mail_config or MailConfig.from_env()
        cutoff = previous_day_cutoff(self._clock())
        async with self._session_factory(config) as client:
            raw_messages = await client.get_messages_since(cutoff)
        return [extract_record(raw) for raw in raw_messages]
