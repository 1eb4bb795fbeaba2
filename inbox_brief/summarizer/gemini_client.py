"""Gemini generateContent client — one prompt in, one briefing out."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from inbox_brief.config import SummarizerConfig
from inbox_brief.errors import (
    ApiError,
    EmptyResultError,
    NetworkError,
    ParseError,
    StageTimeoutError,
)
from inbox_brief.summarizer.prompts import build_briefing_prompt

logger = logging.getLogger(__name__)


# ── Response model ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Part:
    text: str


@dataclass(frozen=True)
class Content:
    parts: list[Part]


@dataclass(frozen=True)
class Candidate:
    content: Content
    finish_reason: str | None = None


@dataclass(frozen=True)
class GenerateResponse:
    """The subset of a generateContent response this client relies on.

    ``candidates`` is optional on the wire (blocked prompts omit it);
    within a candidate, ``content.parts[].text`` is required.
    """

    candidates: list[Candidate] = field(default_factory=list)
    block_reason: str | None = None

    def first_text(self) -> str | None:
        """Concatenate the first candidate's text parts, or None if there is none."""
        if not self.candidates:
            return None
        return "".join(p.text for p in self.candidates[0].content.parts)


def build_request(prompt: str) -> dict[str, Any]:
    """Request body for a single-turn generateContent call."""
    return {"contents": [{"parts": [{"text": prompt}]}]}


def parse_generate_response(data: Any) -> GenerateResponse:
    """Validate a decoded JSON body and convert it into a GenerateResponse.

    Raises:
        ParseError: if a required field is missing or has the wrong type.
    """
    if not isinstance(data, dict):
        raise ParseError(f"Failed to parse response: expected an object, got {type(data).__name__}")

    raw_candidates = data.get("candidates", [])
    if not isinstance(raw_candidates, list):
        raise ParseError("Failed to parse response: 'candidates' is not a list")

    feedback = data.get("promptFeedback")
    block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None

    return GenerateResponse(
        candidates=[_parse_candidate(i, c) for i, c in enumerate(raw_candidates)],
        block_reason=str(block_reason) if block_reason else None,
    )


def _parse_candidate(index: int, data: Any) -> Candidate:
    where = f"candidates[{index}]"
    if not isinstance(data, dict):
        raise ParseError(f"Failed to parse response: {where} is not an object")
    content = data.get("content")
    if not isinstance(content, dict):
        raise ParseError(f"Failed to parse response: {where}.content is missing")
    parts = content.get("parts")
    if not isinstance(parts, list):
        raise ParseError(f"Failed to parse response: {where}.content.parts is missing")

    parsed_parts: list[Part] = []
    for j, part in enumerate(parts):
        text = part.get("text") if isinstance(part, dict) else None
        if not isinstance(text, str):
            raise ParseError(
                f"Failed to parse response: {where}.content.parts[{j}].text is missing"
            )
        parsed_parts.append(Part(text=text))

    finish_reason = data.get("finishReason")
    return Candidate(
        content=Content(parts=parsed_parts),
        finish_reason=str(finish_reason) if finish_reason else None,
    )


# ── Client ────────────────────────────────────────────────────────────────────


class GeminiClient:
    """Sends one prompt to the Gemini endpoint and returns the generated text.

    No retry, no streaming, no conversation state: exactly one HTTP request
    per call.  Pass ``http_client`` to reuse a connection pool (or to inject
    a mock transport in tests); otherwise a client is opened per call.

    Usage::

        client = GeminiClient(SummarizerConfig.from_env())
        briefing = await client.summarize(digest)
    """

    def __init__(
        self,
        config: SummarizerConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._http = http_client

    async def summarize(self, digest: str) -> str:
        """Wrap ``digest`` in the briefing instructions and generate."""
        prompt = build_briefing_prompt(digest, self._config.user_name)
        return await self.generate(prompt)

    async def generate(self, prompt: str) -> str:
        """POST ``prompt`` and return the first candidate's text.

        Raises:
            StageTimeoutError: the request exceeded the configured timeout.
            NetworkError: the request could not be sent or read.
            ApiError: the endpoint returned a non-success status.
            ParseError: the success body does not match the expected shape.
            EmptyResultError: the body is well-formed but has no candidate.
        """
        logger.debug("Gemini → %s (%d prompt chars)", self._config.model, len(prompt))
        if self._http is not None:
            response = await self._post(self._http, prompt)
        else:
            async with httpx.AsyncClient() as http:
                response = await self._post(http, prompt)

        if not response.is_success:
            logger.error("Gemini returned HTTP %d", response.status_code)
            raise ApiError(response.status_code)

        try:
            data = response.json()
        except ValueError as exc:
            raise ParseError(f"Failed to parse response: {exc}") from exc

        parsed = parse_generate_response(data)
        text = parsed.first_text()
        if text is None:
            detail = f" (blocked: {parsed.block_reason})" if parsed.block_reason else ""
            raise EmptyResultError(f"No text generated{detail}")
        logger.info("Gemini returned %d characters", len(text))
        return text

    async def _post(self, http: httpx.AsyncClient, prompt: str) -> httpx.Response:
        try:
            return await http.post(
                self._config.endpoint,
                params={"key": self._config.api_key},
                json=build_request(prompt),
                timeout=self._config.timeout,
            )
        except httpx.TimeoutException:
            raise StageTimeoutError("Gemini request", self._config.timeout) from None
        except httpx.HTTPError as exc:
            reason = str(exc).replace(self._config.api_key, "***")
            raise NetworkError(f"Failed to send request: {reason}") from None
