"""MIME content extraction — one raw message in, one EmailRecord out.

Real-world mail is inconsistently structured: plain text at the top level,
multipart/alternative with both HTML and plain text, or attachment-only
messages.  The body-selection order below prefers plain text because it
summarizes best, and it never gives up on a message just because one part is
malformed.
"""

from __future__ import annotations

import email
import logging
from email.header import Header, decode_header, make_header
from email.message import Message

from inbox_brief.mail.types import (
    NO_BODY,
    NO_SUBJECT,
    UNKNOWN_SENDER,
    EmailRecord,
    RawMessage,
)

logger = logging.getLogger(__name__)


def extract_record(raw: RawMessage) -> EmailRecord:
    """Parse ``raw`` and return its subject, sender and best-effort body.

    Never raises: a structural parse failure yields a record made entirely
    of sentinel values.
    """
    try:
        msg = email.message_from_bytes(raw)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Could not parse message (%d bytes): %s", len(raw), exc)
        return EmailRecord(subject=NO_SUBJECT, sender=UNKNOWN_SENDER, body=NO_BODY)

    return EmailRecord(
        subject=header_value(msg, "Subject") or NO_SUBJECT,
        sender=header_value(msg, "From") or UNKNOWN_SENDER,
        body=extract_body(msg),
    )


def header_value(msg: Message, name: str) -> str | None:
    """Return the first ``name`` header, RFC 2047-decoded, or None if absent.

    Header names are matched case-insensitively by email.message.Message.
    """
    value = msg.get(name)
    if value is None:
        return None
    if isinstance(value, Header):
        # Raw 8-bit header bytes (e.g. SMTPUTF8 mail) come back as unknown-8bit chunks.
        text = "".join(_decode_chunk(data, charset) for data, charset in decode_header(value))
    else:
        try:
            text = str(make_header(decode_header(value)))
        except (LookupError, UnicodeError, ValueError):
            # Unknown charset or broken encoded-word: keep the raw header text.
            text = value
    text = " ".join(text.split())
    return text or None


def _decode_chunk(data: bytes | str, charset: str | None) -> str:
    if isinstance(data, str):
        return data
    if not charset or charset == "unknown-8bit":
        charset = "utf-8"
    try:
        return data.decode(charset, errors="replace")
    except LookupError:
        return data.decode("utf-8", errors="replace")


def extract_body(msg: Message) -> str:
    """Apply the body-selection policy and return non-empty text.

    In order, the first that applies wins:

    1. the top-level part itself when it is any ``text/*``;
    2. the first direct child that is exactly ``text/plain``;
    3. the first direct child that is any ``text/*``;
    4. the top-level payload decoded as-is.

    Whatever is selected, an empty result or a decoding failure becomes
    the ``(No Body)`` sentinel.
    """
    part = _select_body_part(msg)
    try:
        body = _decode_payload(part)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Could not decode %s body: %s", part.get_content_type(), exc)
        return NO_BODY
    return body if body.strip() else NO_BODY


def _select_body_part(msg: Message) -> Message:
    if msg.get_content_maintype() == "text":
        return msg

    children = _direct_children(msg)
    for child in children:
        if child.get_content_type() == "text/plain":
            return child
    for child in children:
        if child.get_content_maintype() == "text":
            return child
    return msg


def _direct_children(msg: Message) -> list[Message]:
    if not msg.is_multipart():
        return []
    payload = msg.get_payload()
    if not isinstance(payload, list):
        return []
    return [p for p in payload if isinstance(p, Message)]


def _decode_payload(part: Message) -> str:
    """Undo the transfer encoding and decode with the declared charset."""
    if part.is_multipart():
        return ""
    payload = part.get_payload(decode=True)
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    charset = part.get_content_charset() or "utf-8"
    try:
        return payload.decode(charset, errors="replace")
    except LookupError:
        return payload.decode("utf-8", errors="replace")
