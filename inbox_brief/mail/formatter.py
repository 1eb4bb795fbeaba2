"""Digest formatter — joins extracted records into one text document."""

from collections.abc import Sequence

from inbox_brief.mail.types import EmailRecord

#: Line placed between consecutive records (never after the last one).
RECORD_SEPARATOR = "-----------\n"


def format_record(record: EmailRecord) -> str:
    return f"Subject: {record.subject}\nFrom: {record.sender}\nBody: {record.body}\n"


def format_digest(records: Sequence[EmailRecord]) -> str:
    """Render ``records`` in order.  An empty input yields an empty string,
    which callers treat as "nothing to summarize".
    """
    return RECORD_SEPARATOR.join(format_record(r) for r in records)
