"""Data types shared across the mail retrieval modules."""

from dataclasses import dataclass

#: One full RFC822 message exactly as returned by IMAP FETCH (headers + body).
RawMessage = bytes

NO_SUBJECT = "(No Subject)"
UNKNOWN_SENDER = "(Unknown Sender)"
NO_BODY = "(No Body)"


@dataclass(frozen=True)
class EmailRecord:
    """Normalized subject/sender/body of one message, ready for the digest.

    Produced by extract_record() and consumed once by format_digest().
    Fields are never empty: missing values carry the sentinel strings above.
    """

    subject: str
    sender: str
    body: str
