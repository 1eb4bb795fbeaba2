"""Exception taxonomy for a briefing refresh.

Every class here is fatal to the refresh that raised it.  The pipeline turns
them into a single human-readable string; per-message problems never get this
far (they are logged and skipped inside the fetcher/extractor).
"""


class RefreshError(Exception):
    """Base class for anything that aborts a refresh."""


# ── Configuration ─────────────────────────────────────────────────────────────


class ConfigError(RefreshError):
    """Raised when required configuration is missing or malformed."""


class MissingCredentialError(ConfigError):
    """Raised when a credential environment variable is not set."""

    def __init__(self, variable: str) -> None:
        super().__init__(f"{variable} is not set")
        self.variable = variable


# ── Mail retrieval ────────────────────────────────────────────────────────────


class MailError(RefreshError):
    """Base class for IMAP retrieval failures."""


class MailConnectionError(MailError):
    """Raised when the TCP connection to the IMAP server cannot be opened."""


class TlsError(MailError):
    """Raised on TLS handshake, certificate or hostname verification failure."""


class AuthError(MailError):
    """Raised when the server rejects the login.  Never carries the password."""


class MailboxError(MailError):
    """Raised when SELECT on the mailbox is rejected."""


class SearchError(MailError):
    """Raised when SEARCH is rejected or the channel breaks during it."""


class FetchError(MailError):
    """Raised when the FETCH channel itself breaks (not for single bad messages)."""


# ── Summarization ─────────────────────────────────────────────────────────────


class SummarizerError(RefreshError):
    """Base class for generative-text endpoint failures."""


class NetworkError(SummarizerError):
    """Raised when the HTTP request could not be sent or the response not read."""


class ApiError(SummarizerError):
    """Raised when the endpoint answers with a non-success status."""

    def __init__(self, status: int) -> None:
        super().__init__(f"Failed to parse response (HTTP {status})")
        self.status = status


class ParseError(SummarizerError):
    """Raised when a success response does not match the expected structure."""


class EmptyResultError(SummarizerError):
    """Raised when a well-formed response contains no candidate answer."""


# ── Deadlines ─────────────────────────────────────────────────────────────────


class StageTimeoutError(RefreshError):
    """Raised when a network stage does not finish within its deadline."""

    def __init__(self, stage: str, seconds: float) -> None:
        super().__init__(f"Timed out after {seconds:g}s during {stage}")
        self.stage = stage
        self.seconds = seconds
