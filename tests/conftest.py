"""Shared pytest fixtures."""

from pathlib import Path

import pytest

from inbox_brief.briefing.state import StateStore


@pytest.fixture
def plain_message() -> bytes:
    """A single-part text/plain message."""
    return (
        b"From: Alice <alice@example.com>\r\n"
        b"To: me@example.com\r\n"
        b"Subject: Q2 budget review\r\n"
        b"Content-Type: text/plain; charset=utf-8\r\n"
        b"\r\n"
        b"Please review the budget figures by Friday.\r\n"
    )


@pytest.fixture
def alternative_message() -> bytes:
    """multipart/alternative with HTML first and plain text second."""
    return (
        b"From: bob@example.com\r\n"
        b"Subject: Design review\r\n"
        b"MIME-Version: 1.0\r\n"
        b'Content-Type: multipart/alternative; boundary="XYZ"\r\n'
        b"\r\n"
        b"--XYZ\r\n"
        b"Content-Type: text/html; charset=utf-8\r\n"
        b"\r\n"
        b"<p>The review is at <b>4pm</b>.</p>\r\n"
        b"--XYZ\r\n"
        b"Content-Type: text/plain; charset=utf-8\r\n"
        b"\r\n"
        b"The review is at 4pm.\r\n"
        b"--XYZ--\r\n"
    )


@pytest.fixture
def attachment_only_message() -> bytes:
    """multipart/mixed carrying nothing but a PDF."""
    return (
        b"From: scanner@example.com\r\n"
        b"Subject: Scan\r\n"
        b"MIME-Version: 1.0\r\n"
        b'Content-Type: multipart/mixed; boundary="B"\r\n'
        b"\r\n"
        b"--B\r\n"
        b"Content-Type: application/pdf\r\n"
        b"Content-Transfer-Encoding: base64\r\n"
        b"\r\n"
        b"JVBERi0xLjQK\r\n"
        b"--B--\r\n"
    )


@pytest.fixture
def state_store(tmp_path: Path) -> StateStore:
    return StateStore(tmp_path / "config" / "state.json")
