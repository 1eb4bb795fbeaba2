"""Tests for extract_record — body-selection policy and header fallbacks."""

from unittest.mock import patch

from inbox_brief.mail.extractor import extract_record
from inbox_brief.mail.types import NO_BODY, NO_SUBJECT, UNKNOWN_SENDER, EmailRecord


def _multipart(subtype: str, *parts: tuple[str, bytes]) -> bytes:
    chunks = [
        b"From: carol@example.com\r\n",
        b"Subject: Multipart\r\n",
        b"MIME-Version: 1.0\r\n",
        f'Content-Type: multipart/{subtype}; boundary="SEP"\r\n'.encode(),
        b"\r\n",
    ]
    for ctype, body in parts:
        chunks += [b"--SEP\r\n", f"Content-Type: {ctype}\r\n".encode(), b"\r\n", body, b"\r\n"]
    chunks.append(b"--SEP--\r\n")
    return b"".join(chunks)


# ── Headers ─────────────────────────────────────────────────────────────────────


class TestHeaders:
    def test_subject_and_sender(self, plain_message: bytes) -> None:
        record = extract_record(plain_message)
        assert record.subject == "Q2 budget review"
        assert record.sender == "Alice <alice@example.com>"

    def test_header_names_are_case_insensitive(self) -> None:
        raw = b"SUBJECT: shouting\r\nfrom: quiet@example.com\r\n\r\nbody\r\n"
        record = extract_record(raw)
        assert record.subject == "shouting"
        assert record.sender == "quiet@example.com"

    def test_first_occurrence_wins(self) -> None:
        raw = b"Subject: first\r\nSubject: second\r\nFrom: a@b.c\r\n\r\nbody\r\n"
        assert extract_record(raw).subject == "first"

    def test_missing_headers_use_sentinels(self) -> None:
        record = extract_record(b"X-Other: 1\r\n\r\nJust a body.\r\n")
        assert record.subject == NO_SUBJECT
        assert record.sender == UNKNOWN_SENDER
        assert record.body == "Just a body.\r\n"

    def test_encoded_word_subject_is_decoded(self) -> None:
        raw = (
            b"Subject: =?utf-8?q?Caf=C3=A9_meeting?=\r\n"
            b"From: a@b.c\r\n\r\nbody\r\n"
        )
        assert extract_record(raw).subject == "Café meeting"

    def test_raw_utf8_headers_are_decoded(self) -> None:
        raw = "Subject: Café réunion\r\nFrom: Zoë <zoe@example.com>\r\n\r\nbody\r\n".encode()
        record = extract_record(raw)
        assert record.subject == "Café réunion"
        assert record.sender == "Zoë <zoe@example.com>"

    def test_invalid_raw_header_bytes_are_replaced(self) -> None:
        raw = b"Subject: bad \xff byte\r\nFrom: a@b.c\r\n\r\nbody\r\n"
        assert extract_record(raw).subject == "bad \ufffd byte"

    def test_folded_subject_is_unfolded(self) -> None:
        raw = b"Subject: a long\r\n subject line\r\nFrom: a@b.c\r\n\r\nbody\r\n"
        assert extract_record(raw).subject == "a long subject line"


# ── Body selection ──────────────────────────────────────────────────────────────


class TestBodySelection:
    def test_plain_text_body_returned_unchanged(self, plain_message: bytes) -> None:
        body = extract_record(plain_message).body
        assert body == "Please review the budget figures by Friday.\r\n"

    def test_top_level_html_is_used_directly(self) -> None:
        raw = b"Subject: s\r\nFrom: f\r\nContent-Type: text/html\r\n\r\n<p>Hi</p>\r\n"
        assert extract_record(raw).body == "<p>Hi</p>\r\n"

    def test_prefers_plain_child_over_earlier_html(self, alternative_message: bytes) -> None:
        assert extract_record(alternative_message).body == "The review is at 4pm."

    def test_plain_child_in_mixed_with_binary(self) -> None:
        raw = _multipart(
            "mixed",
            ("application/octet-stream", b"\x00\x01\x02"),
            ("text/html", b"<p>html</p>"),
            ("text/plain", b"plain wins"),
        )
        assert extract_record(raw).body == "plain wins"

    def test_falls_back_to_any_text_child(self) -> None:
        raw = _multipart(
            "mixed",
            ("image/png", b"PNGDATA"),
            ("text/html", b"<p>only html</p>"),
        )
        assert extract_record(raw).body == "<p>only html</p>"

    def test_nested_plain_part_is_not_a_direct_child(self) -> None:
        inner = (
            b'Content-Type: multipart/alternative; boundary="IN"\r\n\r\n'
            b"--IN\r\nContent-Type: text/plain\r\n\r\nnested\r\n--IN--"
        )
        raw = (
            b"From: a@b.c\r\nSubject: s\r\nMIME-Version: 1.0\r\n"
            b'Content-Type: multipart/mixed; boundary="OUT"\r\n\r\n'
            b"--OUT\r\n" + inner + b"\r\n"
            b"--OUT\r\nContent-Type: text/html\r\n\r\n<i>top html</i>\r\n"
            b"--OUT--\r\n"
        )
        assert extract_record(raw).body == "<i>top html</i>"

    def test_attachment_only_yields_sentinel(self, attachment_only_message: bytes) -> None:
        record = extract_record(attachment_only_message)
        assert record.body == NO_BODY
        assert record.subject == "Scan"

    def test_single_part_binary_is_decoded_as_is(self) -> None:
        raw = (
            b"Subject: s\r\nFrom: f\r\nContent-Type: application/octet-stream\r\n"
            b"\r\nraw bytes here\r\n"
        )
        assert extract_record(raw).body == "raw bytes here\r\n"

    def test_empty_text_body_yields_sentinel(self) -> None:
        raw = b"Subject: s\r\nFrom: f\r\nContent-Type: text/plain\r\n\r\n   \r\n"
        assert extract_record(raw).body == NO_BODY


# ── Decoding ────────────────────────────────────────────────────────────────────


class TestDecoding:
    def test_quoted_printable_with_charset(self) -> None:
        raw = (
            b"Subject: s\r\nFrom: f\r\n"
            b"Content-Type: text/plain; charset=iso-8859-1\r\n"
            b"Content-Transfer-Encoding: quoted-printable\r\n\r\n"
            b"Gr=FC=DFe\r\n"
        )
        assert extract_record(raw).body.strip() == "Grüße"

    def test_base64_child_part(self) -> None:
        raw = (
            b"From: a@b.c\r\nSubject: s\r\nMIME-Version: 1.0\r\n"
            b'Content-Type: multipart/mixed; boundary="Q"\r\n\r\n'
            b"--Q\r\nContent-Type: text/plain; charset=utf-8\r\n"
            b"Content-Transfer-Encoding: base64\r\n\r\n"
            b"aGVsbG8gd29ybGQ=\r\n--Q--\r\n"
        )
        assert extract_record(raw).body == "hello world"

    def test_unknown_charset_falls_back_to_utf8(self) -> None:
        raw = (
            b"Subject: s\r\nFrom: f\r\n"
            b"Content-Type: text/plain; charset=x-made-up\r\n\r\n"
            b"caf\xc3\xa9\r\n"
        )
        assert extract_record(raw).body == "café\r\n"

    def test_invalid_bytes_are_replaced(self) -> None:
        raw = b"Subject: s\r\nFrom: f\r\nContent-Type: text/plain; charset=utf-8\r\n\r\nbad \xff byte\r\n"
        assert extract_record(raw).body == "bad � byte\r\n"


# ── Degradation ─────────────────────────────────────────────────────────────────


class TestDegradation:
    def test_parse_failure_yields_all_sentinels(self) -> None:
        with patch("inbox_brief.mail.extractor.email.message_from_bytes", side_effect=ValueError("boom")):
            record = extract_record(b"whatever")
        assert record == EmailRecord(NO_SUBJECT, UNKNOWN_SENDER, NO_BODY)

    def test_garbage_input_does_not_raise(self) -> None:
        record = extract_record(b"\x00\xff\xfe not an email at all")
        assert isinstance(record, EmailRecord)
        assert record.body

    def test_decode_failure_yields_sentinel(self, plain_message: bytes) -> None:
        with patch("inbox_brief.mail.extractor._decode_payload", side_effect=RuntimeError("bad")):
            assert extract_record(plain_message).body == NO_BODY
