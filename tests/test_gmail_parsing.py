"""Summary: Tests for Gmail message normalization helpers.

Importance: Ensures Gmail payloads are normalized into readable metadata.
Alternatives: Use integration tests with the live Gmail API.
"""

from __future__ import annotations

import base64

import pytest

from mailbrief.errors import EmailValidationError
from mailbrief.gmail import (
    decode_base64url,
    extract_body_text,
    get_header_value,
    parse_gmail_message,
    strip_html_tags,
)
from mailbrief.models import NO_SUBJECT, EmailId


def _encode(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("utf-8").rstrip("=")


def test_get_header_value_is_case_insensitive() -> None:
    """Summary: Verify header lookup ignores name casing.

    Importance: Some senders emit lower-case header names.
    Alternatives: Normalize header names once at parse time.
    """

    headers = [
        {"name": "subject", "value": "Hello"},
        {"name": "FROM", "value": "sender@example.com"},
    ]
    assert get_header_value(headers, "Subject") == "Hello"
    assert get_header_value(headers, "From") == "sender@example.com"
    assert get_header_value(headers, "To") == ""


def test_extract_body_prefers_plain_text() -> None:
    """Summary: Extract plain text bodies from multipart payloads.

    Importance: Plain text gives the model the cleanest input.
    Alternatives: Fall back to Gmail snippets only.
    """

    payload = {
        "mimeType": "multipart/alternative",
        "parts": [
            {"mimeType": "text/html", "body": {"data": _encode("<p>Hello</p>")}},
            {"mimeType": "text/plain", "body": {"data": _encode("Hello")}},
        ],
    }
    assert extract_body_text(payload) == "Hello"


def test_extract_body_strips_html_when_no_plain_text() -> None:
    payload = {
        "mimeType": "multipart/mixed",
        "parts": [
            {
                "mimeType": "multipart/alternative",
                "parts": [
                    {
                        "mimeType": "text/html",
                        "body": {"data": _encode("<div><b>Invoice</b>\n<p>due Friday</p></div>")},
                    }
                ],
            }
        ],
    }
    assert extract_body_text(payload) == "Invoice due Friday"


def test_extract_body_uses_top_level_body() -> None:
    payload = {"mimeType": "application/octet-stream", "body": {"data": _encode("raw text")}}
    assert extract_body_text(payload) == "raw text"
    assert extract_body_text({}) == ""


def test_decode_base64url_handles_url_safe_alphabet() -> None:
    """Summary: Ensure URL-safe characters and missing padding decode correctly.

    Importance: Gmail never pads its base64url bodies.
    Alternatives: Require callers to pad the data.
    """

    text = "??>>ünïcode"
    encoded = _encode(text)
    assert "=" not in encoded
    assert decode_base64url(encoded) == text


def test_strip_html_tags_collapses_whitespace() -> None:
    assert strip_html_tags("<p>One</p>   <p>Two</p>") == "One Two"


def test_parse_gmail_message_builds_metadata() -> None:
    message = {
        "id": "m1",
        "threadId": "t1",
        "snippet": "Quick question",
        "payload": {
            "mimeType": "text/plain",
            "headers": [
                {"name": "Subject", "value": "  Lunch?  "},
                {"name": "From", "value": "Alice <alice@example.com>"},
                {"name": "To", "value": "me@example.com"},
                {"name": "Date", "value": "Sat, 14 Feb 2026 13:00:00 +0000"},
            ],
            "body": {"data": _encode("Are you free?")},
        },
    }
    metadata = parse_gmail_message(message)
    assert metadata.id == EmailId("m1")
    assert metadata.thread_id == "t1"
    assert metadata.subject == "Lunch?"
    assert metadata.sender == "Alice <alice@example.com>"
    assert metadata.recipients == "me@example.com"
    assert metadata.snippet == "Quick question"
    assert metadata.body_text == "Are you free?"


def test_parse_gmail_message_substitutes_missing_subject() -> None:
    """Summary: Verify a missing Subject header becomes a placeholder.

    Importance: Gmail allows subjectless mail, which must not abort a fetch.
    Alternatives: Drop subjectless messages.
    """

    message = {"id": "m2", "threadId": "t2", "payload": {"headers": []}}
    metadata = parse_gmail_message(message)
    assert metadata.subject == NO_SUBJECT
    assert metadata.body_text == ""


def test_parse_gmail_message_requires_id() -> None:
    with pytest.raises(EmailValidationError):
        parse_gmail_message({"threadId": "t1", "payload": {"headers": []}})


def test_decode_base64url_returns_empty_for_malformed_data() -> None:
    """Summary: Ensure a body with an impossible base64 length decodes to empty text.

    Importance: One corrupt MIME part must not fail the whole unread fetch.
    Alternatives: Drop the message entirely.
    """

    assert decode_base64url("abcde") == ""
    message = {
        "id": "m1",
        "threadId": "t1",
        "payload": {
            "mimeType": "text/plain",
            "headers": [{"name": "Subject", "value": "Broken"}],
            "body": {"data": "abcde"},
        },
    }
    metadata = parse_gmail_message(message)
    assert metadata.subject == "Broken"
    assert metadata.body_text == ""
