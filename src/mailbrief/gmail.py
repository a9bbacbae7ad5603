"""Summary: Gmail interfaces, REST client, and message pipelines.

Importance: Encapsulates every read and draft call made against Gmail.
Alternatives: Use google-api-python-client directly inside services.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
import re
import time
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from typing import Any

from mailbrief.errors import EmailValidationError, GmailApiError, describe_error
from mailbrief.models import (
    NO_SUBJECT,
    CreatedReplyDraft,
    EmailMetadata,
    ReplyContext,
    create_email_metadata,
)


logger = logging.getLogger(__name__)

GMAIL_USER_ID = "me"
INBOX_LABEL = "INBOX"
UNREAD_QUERY = "is:unread"
DEFAULT_MAX_RESULTS = 20
DEFAULT_CONCURRENCY = 10
DEFAULT_MAX_CONTEXT_MESSAGES = 6


class GmailMessagesApi(ABC):
    """Summary: Listing and fetching of Gmail messages.

    Importance: Lets the fetcher run against the real API or test fakes.
    Alternatives: Depend on the Gmail SDK resource objects.
    """

    @abstractmethod
    async def list_messages(
        self, user_id: str, q: str, label_ids: list[str], max_results: int
    ) -> dict[str, Any]:
        """Summary: List message ids matching a search query."""

    @abstractmethod
    async def get_message(self, user_id: str, id: str, format: str = "full") -> dict[str, Any]:
        """Summary: Fetch a full Gmail message resource."""


class GmailReplyContextApi(ABC):
    """Summary: Read access needed to assemble reply context."""

    @abstractmethod
    async def get_message(self, user_id: str, id: str, format: str = "full") -> dict[str, Any]:
        """Summary: Fetch a full Gmail message resource."""

    @abstractmethod
    async def get_thread(self, user_id: str, id: str, format: str = "full") -> dict[str, Any]:
        """Summary: Fetch a Gmail thread with its messages."""


class GmailDraftsApi(ABC):
    """Summary: Draft creation on Gmail."""

    @abstractmethod
    async def create_draft(self, user_id: str, request_body: dict[str, Any]) -> dict[str, Any]:
        """Summary: Create an unsent draft and return the draft resource."""


class GmailApiClient(GmailMessagesApi, GmailReplyContextApi, GmailDraftsApi):
    """Summary: Gmail REST client authenticated with an OAuth access token.

    Importance: Implements every Gmail interface without an SDK dependency.
    Alternatives: Use google-api-python-client with discovery documents.
    """

    def __init__(self, access_token: str, base_url: str, timeout: float = 10) -> None:
        self._access_token = access_token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    async def list_messages(
        self, user_id: str, q: str, label_ids: list[str], max_results: int
    ) -> dict[str, Any]:
        query = urllib.parse.urlencode(
            {"q": q, "labelIds": label_ids, "maxResults": max_results}, doseq=True
        )
        url = f"{self._base_url}/users/{user_id}/messages?{query}"
        return await asyncio.to_thread(self._request, "GET", url)

    async def get_message(self, user_id: str, id: str, format: str = "full") -> dict[str, Any]:
        url = f"{self._base_url}/users/{user_id}/messages/{urllib.parse.quote(id)}?format={format}"
        return await asyncio.to_thread(self._request, "GET", url)

    async def get_thread(self, user_id: str, id: str, format: str = "full") -> dict[str, Any]:
        url = f"{self._base_url}/users/{user_id}/threads/{urllib.parse.quote(id)}?format={format}"
        return await asyncio.to_thread(self._request, "GET", url)

    async def create_draft(self, user_id: str, request_body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}/users/{user_id}/drafts"
        return await asyncio.to_thread(self._request, "POST", url, request_body)

    def _request(self, method: str, url: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        """Summary: Send a JSON request to the Gmail API.

        Importance: Turns every transport or decoding failure into GmailApiError.
        Alternatives: Use a third-party HTTP client.
        """

        headers = {"Authorization": f"Bearer {self._access_token}"}
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
        request = urllib.request.Request(url, data=data, headers=headers, method=method)
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                raw = response.read().decode("utf-8")
            return json.loads(raw) if raw else {}
        except urllib.error.HTTPError as exc:
            error_body = exc.read().decode("utf-8", errors="replace")
            raise GmailApiError(f"Gmail API request failed: {error_body or exc.reason}") from exc
        except urllib.error.URLError as exc:
            raise GmailApiError(f"Gmail API request failed: {exc.reason}") from exc
        except OSError as exc:
            raise GmailApiError(f"Gmail API request failed: {describe_error(exc)}") from exc
        except ValueError as exc:
            raise GmailApiError(f"Gmail API returned invalid JSON: {exc}") from exc


def parse_gmail_message(message: dict[str, Any]) -> EmailMetadata:
    """Summary: Normalize a Gmail message resource into EmailMetadata.

    Importance: Gives every downstream step the same shape regardless of MIME layout.
    Alternatives: Keep raw Gmail payloads and parse lazily.
    """

    payload = message.get("payload") or {}
    headers = payload.get("headers") or []
    return create_email_metadata(
        id=message.get("id") or "",
        thread_id=message.get("threadId") or "",
        subject=get_header_value(headers, "Subject").strip() or NO_SUBJECT,
        sender=get_header_value(headers, "From"),
        recipients=get_header_value(headers, "To"),
        date=get_header_value(headers, "Date"),
        snippet=message.get("snippet") or "",
        body_text=extract_body_text(payload),
    )


def get_header_value(headers: list[dict[str, Any]], name: str) -> str:
    """Summary: Look up a header value by case-insensitive name.

    Importance: Gmail preserves sender casing, so exact matches miss headers.
    Alternatives: Build a lower-cased dictionary of all headers.
    """

    wanted = name.lower()
    for header in headers:
        if (header.get("name") or "").lower() == wanted:
            return header.get("value") or ""
    return ""


def extract_body_text(payload: dict[str, Any]) -> str:
    """Summary: Extract a readable body from a Gmail payload.

    Importance: Prefers plain text, falls back to stripped HTML, then the top-level body.
    Alternatives: Use the snippet only.
    """

    if not payload:
        return ""
    plain = _find_body_by_mime_type(payload, "text/plain")
    if plain:
        return plain
    html = _find_body_by_mime_type(payload, "text/html")
    if html:
        return strip_html_tags(html)
    data = (payload.get("body") or {}).get("data")
    if not data:
        return ""
    return decode_base64url(data)


def _find_body_by_mime_type(part: dict[str, Any], mime_type: str) -> str:
    if part.get("mimeType") == mime_type:
        data = (part.get("body") or {}).get("data")
        return decode_base64url(data) if data else ""
    for child in part.get("parts") or []:
        found = _find_body_by_mime_type(child, mime_type)
        if found:
            return found
    return ""


def decode_base64url(data: str) -> str:
    """Summary: Decode base64url-encoded Gmail content.

    Importance: Gmail bodies use the URL-safe alphabet and drop padding. Malformed
    data decodes to an empty string so one broken part never fails a fetch.
    Alternatives: base64.urlsafe_b64decode with manual padding.
    """

    standard = data.replace("-", "+").replace("_", "/")
    padded = standard + "=" * (-len(standard) % 4)
    try:
        decoded = base64.b64decode(padded)
    except binascii.Error:
        logger.warning("Skipping body part with malformed base64url data.")
        return ""
    return decoded.decode("utf-8", errors="replace")


def strip_html_tags(value: str) -> str:
    without_tags = re.sub(r"<[^>]*>", " ", value)
    return re.sub(r"\s+", " ", without_tags).strip()


async def fetch_unread_emails(
    client: GmailMessagesApi,
    max_results: int = DEFAULT_MAX_RESULTS,
    concurrency: int = DEFAULT_CONCURRENCY,
    query: str = UNREAD_QUERY,
) -> list[EmailMetadata]:
    """Summary: Fetch unread inbox emails in bounded concurrent chunks.

    Importance: Caps in-flight Gmail requests while parallelizing I/O.
    Alternatives: Fetch messages one at a time or use a semaphore.
    """

    if max_results < 1:
        raise ValueError("max_results must be greater than 0")
    if concurrency < 1:
        raise ValueError("concurrency must be greater than 0")
    started = time.time()
    logger.info(
        "Started unread email fetch (max_results=%s, concurrency=%s).", max_results, concurrency
    )
    try:
        listing = await client.list_messages(
            user_id=GMAIL_USER_ID, q=query, label_ids=[INBOX_LABEL], max_results=max_results
        )
        message_ids = [
            item.get("id") for item in listing.get("messages") or [] if item and item.get("id")
        ]
        emails: list[EmailMetadata] = []
        for index in range(0, len(message_ids), concurrency):
            chunk_ids = message_ids[index : index + concurrency]
            # The next chunk starts only once every call in this one has settled.
            responses = await asyncio.gather(
                *(
                    client.get_message(user_id=GMAIL_USER_ID, id=message_id, format="full")
                    for message_id in chunk_ids
                )
            )
            emails.extend(parse_gmail_message(response) for response in responses)
    except Exception:
        logger.exception(
            "Failed unread email fetch after %s ms.", int((time.time() - started) * 1000)
        )
        raise
    logger.info(
        "Completed unread email fetch: %s emails in %s ms.",
        len(emails),
        int((time.time() - started) * 1000),
    )
    return emails


async def fetch_reply_context(
    client: GmailReplyContextApi,
    email_id: str,
    thread_id: str | None = None,
    max_context_messages: int = DEFAULT_MAX_CONTEXT_MESSAGES,
) -> ReplyContext:
    """Summary: Load the target email and its recent thread history.

    Importance: Grounds the draft in what was actually said in the thread.
    Alternatives: Draft from the target email alone.
    """

    if max_context_messages < 1:
        raise ValueError("max_context_messages must be greater than 0")
    target_payload = await client.get_message(user_id=GMAIL_USER_ID, id=email_id, format="full")
    target = parse_gmail_message(target_payload)
    resolved_thread_id = thread_id or target.thread_id
    if not resolved_thread_id:
        return ReplyContext(target, resolved_thread_id, [target], context_degraded=True)
    try:
        thread = await client.get_thread(user_id=GMAIL_USER_ID, id=resolved_thread_id, format="full")
        thread_messages = _parse_thread_messages(thread.get("messages") or [])
    except Exception as exc:
        logger.warning(
            "Thread %s unavailable, drafting from target email only: %s", resolved_thread_id, exc
        )
        return ReplyContext(target, resolved_thread_id, [target], context_degraded=True)
    ordered = _ensure_target_in_context(thread_messages, target)
    bounded = _truncate_context_messages(ordered, target, max_context_messages)
    return ReplyContext(target, resolved_thread_id, bounded, context_degraded=False)


def _parse_thread_messages(messages: list[dict[str, Any] | None]) -> list[EmailMetadata]:
    parsed: list[EmailMetadata] = []
    seen: set[str] = set()
    for message in messages:
        if not message or not message.get("id") or message["id"] in seen:
            continue
        seen.add(message["id"])
        parsed.append(parse_gmail_message(message))
    return parsed


def _ensure_target_in_context(
    messages: list[EmailMetadata], target: EmailMetadata
) -> list[EmailMetadata]:
    if any(message.id == target.id for message in messages):
        return messages
    return [*messages, target]


def _truncate_context_messages(
    messages: list[EmailMetadata], target: EmailMetadata, limit: int
) -> list[EmailMetadata]:
    """Summary: Keep the most recent messages while always keeping the target."""

    if len(messages) <= limit:
        return messages
    if limit == 1:
        return [target]
    recent = messages[-limit:]
    if any(message.id == target.id for message in recent):
        return recent
    others = [message for message in messages if message.id != target.id]
    return [target, *others[-(limit - 1) :]]


async def create_reply_draft(
    client: GmailDraftsApi,
    thread_id: str,
    to: str,
    subject: str,
    body_text: str,
    in_reply_to: str | None = None,
    references: str | None = None,
) -> CreatedReplyDraft:
    """Summary: Save a reply as an unsent Gmail draft in the given thread.

    Importance: Keeps the workflow draft-first; nothing is ever sent.
    Alternatives: Send the reply directly through messages.send.
    """

    normalized_thread_id = thread_id.strip()
    if not normalized_thread_id:
        raise EmailValidationError("Reply threadId cannot be empty")
    recipient = sanitize_header_value(to)
    if not recipient:
        raise EmailValidationError("Reply recipient cannot be empty")
    reply_subject = to_reply_subject(subject)
    mime_message = build_mime_message(
        to=recipient,
        subject=reply_subject,
        body_text=body_text,
        in_reply_to=in_reply_to,
        references=references,
    )
    response = await client.create_draft(
        user_id=GMAIL_USER_ID,
        request_body={
            "message": {"threadId": normalized_thread_id, "raw": encode_raw_message(mime_message)}
        },
    )
    draft_id = (response.get("id") or "").strip()
    if not draft_id:
        raise GmailApiError("Gmail drafts.create response missing draft id")
    response_thread_id = ((response.get("message") or {}).get("threadId") or "").strip()
    logger.info("Created reply draft %s in thread %s.", draft_id, normalized_thread_id)
    return CreatedReplyDraft(
        id=draft_id,
        thread_id=response_thread_id or normalized_thread_id,
        subject=reply_subject,
    )


def to_reply_subject(subject: str) -> str:
    normalized = sanitize_header_value(subject) or NO_SUBJECT
    if normalized.lower().startswith("re:"):
        return normalized
    return f"Re: {normalized}"


def build_mime_message(
    to: str,
    subject: str,
    body_text: str,
    in_reply_to: str | None = None,
    references: str | None = None,
) -> str:
    """Summary: Build a plain-text RFC 822 message with CRLF line endings.

    Importance: Gmail drafts.create expects a raw MIME message.
    Alternatives: Use email.message.EmailMessage and its generator.
    """

    headers = [
        f"To: {sanitize_header_value(to)}",
        f"Subject: {sanitize_header_value(subject)}",
        "MIME-Version: 1.0",
        'Content-Type: text/plain; charset="UTF-8"',
        "Content-Transfer-Encoding: 8bit",
    ]
    for name, value in (("In-Reply-To", in_reply_to), ("References", references)):
        cleaned = sanitize_header_value(value or "")
        if cleaned:
            headers.append(f"{name}: {cleaned}")
    body = re.sub(r"\r?\n", "\r\n", body_text).rstrip()
    return "\r\n".join(headers) + "\r\n\r\n" + body + "\r\n"


def sanitize_header_value(value: str) -> str:
    """Summary: Fold CR and LF runs in a header value into single spaces.

    Importance: Subjects and addresses come from received mail, and a raw line
    break there would start a new header in the draft.
    Alternatives: Encode headers with email.header and let it fold lines.
    """

    return re.sub(r"[\r\n]+", " ", value).strip()


def encode_raw_message(mime_message: str) -> str:
    encoded = base64.urlsafe_b64encode(mime_message.encode("utf-8")).decode("ascii")
    return encoded.rstrip("=")
