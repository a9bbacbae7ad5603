"""Summary: Tests for the briefing and reply-draft services.

Importance: Ensures the pipelines compose fetch, extraction, ranking, and drafting.
Alternatives: Test each step in isolation only.
"""

from __future__ import annotations

import asyncio
import base64
from typing import Any

import pytest
from pydantic import BaseModel

from mailbrief.ai import AiProvider, MockAiProvider
from mailbrief.errors import EmailValidationError
from mailbrief.gmail import GmailDraftsApi, GmailMessagesApi, GmailReplyContextApi
from mailbrief.models import DraftReplyRiskFlag
from mailbrief.services import BriefingService, DraftReplyService

# Sat, 14 Feb 2026 13:00:00 UTC
NOW_MS = 1771074000000


def _message(message_id: str, subject: str, date: str, sender: str) -> dict[str, Any]:
    return {
        "id": message_id,
        "threadId": "t1",
        "snippet": subject,
        "payload": {
            "mimeType": "text/plain",
            "headers": [
                {"name": "Subject", "value": subject},
                {"name": "From", "value": sender},
                {"name": "To", "value": "me@example.com"},
                {"name": "Date", "value": date},
            ],
            "body": {"data": base64.urlsafe_b64encode(subject.encode("utf-8")).decode("ascii")},
        },
    }


class FakeGmail(GmailMessagesApi, GmailReplyContextApi, GmailDraftsApi):
    """Summary: In-memory mailbox implementing every Gmail interface."""

    def __init__(self, messages: list[dict[str, Any]]) -> None:
        self.messages = {message["id"]: message for message in messages}
        self.queries: list[str] = []
        self.drafts: list[dict[str, Any]] = []

    async def list_messages(
        self, user_id: str, q: str, label_ids: list[str], max_results: int
    ) -> dict[str, Any]:
        self.queries.append(q)
        ids = list(self.messages)[:max_results]
        return {"messages": [{"id": message_id} for message_id in ids]}

    async def get_message(self, user_id: str, id: str, format: str = "full") -> dict[str, Any]:
        return self.messages[id]

    async def get_thread(self, user_id: str, id: str, format: str = "full") -> dict[str, Any]:
        return {"id": id, "messages": list(self.messages.values())}

    async def create_draft(self, user_id: str, request_body: dict[str, Any]) -> dict[str, Any]:
        self.drafts.append(request_body)
        return {"id": f"draft-{len(self.drafts)}", "message": {"threadId": "t1"}}


class ScriptedProvider(AiProvider):
    """Summary: Returns insights keyed by the subject line in the prompt."""

    def __init__(self, outputs: dict[str, Any]) -> None:
        self.outputs = outputs

    async def generate_object(
        self, model: str, system: str, prompt: str, output_schema: type[BaseModel]
    ) -> Any:
        subject = prompt.splitlines()[0].removeprefix("Subject: ")
        return self.outputs[subject]


def _mailbox() -> FakeGmail:
    return FakeGmail(
        [
            _message("n1", "Weekly digest", "Sat, 14 Feb 2026 09:00:00 +0000", "News <news@example.com>"),
            _message("a1", "Sign the lease", "Sat, 14 Feb 2026 10:00:00 +0000", "Dana <dana@example.com>"),
            _message("old", "Ancient", "Mon, 09 Feb 2026 10:00:00 +0000", "Old <old@example.com>"),
            _message("bad", "Garbled", "Sat, 14 Feb 2026 11:00:00 +0000", "Eve <eve@example.com>"),
        ]
    )


def test_briefing_service_ranks_and_skips_failures() -> None:
    """Summary: Verify the briefing filters, ranks, and tolerates a bad extraction.

    Importance: One malformed model reply must not sink the whole briefing.
    Alternatives: Fail the run on the first extraction error.
    """

    gmail = _mailbox()
    provider = ScriptedProvider(
        {
            "Weekly digest": {
                "summary": "Weekly news roundup.",
                "category": "newsletter_or_spam",
                "urgency": "noise",
                "action": None,
            },
            "Sign the lease": {
                "summary": "Dana needs the lease signed today.",
                "category": "personal",
                "urgency": "action_required",
                "action": "Sign the lease",
            },
            "Garbled": {"summary": "?"},
        }
    )
    service = BriefingService(gmail=gmail, ai_provider=provider, model_name="m", concurrency=2)
    result = asyncio.run(service.run(now_ms=NOW_MS))
    assert gmail.queries == ["is:unread after:1770901199 before:1771074001"]
    assert result.unread_count == 3
    assert result.analyzed_count == 2
    assert result.failed_count == 1
    assert result.timeframe_hours == 48
    assert result.action_items == ["Sign the lease"]
    assert result.narrative.index("## Action Required") < result.narrative.index("## Background")
    assert "- Dana: Dana needs the lease signed today." in result.narrative
    assert [str(item.email.id) for item in result.insights] == ["a1", "n1"]
    assert result.digest.startswith(
        "2 unread in the last 48 hours: **1 needs attention**, 1 background."
    )
    assert "**Dana needs the lease signed today.**\n-> Sign the lease\n" in result.digest
    assert "- Weekly news roundup. _(News)_\n" in result.digest


def test_briefing_service_with_empty_mailbox() -> None:
    service = BriefingService(gmail=FakeGmail([]), ai_provider=MockAiProvider(), model_name="mock")
    result = asyncio.run(service.run(now_ms=NOW_MS))
    assert result.unread_count == 0
    assert result.narrative.startswith("No high-signal updates")
    assert result.action_item_count == 0
    assert result.insights == []
    assert result.digest == ""


def test_draft_reply_service_saves_draft() -> None:
    """Summary: Verify the reply pipeline saves a draft addressed to the sender.

    Importance: Confirms draft-first behavior end to end.
    Alternatives: Return draft text without persisting it.
    """

    gmail = _mailbox()
    draft = {
        "draft_text": "Signed and attached.",
        "subject_suggestion": None,
        "risk_flags": ["uncertain_facts"],
    }

    class DraftProvider(AiProvider):
        async def generate_object(
            self, model: str, system: str, prompt: str, output_schema: type[BaseModel]
        ) -> Any:
            assert "Target Email:" in prompt
            return draft

    service = DraftReplyService(
        context_api=gmail,
        drafts_api=gmail,
        ai_provider=DraftProvider(),
        model_name="m",
        max_context_messages=3,
    )
    result = asyncio.run(service.run(" a1 "))
    assert str(result.email_id) == "a1"
    assert result.draft_id == "draft-1"
    assert result.thread_id == "t1"
    assert result.subject == "Re: Sign the lease"
    assert result.draft_text == "Signed and attached."
    assert result.context_message_count == 3
    assert result.context_degraded is False
    assert result.risk_flags == [DraftReplyRiskFlag.UNCERTAIN_FACTS]
    raw = gmail.drafts[0]["message"]["raw"]
    decoded = base64.urlsafe_b64decode(raw + "=" * (-len(raw) % 4)).decode("utf-8")
    assert "To: Dana <dana@example.com>\r\n" in decoded
    assert "Subject: Re: Sign the lease\r\n" in decoded


def test_draft_reply_service_rejects_blank_id() -> None:
    gmail = _mailbox()
    service = DraftReplyService(
        context_api=gmail, drafts_api=gmail, ai_provider=MockAiProvider(), model_name="mock"
    )
    with pytest.raises(EmailValidationError):
        asyncio.run(service.run("   "))
    assert gmail.drafts == []
