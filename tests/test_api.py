"""Summary: API integration tests.

Importance: Validates FastAPI endpoints against the briefing and reply pipelines.
Alternatives: Use manual curl testing only.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Any

import pytest
from fastapi.testclient import TestClient

from mailbrief import oauth
from mailbrief.ai import MockAiProvider
from mailbrief.api import create_app
from mailbrief.app import AppContext, build_context
from mailbrief.config import AppConfig
from mailbrief.errors import GmailApiError, OAuthError
from mailbrief.gmail import GmailDraftsApi, GmailMessagesApi, GmailReplyContextApi


def _build_config(api_key: str = "") -> AppConfig:
    """Summary: Build an AppConfig for API tests.

    Importance: Keeps tests independent of the host environment.
    Alternatives: Load AppConfig from environment variables.
    """

    return AppConfig(
        ai_provider="mock",
        anthropic_api_key=None,
        anthropic_model="claude-test",
        openai_api_key=None,
        openai_model="gpt-test",
        ollama_url="http://localhost:11434",
        ollama_model="llama-test",
        gmail_client_id="",
        gmail_client_secret="",
        gmail_refresh_token="",
        gmail_api_base_url="https://gmail.googleapis.com/gmail/v1",
        google_token_url="https://oauth2.googleapis.com/token",
        api_host="127.0.0.1",
        api_port=3001,
        api_key=api_key,
        max_results=20,
        fetch_concurrency=10,
        max_context_messages=6,
        log_level="INFO",
    )


class FakeGmail(GmailMessagesApi, GmailReplyContextApi, GmailDraftsApi):
    """Summary: Single-message mailbox dated now."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.message = {
            "id": "m1",
            "threadId": "t1",
            "snippet": "Can you review the deck?",
            "payload": {
                "headers": [
                    {"name": "Subject", "value": "Deck review"},
                    {"name": "From", "value": "Alice <alice@example.com>"},
                    {"name": "Date", "value": format_datetime(datetime.now(timezone.utc))},
                ]
            },
        }

    async def list_messages(
        self, user_id: str, q: str, label_ids: list[str], max_results: int
    ) -> dict[str, Any]:
        if self.fail:
            raise GmailApiError("Gmail API request failed: 401")
        return {"messages": [{"id": "m1"}]}

    async def get_message(self, user_id: str, id: str, format: str = "full") -> dict[str, Any]:
        return self.message

    async def get_thread(self, user_id: str, id: str, format: str = "full") -> dict[str, Any]:
        return {"id": id, "messages": [self.message]}

    async def create_draft(self, user_id: str, request_body: dict[str, Any]) -> dict[str, Any]:
        return {"id": "d1", "message": {"threadId": "t1"}}


def _client(config: AppConfig, fail: bool = False) -> TestClient:
    context = AppContext(
        config=config,
        ai_provider=MockAiProvider(),
        model_name="mock",
        gmail_client_factory=lambda: FakeGmail(fail),
    )
    return TestClient(create_app(config, context=context))


def test_health_endpoint() -> None:
    client = _client(_build_config())
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_narrative_endpoint_returns_briefing() -> None:
    """Summary: Verify the narrative endpoint runs the insight pipeline.

    Importance: Confirms the HTTP layer wires into fetch, extraction, and ranking.
    Alternatives: Validate only the CLI workflow.
    """

    client = _client(_build_config())
    response = client.post("/narrative")
    assert response.status_code == 200
    payload = response.json()
    assert payload["unread_count"] == 1
    assert payload["analyzed_count"] == 1
    assert payload["failed_count"] == 0
    assert payload["timeframe_hours"] == 48
    assert payload["action_items"] == []
    assert "- Alice: [mock] Subject: Deck review" in payload["narrative"]


def test_draft_reply_endpoint_saves_draft() -> None:
    client = _client(_build_config())
    response = client.post("/draft-reply", json={"email_id": " m1 "})
    assert response.status_code == 200
    payload = response.json()
    assert payload["email_id"] == "m1"
    assert payload["draft_id"] == "d1"
    assert payload["subject"] == "Re: Deck review"
    assert payload["context_message_count"] == 1
    assert payload["context_degraded"] is False
    assert payload["risk_flags"] == []
    assert payload["draft_text"].startswith("[mock]")


def test_draft_reply_endpoint_validates_payload() -> None:
    """Summary: Ensure blank ids and unknown fields are rejected.

    Importance: Bad input must never reach Gmail.
    Alternatives: Validate inside the service only.
    """

    client = _client(_build_config())
    assert client.post("/draft-reply", json={"email_id": "  "}).status_code == 422
    assert client.post("/draft-reply", json={"email_id": "m1", "send": True}).status_code == 422


def test_gmail_failures_map_to_bad_gateway() -> None:
    client = _client(_build_config(), fail=True)
    response = client.post("/narrative")
    assert response.status_code == 502
    assert response.json()["code"] == "gmail_request_failed"


def test_api_key_required_when_configured() -> None:
    client = _client(_build_config(api_key="secret"))
    assert client.get("/health").status_code == 200
    assert client.post("/narrative").status_code == 401
    response = client.post("/narrative", headers={"X-API-Key": "secret"})
    assert response.status_code == 200


def test_missing_gmail_credentials_map_to_typed_error() -> None:
    """Summary: Ensure unset Gmail OAuth settings return a typed JSON error.

    Importance: A missing refresh token is a setup problem, not an internal crash.
    Alternatives: Refuse to start the server without credentials.
    """

    config = _build_config()
    client = TestClient(create_app(config, context=build_context(config)))
    response = client.post("/narrative")
    assert response.status_code == 502
    assert response.json()["code"] == "upstream_not_configured"
    assert "GMAIL_CLIENT_ID" in response.json()["detail"]


def test_token_refresh_failures_map_to_bad_gateway(monkeypatch: pytest.MonkeyPatch) -> None:
    def failing_post(url: str, payload: dict[str, str]) -> dict[str, Any]:
        raise OAuthError("Token exchange failed: invalid_grant")

    monkeypatch.setattr(oauth, "_post_form", failing_post)
    config = replace(
        _build_config(),
        gmail_client_id="client-id",
        gmail_client_secret="client-secret",
        gmail_refresh_token="refresh-token",
    )
    client = TestClient(create_app(config, context=build_context(config)))
    response = client.post("/draft-reply", json={"email_id": "m1"})
    assert response.status_code == 502
    assert response.json()["code"] == "oauth_request_failed"


def test_narrative_endpoint_returns_ranked_insights() -> None:
    client = _client(_build_config())
    payload = client.post("/narrative").json()
    assert payload["digest"].startswith("1 unread in the last 48 hours: **1 needs attention**.")
    assert payload["insights"] == [
        {
            "email_id": "m1",
            "thread_id": "t1",
            "subject": "Deck review",
            "sender": "Alice <alice@example.com>",
            "date": payload["insights"][0]["date"],
            "summary": payload["insights"][0]["summary"],
            "category": "personal",
            "urgency": "action_required",
            "action": None,
        }
    ]
