"""Summary: FastAPI application for MailBrief.

Importance: Exposes the briefing and reply-draft pipelines over HTTP.
Alternatives: Use a CLI-only workflow or a different web framework.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, StringConstraints

from mailbrief.app import AppContext, build_context
from mailbrief.config import AppConfig, configure_logging
from mailbrief.models import AnalyzedEmail
from mailbrief.errors import (
    AiProviderError,
    ConfigurationError,
    EmailValidationError,
    GmailApiError,
    MailBriefError,
    ModelOutputError,
    OAuthError,
)


logger = logging.getLogger(__name__)

NonEmptyTrimmedStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

ERROR_STATUS: dict[type[MailBriefError], tuple[int, str]] = {
    EmailValidationError: (400, "invalid_request"),
    ConfigurationError: (502, "upstream_not_configured"),
    OAuthError: (502, "oauth_request_failed"),
    GmailApiError: (502, "gmail_request_failed"),
    AiProviderError: (502, "model_request_failed"),
    ModelOutputError: (502, "model_output_invalid"),
}


class DraftReplyRequest(BaseModel):
    """Summary: Request payload for drafting a reply.

    Importance: Validates the target email id before any Gmail call.
    Alternatives: Accept the email id as a path parameter.
    """

    model_config = ConfigDict(extra="forbid")

    email_id: NonEmptyTrimmedStr
    thread_id: NonEmptyTrimmedStr | None = None
    voice_instructions: NonEmptyTrimmedStr | None = None


def create_app(config: AppConfig, context: AppContext | None = None) -> FastAPI:
    """Summary: Create a FastAPI app wired to MailBrief services.

    Importance: Ensures the API layer shares configuration with the CLI.
    Alternatives: Instantiate services globally outside the factory.
    """

    configure_logging(config.log_level)
    app = FastAPI(title="MailBrief API", version="0.1.0")
    app_context = context or build_context(config)

    @app.exception_handler(MailBriefError)
    async def handle_mailbrief_error(request: Request, exc: MailBriefError) -> JSONResponse:
        status_code, code = _error_status(exc)
        logger.error("Request to %s failed (%s): %s", request.url.path, code, exc)
        return JSONResponse(status_code=status_code, content={"code": code, "detail": str(exc)})

    def require_api_key(x_api_key: str | None = Header(default=None)) -> None:
        """Summary: Enforce API key authentication when configured.

        Importance: Adds a minimal security layer for local and private deployments.
        Alternatives: Use OAuth or session-based authentication.
        """

        if not config.api_key:
            return
        if x_api_key != config.api_key:
            raise HTTPException(status_code=401, detail="Invalid API key")

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/narrative", dependencies=[Depends(require_api_key)])
    async def narrative() -> dict[str, Any]:
        """Summary: Run the briefing over recent unread email.

        Importance: Main read path for clients.
        Alternatives: Stream per-email insights as they complete.
        """

        service = await run_in_threadpool(app_context.briefing_service)
        result = await service.run()
        return {
            "unread_count": result.unread_count,
            "analyzed_count": result.analyzed_count,
            "failed_count": result.failed_count,
            "action_item_count": result.action_item_count,
            "timeframe_hours": result.timeframe_hours,
            "narrative": result.narrative,
            "action_items": result.action_items,
            "digest": result.digest,
            "insights": [_insight_payload(item) for item in result.insights],
        }

    @app.post("/draft-reply", dependencies=[Depends(require_api_key)])
    async def draft_reply(payload: DraftReplyRequest) -> dict[str, Any]:
        """Summary: Draft a reply for one email and save it as a Gmail draft.

        Importance: Keeps drafting explicit and user-controlled.
        Alternatives: Return the draft text without saving it.
        """

        service = await run_in_threadpool(app_context.draft_reply_service)
        result = await service.run(
            payload.email_id,
            thread_id=payload.thread_id,
            voice_instructions=payload.voice_instructions,
        )
        return {
            "email_id": str(result.email_id),
            "draft_id": result.draft_id,
            "thread_id": result.thread_id,
            "subject": result.subject,
            "draft_text": result.draft_text,
            "context_message_count": result.context_message_count,
            "context_degraded": result.context_degraded,
            "risk_flags": [flag.value for flag in result.risk_flags],
        }

    return app


def _insight_payload(item: AnalyzedEmail) -> dict[str, Any]:
    return {
        "email_id": str(item.email.id),
        "thread_id": item.email.thread_id,
        "subject": item.email.subject,
        "sender": item.email.sender,
        "date": item.email.date,
        "summary": item.insight.summary,
        "category": item.insight.category.value,
        "urgency": item.insight.urgency.value,
        "action": item.insight.action,
    }


def _error_status(exc: MailBriefError) -> tuple[int, str]:
    for error_type, status in ERROR_STATUS.items():
        if isinstance(exc, error_type):
            return status
    return 500, "run_failed"
