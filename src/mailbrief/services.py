"""Summary: Briefing and reply-draft services for MailBrief.

Importance: Orchestrates fetch, extraction, ranking, and drafting for each entrypoint.
Alternatives: Orchestrate the pipelines inside the API handlers.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from mailbrief.ai import AiProvider
from mailbrief.briefing import build_digest, build_narrative, extract_action_items
from mailbrief.errors import ModelOutputError
from mailbrief.extraction import extract_draft_reply, extract_email_insight
from mailbrief.gmail import (
    DEFAULT_CONCURRENCY,
    DEFAULT_MAX_CONTEXT_MESSAGES,
    DEFAULT_MAX_RESULTS,
    GmailDraftsApi,
    GmailMessagesApi,
    GmailReplyContextApi,
    create_reply_draft,
    fetch_reply_context,
    fetch_unread_emails,
)
from mailbrief.lookback import (
    LOOKBACK_HOURS,
    build_lookback_query,
    current_time_ms,
    filter_emails_in_lookback_window,
)
from mailbrief.models import (
    AnalyzedEmail,
    DraftReplyRunResult,
    EmailMetadata,
    NarrativeRunResult,
    parse_email_id,
)
from mailbrief.ranking import order_by_priority


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BriefingService:
    """Summary: Produces the narrative briefing for recent unread email.

    Importance: Runs the insight pipeline end to end for one request.
    Alternatives: Expose each pipeline step as a separate endpoint.
    """

    gmail: GmailMessagesApi
    ai_provider: AiProvider
    model_name: str
    max_results: int = DEFAULT_MAX_RESULTS
    concurrency: int = DEFAULT_CONCURRENCY

    async def run(self, now_ms: int | None = None) -> NarrativeRunResult:
        """Summary: Fetch, filter, analyze, rank, and summarize unread email.

        Importance: A failed extraction skips that email; fetch failures abort the run.
        Alternatives: Abort the whole run on the first extraction failure.
        """

        started = time.time()
        resolved_now = current_time_ms() if now_ms is None else now_ms
        emails = await fetch_unread_emails(
            self.gmail,
            max_results=self.max_results,
            concurrency=self.concurrency,
            query=build_lookback_query(resolved_now),
        )
        recent = filter_emails_in_lookback_window(emails, resolved_now)
        analyzed, failed_count = await self.analyze(recent)
        ranked = order_by_priority(analyzed)
        action_items = extract_action_items(ranked)
        result = NarrativeRunResult(
            unread_count=len(recent),
            analyzed_count=len(analyzed),
            failed_count=failed_count,
            timeframe_hours=LOOKBACK_HOURS,
            narrative=build_narrative(ranked),
            action_items=action_items,
            insights=ranked,
            digest=build_digest(ranked),
        )
        logger.info(
            "Completed briefing: %s unread, %s analyzed, %s failed in %s ms.",
            result.unread_count,
            result.analyzed_count,
            result.failed_count,
            int((time.time() - started) * 1000),
        )
        return result

    async def analyze(self, emails: list[EmailMetadata]) -> tuple[list[AnalyzedEmail], int]:
        """Summary: Extract insights one email at a time.

        Importance: Keeps model calls sequential and isolates per-email failures.
        Alternatives: Run extractions concurrently with asyncio.gather.
        """

        analyzed: list[AnalyzedEmail] = []
        failed_count = 0
        for email in emails:
            try:
                insight = await extract_email_insight(self.ai_provider, self.model_name, email)
            except ModelOutputError as exc:
                failed_count += 1
                logger.warning("Skipped email %s: %s", exc.email_id, exc)
                continue
            analyzed.append(AnalyzedEmail(email=email, insight=insight))
        return analyzed, failed_count


@dataclass(frozen=True)
class DraftReplyService:
    """Summary: Drafts and saves a reply for one email.

    Importance: Runs the reply pipeline end to end while staying draft-first.
    Alternatives: Return the draft text without saving it to Gmail.
    """

    context_api: GmailReplyContextApi
    drafts_api: GmailDraftsApi
    ai_provider: AiProvider
    model_name: str
    max_context_messages: int = DEFAULT_MAX_CONTEXT_MESSAGES

    async def run(
        self,
        email_id: str,
        thread_id: str | None = None,
        voice_instructions: str | None = None,
    ) -> DraftReplyRunResult:
        """Summary: Fetch context, draft with the model, and save the Gmail draft."""

        target_id = parse_email_id(email_id.strip())
        context = await fetch_reply_context(
            self.context_api,
            str(target_id),
            thread_id=thread_id,
            max_context_messages=self.max_context_messages,
        )
        if context.context_degraded:
            logger.warning("Drafting reply for %s with degraded context.", target_id)
        draft = await extract_draft_reply(
            self.ai_provider, self.model_name, context, voice_instructions
        )
        created = await create_reply_draft(
            self.drafts_api,
            thread_id=context.thread_id,
            to=context.email.sender,
            subject=draft.subject_suggestion or context.email.subject,
            body_text=draft.draft_text,
        )
        logger.info("Saved reply draft %s for email %s.", created.id, target_id)
        return DraftReplyRunResult(
            email_id=target_id,
            draft_id=created.id,
            thread_id=created.thread_id,
            subject=created.subject,
            draft_text=draft.draft_text,
            context_message_count=context.context_message_count,
            context_degraded=context.context_degraded,
            risk_flags=draft.risk_flags,
        )
