"""Summary: Structured-output extraction of insights and draft replies.

Importance: The only place untrusted model output is validated before use.
Alternatives: Parse free-form model text with regexes.
"""

from __future__ import annotations

import logging
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, StringConstraints

from mailbrief.ai import AiProvider
from mailbrief.errors import DraftReplyExtractionError, InsightExtractionError
from mailbrief.models import (
    DraftReplyModelOutput,
    DraftReplyRiskFlag,
    EmailCategory,
    EmailInsight,
    EmailMetadata,
    EmailUrgency,
    ReplyContext,
)
from mailbrief.prompts import build_draft_reply_prompt, build_insight_prompt


logger = logging.getLogger(__name__)

NonEmptyTrimmedStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class EmailInsightSchema(BaseModel):
    """Summary: Output schema for insight extraction.

    Importance: Constrains the model and validates whatever it returns.
    Alternatives: Validate with hand-written dictionary checks.
    """

    summary: str = Field(min_length=1, description="One concise sentence for the reader.")
    category: EmailCategory
    urgency: EmailUrgency
    action: str | None = Field(description="Short imperative next step, or null.")

    def to_insight(self) -> EmailInsight:
        return EmailInsight(
            summary=self.summary,
            category=self.category,
            urgency=self.urgency,
            action=self.action,
        )


class DraftReplyOutputSchema(BaseModel):
    """Summary: Output schema for reply drafting; unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    draft_text: NonEmptyTrimmedStr
    subject_suggestion: NonEmptyTrimmedStr | None = None
    risk_flags: list[DraftReplyRiskFlag]

    def to_output(self) -> DraftReplyModelOutput:
        return DraftReplyModelOutput(
            draft_text=self.draft_text,
            subject_suggestion=self.subject_suggestion,
            risk_flags=list(self.risk_flags),
        )


async def extract_email_insight(
    provider: AiProvider, model_name: str, email: EmailMetadata
) -> EmailInsight:
    """Summary: Ask the model for a validated insight on one email.

    Importance: Every failure surfaces as InsightExtractionError naming the email id.
    Alternatives: Return None on failure and let callers guess why.
    """

    prompt = build_insight_prompt(email)
    try:
        output = await provider.generate_object(
            model=model_name,
            system=prompt.system,
            prompt=prompt.user,
            output_schema=EmailInsightSchema,
        )
        parsed = EmailInsightSchema.model_validate(output)
    except Exception as exc:
        raise InsightExtractionError(str(email.id), exc, subject=email.subject) from exc
    logger.debug("Extracted insight for email %s.", email.id)
    return parsed.to_insight()


async def extract_draft_reply(
    provider: AiProvider,
    model_name: str,
    context: ReplyContext,
    voice_instructions: str | None = None,
) -> DraftReplyModelOutput:
    """Summary: Ask the model for a validated reply draft.

    Importance: Keeps drafts grounded in the fetched thread and schema-checked.
    Alternatives: Use the raw model text as the draft body.
    """

    prompt = build_draft_reply_prompt(context, voice_instructions)
    try:
        output = await provider.generate_object(
            model=model_name,
            system=prompt.system,
            prompt=prompt.user,
            output_schema=DraftReplyOutputSchema,
        )
        parsed = DraftReplyOutputSchema.model_validate(output)
    except Exception as exc:
        raise DraftReplyExtractionError(str(context.email.id), exc) from exc
    logger.debug("Extracted draft reply for email %s.", context.email.id)
    return parsed.to_output()
