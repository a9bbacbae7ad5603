"""Summary: Domain model dataclasses for MailBrief.

Importance: Defines the value objects passed between fetch, extraction, and drafting steps.
Alternatives: Pass raw Gmail payloads and model JSON between steps.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from mailbrief.errors import EmailValidationError


NO_SUBJECT = "(no subject)"


@dataclass(frozen=True)
class EmailId:
    """Summary: Validated Gmail message identifier.

    Importance: Keeps untrusted raw strings apart from ids that passed validation.
    Alternatives: Use plain strings and validate at every call site.
    """

    value: str

    def __post_init__(self) -> None:
        if not self.value.strip():
            raise EmailValidationError("EmailId cannot be empty")

    def __str__(self) -> str:
        return self.value


def parse_email_id(value: str) -> EmailId:
    """Summary: Build an EmailId from a raw provider string.

    Importance: Single entry point for id validation.
    Alternatives: Construct EmailId directly.
    """

    return EmailId(value)


@dataclass(frozen=True)
class EmailMetadata:
    """Summary: Canonical metadata for one fetched email.

    Importance: Core unit handed to insight extraction and reply drafting.
    Alternatives: Keep Gmail message resources and read headers on demand.
    """

    id: EmailId
    thread_id: str
    subject: str
    sender: str
    recipients: str
    date: str
    snippet: str
    body_text: str


def create_email_metadata(
    id: str,
    thread_id: str,
    subject: str,
    sender: str,
    recipients: str,
    date: str,
    snippet: str,
    body_text: str,
) -> EmailMetadata:
    """Summary: Validate and build EmailMetadata.

    Importance: Rejects empty ids and blank subjects before they reach the model.
    Alternatives: Substitute placeholders for missing values.
    """

    email_id = parse_email_id(id)
    normalized_subject = subject.strip()
    if not normalized_subject:
        raise EmailValidationError("Subject cannot be empty")
    return EmailMetadata(
        id=email_id,
        thread_id=thread_id,
        subject=normalized_subject,
        sender=sender,
        recipients=recipients,
        date=date,
        snippet=snippet,
        body_text=body_text,
    )


class EmailCategory(str, Enum):
    PERSONAL = "personal"
    BUSINESS = "business"
    AUTOMATED = "automated"
    NEWSLETTER_OR_SPAM = "newsletter_or_spam"


class EmailUrgency(str, Enum):
    ACTION_REQUIRED = "action_required"
    FYI = "fyi"
    NOISE = "noise"


@dataclass(frozen=True)
class EmailInsight:
    """Summary: Structured insight derived from one email by the model.

    Importance: Drives ranking, action items, and the narrative briefing.
    Alternatives: Store free-form model text and parse it later.
    """

    summary: str
    category: EmailCategory
    urgency: EmailUrgency
    action: str | None = None


@dataclass(frozen=True)
class AnalyzedEmail:
    """Summary: Pairs an email with the insight extracted from it."""

    email: EmailMetadata
    insight: EmailInsight


@dataclass(frozen=True)
class LookbackWindow:
    """Summary: Time range that counts as recent for a briefing run.

    Importance: Shared by the Gmail search query and the local date filter.
    Alternatives: Rely on the provider query alone.
    """

    start_ms: int
    end_ms: int
    start_epoch_seconds: int
    end_epoch_seconds: int


@dataclass(frozen=True)
class ReplyContext:
    """Summary: Target email plus the thread messages used for drafting.

    Importance: Gives the draft model enough history to stay grounded.
    Alternatives: Draft from the target email alone.
    """

    email: EmailMetadata
    thread_id: str
    context_messages: list[EmailMetadata]
    context_degraded: bool

    @property
    def context_message_count(self) -> int:
        return len(self.context_messages)


class DraftReplyRiskFlag(str, Enum):
    MISSING_CONTEXT = "missing_context"
    UNCERTAIN_FACTS = "uncertain_facts"
    SENSITIVE_REQUEST = "sensitive_request"
    TONE_MISMATCH = "tone_mismatch"


@dataclass(frozen=True)
class DraftReplyModelOutput:
    """Summary: Validated draft reply returned by the model.

    Importance: Separates trusted draft text from raw model output.
    Alternatives: Use the raw JSON dictionary.
    """

    draft_text: str
    subject_suggestion: str | None = None
    risk_flags: list[DraftReplyRiskFlag] = field(default_factory=list)


@dataclass(frozen=True)
class CreatedReplyDraft:
    """Summary: Draft record returned by Gmail after creation."""

    id: str
    thread_id: str
    subject: str = ""


@dataclass(frozen=True)
class NarrativeRunResult:
    """Summary: Outcome of a briefing run.

    Importance: Single payload returned by the API and printed by the CLI. Carries
    the short narrative and the full ranked insight list with its digest.
    Alternatives: Return the narrative string only.
    """

    unread_count: int
    analyzed_count: int
    failed_count: int
    timeframe_hours: int
    narrative: str
    action_items: list[str]
    insights: list[AnalyzedEmail] = field(default_factory=list)
    digest: str = ""

    @property
    def action_item_count(self) -> int:
        return len(self.action_items)


@dataclass(frozen=True)
class DraftReplyRunResult:
    """Summary: Outcome of a reply drafting run."""

    email_id: EmailId
    draft_id: str
    thread_id: str
    subject: str
    draft_text: str
    context_message_count: int
    context_degraded: bool
    risk_flags: list[DraftReplyRiskFlag]
