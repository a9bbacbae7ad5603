"""Summary: Typed errors raised by the MailBrief pipelines.

Importance: Lets callers tell validation, provider, and model failures apart.
Alternatives: Raise ValueError and RuntimeError with message prefixes.
"""

from __future__ import annotations


class MailBriefError(Exception):
    """Summary: Base class for every MailBrief error."""


class EmailValidationError(MailBriefError, ValueError):
    """Summary: Raised when a domain value fails validation at construction.

    Importance: Fails fast on empty ids, subjects, or recipients.
    Alternatives: Substitute defaults and continue.
    """


class ConfigurationError(MailBriefError, ValueError):
    """Summary: Raised when a required setting such as a credential is missing.

    Importance: Surfaces setup problems as typed errors at the API and CLI edges.
    Alternatives: Raise plain ValueError and let callers inspect the message.
    """


class OAuthError(MailBriefError, RuntimeError):
    """Summary: Raised when a Google token request fails or returns no access token."""


class GmailApiError(MailBriefError, RuntimeError):
    """Summary: Raised when a Gmail API request fails or returns an unusable response."""


class AiProviderError(MailBriefError, RuntimeError):
    """Summary: Raised when an AI provider request fails at the transport level."""


class ModelOutputError(MailBriefError, RuntimeError):
    """Summary: Raised when a structured model call cannot produce valid output.

    Importance: Carries the originating email id so failures stay diagnosable.
    Alternatives: Log the id separately and raise a generic error.
    """

    label = "model output"

    def __init__(self, email_id: str, cause: BaseException, subject: str | None = None) -> None:
        self.email_id = email_id
        self.cause = cause
        self.subject = subject
        target = f'"{subject}" ({email_id})' if subject else f"({email_id})"
        super().__init__(f"Failed to extract {self.label} for email {target}: {describe_error(cause)}")


class InsightExtractionError(ModelOutputError):
    label = "insight"


class DraftReplyExtractionError(ModelOutputError):
    label = "draft reply"


def describe_error(error: BaseException) -> str:
    """Summary: Render an exception as a short message.

    Importance: Keeps wrapped error messages readable when the cause has no text.
    Alternatives: Use repr() for every error.
    """

    message = str(error).strip()
    return message or type(error).__name__
