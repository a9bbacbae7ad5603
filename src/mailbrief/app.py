"""Summary: Application factory wiring pipelines to concrete clients.

Importance: Centralizes dependency creation for the CLI and API layers.
Alternatives: Instantiate clients manually in each entrypoint.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from mailbrief.ai import AiProvider, AiProviderFactory
from mailbrief.config import AppConfig
from mailbrief.gmail import GmailApiClient
from mailbrief.oauth import refresh_google_access_token
from mailbrief.services import BriefingService, DraftReplyService


GmailClientFactory = Callable[[], GmailApiClient]


@dataclass(frozen=True)
class AppContext:
    """Summary: Shared dependencies for building request-scoped services.

    Importance: Reuses the AI provider while giving each request its own Gmail client.
    Alternatives: Share one Gmail client and token across requests.
    """

    config: AppConfig
    ai_provider: AiProvider
    model_name: str
    gmail_client_factory: GmailClientFactory

    def briefing_service(self) -> BriefingService:
        return BriefingService(
            gmail=self.gmail_client_factory(),
            ai_provider=self.ai_provider,
            model_name=self.model_name,
            max_results=self.config.max_results,
            concurrency=self.config.fetch_concurrency,
        )

    def draft_reply_service(self) -> DraftReplyService:
        gmail = self.gmail_client_factory()
        return DraftReplyService(
            context_api=gmail,
            drafts_api=gmail,
            ai_provider=self.ai_provider,
            model_name=self.model_name,
            max_context_messages=self.config.max_context_messages,
        )


def default_gmail_client_factory(config: AppConfig) -> GmailClientFactory:
    """Summary: Build Gmail clients with a freshly refreshed access token.

    Importance: Every request authenticates independently.
    Alternatives: Cache the access token until it expires.
    """

    def factory() -> GmailApiClient:
        token = refresh_google_access_token(config)
        return GmailApiClient(token.access_token, config.gmail_api_base_url)

    return factory


def build_context(
    config: AppConfig, gmail_client_factory: GmailClientFactory | None = None
) -> AppContext:
    """Summary: Build the shared context from configuration.

    Importance: Provides a single construction path for the application.
    Alternatives: Use a dependency injection container.
    """

    factory = AiProviderFactory(config)
    return AppContext(
        config=config,
        ai_provider=factory.build(),
        model_name=factory.model_name(),
        gmail_client_factory=gmail_client_factory or default_gmail_client_factory(config),
    )
