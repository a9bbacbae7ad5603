"""Summary: Application configuration for MailBrief.

Importance: Centralizes environment, .env, and config defaults for consistent behavior.
Alternatives: Use a dedicated settings library like Pydantic Settings.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class AppConfig:
    """Summary: Holds configuration values for Gmail, AI providers, and the API.

    Importance: Ensures all entrypoints derive settings from a single source of truth.
    Alternatives: Read environment variables at each call site.
    """

    ai_provider: str
    anthropic_api_key: str | None
    anthropic_model: str
    openai_api_key: str | None
    openai_model: str
    ollama_url: str
    ollama_model: str
    gmail_client_id: str
    gmail_client_secret: str
    gmail_refresh_token: str
    gmail_api_base_url: str
    google_token_url: str
    api_host: str
    api_port: int
    api_key: str
    max_results: int
    fetch_concurrency: int
    max_context_messages: int
    log_level: str

    @staticmethod
    def from_env() -> "AppConfig":
        """Summary: Build configuration from defaults, .env, and environment.

        Importance: Keeps all variables defined in config defaults while allowing overrides.
        Alternatives: Parse only environment variables without a defaults file.
        """

        defaults = load_defaults(Path("config") / "defaults.json")
        load_dotenv(Path(".env"))
        return AppConfig(
            ai_provider=os.getenv("MAILBRIEF_AI_PROVIDER", defaults["ai_provider"]),
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or defaults["anthropic_api_key"] or None,
            anthropic_model=os.getenv("ANTHROPIC_MODEL", defaults["anthropic_model"]),
            openai_api_key=os.getenv("OPENAI_API_KEY") or defaults["openai_api_key"] or None,
            openai_model=os.getenv("OPENAI_MODEL", defaults["openai_model"]),
            ollama_url=os.getenv("OLLAMA_URL", defaults["ollama_url"]),
            ollama_model=os.getenv("OLLAMA_MODEL", defaults["ollama_model"]),
            gmail_client_id=os.getenv("GMAIL_CLIENT_ID", defaults["gmail_client_id"]),
            gmail_client_secret=os.getenv("GMAIL_CLIENT_SECRET", defaults["gmail_client_secret"]),
            gmail_refresh_token=os.getenv("GMAIL_REFRESH_TOKEN", defaults["gmail_refresh_token"]),
            gmail_api_base_url=os.getenv("GMAIL_API_BASE_URL", defaults["gmail_api_base_url"]),
            google_token_url=os.getenv("GOOGLE_TOKEN_URL", defaults["google_token_url"]),
            api_host=os.getenv("MAILBRIEF_API_HOST", defaults["api_host"]),
            api_port=int(os.getenv("MAILBRIEF_API_PORT", defaults["api_port"])),
            api_key=os.getenv("MAILBRIEF_API_KEY", defaults["api_key"]),
            max_results=int(os.getenv("MAILBRIEF_MAX_RESULTS", defaults["max_results"])),
            fetch_concurrency=int(
                os.getenv("MAILBRIEF_FETCH_CONCURRENCY", defaults["fetch_concurrency"])
            ),
            max_context_messages=int(
                os.getenv("MAILBRIEF_MAX_CONTEXT_MESSAGES", defaults["max_context_messages"])
            ),
            log_level=os.getenv("LOG_LEVEL", defaults["log_level"]),
        )


def load_defaults(path: Path) -> dict[str, str]:
    """Summary: Load configuration defaults from JSON.

    Importance: Ensures all variables exist in a single config file.
    Alternatives: Inline defaults in the AppConfig initializer.
    """

    if not path.exists():
        raise FileNotFoundError(f"Defaults file not found: {path}")
    return json.loads(path.read_text(encoding="utf-8"))


def load_dotenv(path: Path) -> None:
    """Summary: Load key-value pairs from a .env file into the environment.

    Importance: Keeps secrets out of code while supporting local workflows.
    Alternatives: Use python-dotenv or OS-specific secret stores.
    """

    if not path.exists():
        return
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


def configure_logging(level: str = "INFO") -> None:
    """Summary: Apply the default log format when nothing is configured yet.

    Importance: Gives the CLI and API the same log output.
    Alternatives: Ship a logging.ini file.
    """

    if logging.getLogger().handlers:
        return
    resolved = getattr(logging, level.upper(), logging.INFO)
    if not isinstance(resolved, int):
        resolved = logging.INFO
    logging.basicConfig(level=resolved, format="%(levelname)s %(name)s: %(message)s")
