"""Summary: Google OAuth helpers for Gmail access.

Importance: Obtains access tokens from a stored refresh token without extra dependencies.
Alternatives: Use google-auth and google-auth-oauthlib.
"""

from __future__ import annotations

import json
import secrets
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any

from mailbrief.config import AppConfig
from mailbrief.errors import ConfigurationError, OAuthError, describe_error


GMAIL_SCOPES = (
    "https://www.googleapis.com/auth/gmail.readonly "
    "https://www.googleapis.com/auth/gmail.compose"
)
GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
DEFAULT_REDIRECT_URI = "http://localhost"


@dataclass(frozen=True)
class OAuthTokenResult:
    """Summary: Normalized OAuth token response data.

    Importance: Provides a consistent token representation for the Gmail client.
    Alternatives: Pass the raw provider response around.
    """

    access_token: str
    refresh_token: str | None
    expires_in: int | None
    raw: dict[str, Any]

    @staticmethod
    def from_response(payload: dict[str, Any]) -> "OAuthTokenResult":
        if not payload.get("access_token"):
            raise OAuthError("Token response missing access_token")
        expires_in = payload.get("expires_in")
        return OAuthTokenResult(
            access_token=payload["access_token"],
            refresh_token=payload.get("refresh_token"),
            expires_in=expires_in if isinstance(expires_in, int) else None,
            raw=payload,
        )


def create_state_token() -> str:
    return secrets.token_urlsafe(24)


def build_google_auth_url(
    config: AppConfig, state: str, redirect_uri: str = DEFAULT_REDIRECT_URI
) -> str:
    """Summary: Build the consent URL used once to obtain a refresh token.

    Importance: Requests offline access so the refresh token can be stored in .env.
    Alternatives: Use the OAuth playground.
    """

    params = {
        "client_id": config.gmail_client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "access_type": "offline",
        "prompt": "consent",
        "scope": GMAIL_SCOPES,
        "state": state,
    }
    return f"{GOOGLE_AUTH_URL}?{urllib.parse.urlencode(params)}"


def exchange_oauth_code(
    config: AppConfig, code: str, redirect_uri: str = DEFAULT_REDIRECT_URI
) -> OAuthTokenResult:
    """Summary: Exchange an authorization code for access and refresh tokens."""

    _ensure_client_credentials(config)
    payload = {
        "client_id": config.gmail_client_id,
        "client_secret": config.gmail_client_secret,
        "code": code,
        "grant_type": "authorization_code",
        "redirect_uri": redirect_uri,
    }
    return OAuthTokenResult.from_response(_post_form(config.google_token_url, payload))


def refresh_google_access_token(config: AppConfig) -> OAuthTokenResult:
    """Summary: Trade the configured refresh token for a fresh access token.

    Importance: Every run starts with a valid bearer token for the Gmail API.
    Alternatives: Cache access tokens until expiry.
    """

    _ensure_client_credentials(config)
    if not config.gmail_refresh_token:
        raise ConfigurationError("GMAIL_REFRESH_TOKEN environment variable is required")
    payload = {
        "client_id": config.gmail_client_id,
        "client_secret": config.gmail_client_secret,
        "refresh_token": config.gmail_refresh_token,
        "grant_type": "refresh_token",
    }
    return OAuthTokenResult.from_response(_post_form(config.google_token_url, payload))


def _ensure_client_credentials(config: AppConfig) -> None:
    if not config.gmail_client_id:
        raise ConfigurationError("GMAIL_CLIENT_ID environment variable is required")
    if not config.gmail_client_secret:
        raise ConfigurationError("GMAIL_CLIENT_SECRET environment variable is required")


def _post_form(url: str, payload: dict[str, str]) -> dict[str, Any]:
    """Summary: Send a form-encoded POST request and parse JSON.

    Importance: Avoids new dependencies while supporting OAuth exchanges.
    Alternatives: Use requests or a provider SDK.
    """

    data = urllib.parse.urlencode(payload).encode("utf-8")
    request = urllib.request.Request(
        url,
        data=data,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        method="POST",
    )
    try:
        with urllib.request.urlopen(request, timeout=10) as response:
            raw = response.read().decode("utf-8")
        parsed = json.loads(raw)
    except urllib.error.HTTPError as exc:
        error_body = exc.read().decode("utf-8", errors="replace")
        raise OAuthError(f"Token exchange failed: {error_body or exc.reason}") from exc
    except urllib.error.URLError as exc:
        raise OAuthError(f"Token exchange failed: {exc.reason}") from exc
    except OSError as exc:
        raise OAuthError(f"Token exchange failed: {describe_error(exc)}") from exc
    except ValueError as exc:
        raise OAuthError(f"Token endpoint returned invalid JSON: {exc}") from exc
    if not isinstance(parsed, dict):
        raise OAuthError("Token endpoint returned a non-object response")
    return parsed
