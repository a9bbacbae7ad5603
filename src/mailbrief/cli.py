"""Summary: Command-line interface for MailBrief.

Importance: Provides a local entry point for the briefing and reply-draft pipelines.
Alternatives: Call the HTTP API from a script.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from mailbrief.app import build_context
from mailbrief.config import AppConfig, configure_logging
from mailbrief.errors import MailBriefError
from mailbrief.oauth import build_google_auth_url, create_state_token, exchange_oauth_code


logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Summary: Build the CLI argument parser.

    Importance: Defines supported commands for local operation.
    Alternatives: Use a CLI framework like Typer or Click.
    """

    parser = argparse.ArgumentParser(description="MailBrief CLI")
    subparsers = parser.add_subparsers(dest="command", required=True)

    briefing = subparsers.add_parser(
        "briefing", help="Summarize unread email from the last 48 hours"
    )
    briefing.add_argument(
        "--digest", action="store_true", help="Print the full ranked digest after the narrative"
    )

    draft_reply = subparsers.add_parser("draft-reply", help="Save a reply draft for an email")
    draft_reply.add_argument("email_id", type=str)
    draft_reply.add_argument("--thread-id", type=str, default=None)
    draft_reply.add_argument("--voice", type=str, default=None)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", type=str, default=None)
    serve.add_argument("--port", type=int, default=None)

    oauth_url = subparsers.add_parser("oauth-url", help="Print the Google consent URL")
    oauth_url.add_argument("--redirect-uri", type=str, default="http://localhost")

    oauth_exchange = subparsers.add_parser(
        "oauth-exchange", help="Exchange an authorization code for tokens"
    )
    oauth_exchange.add_argument("code", type=str)
    oauth_exchange.add_argument("--redirect-uri", type=str, default="http://localhost")

    return parser


def run_command(args: argparse.Namespace, config: AppConfig) -> int:
    """Summary: Execute one parsed command and return an exit code.

    Importance: Keeps argument parsing separate from command execution for tests.
    Alternatives: Dispatch inside run_cli directly.
    """

    if args.command == "briefing":
        service = build_context(config).briefing_service()
        result = asyncio.run(service.run())
        print(result.narrative)
        if result.action_items:
            print("\nAction items:")
            for item in result.action_items:
                print(f"- {item}")
        if args.digest and result.digest:
            print()
            print(result.digest.rstrip())
        print(
            f"\n{result.analyzed_count} of {result.unread_count} unread emails analyzed "
            f"in the last {result.timeframe_hours} hours ({result.failed_count} failed)."
        )
        return 0

    if args.command == "draft-reply":
        service = build_context(config).draft_reply_service()
        result = asyncio.run(
            service.run(args.email_id, thread_id=args.thread_id, voice_instructions=args.voice)
        )
        print(f"Saved draft {result.draft_id} in thread {result.thread_id}.")
        print(f"Subject: {result.subject}")
        if result.context_degraded:
            print("Thread context was unavailable; drafted from the target email only.")
        if result.risk_flags:
            print("Review flags: " + ", ".join(flag.value for flag in result.risk_flags))
        print()
        print(result.draft_text)
        return 0

    if args.command == "serve":
        import uvicorn

        from mailbrief.api import create_app

        uvicorn.run(
            create_app(config),
            host=args.host or config.api_host,
            port=args.port or config.api_port,
            log_level=config.log_level.lower(),
        )
        return 0

    if args.command == "oauth-url":
        print(build_google_auth_url(config, create_state_token(), args.redirect_uri))
        return 0

    if args.command == "oauth-exchange":
        token = exchange_oauth_code(config, args.code, args.redirect_uri)
        if not token.refresh_token:
            print("No refresh token returned; revoke access and consent again.")
            return 1
        print(f"GMAIL_REFRESH_TOKEN={token.refresh_token}")
        return 0

    raise ValueError(f"Unknown command: {args.command}")


def run_cli(argv: list[str] | None = None) -> None:
    """Summary: Parse arguments, run the command, and exit.

    Importance: Console script entry point.
    Alternatives: Invoke services via an HTTP API.
    """

    parser = build_parser()
    args = parser.parse_args(argv)
    config = AppConfig.from_env()
    configure_logging(config.log_level)
    try:
        code = run_command(args, config)
    except MailBriefError as exc:
        logger.error("%s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    run_cli()
