"""Summary: Lookback window arithmetic for briefing runs.

Importance: Decides which unread emails count as recent, both in the Gmail query and locally.
Alternatives: Trust the Gmail search filter without a local check.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

from mailbrief.models import EmailMetadata, LookbackWindow


LOOKBACK_HOURS = 48
LOOKBACK_WINDOW_MS = LOOKBACK_HOURS * 60 * 60 * 1000
LOOKBACK_QUERY_BUFFER_SECONDS = 1


def current_time_ms() -> int:
    return int(time.time() * 1000)


def resolve_lookback_window(now_ms: int | None = None) -> LookbackWindow:
    """Summary: Compute the window ending at now.

    Importance: Single source for the millisecond and epoch-second bounds.
    Alternatives: Compute bounds separately in the query and the filter.
    """

    end_ms = current_time_ms() if now_ms is None else now_ms
    start_ms = end_ms - LOOKBACK_WINDOW_MS
    return LookbackWindow(
        start_ms=start_ms,
        end_ms=end_ms,
        start_epoch_seconds=start_ms // 1000,
        end_epoch_seconds=end_ms // 1000,
    )


def build_lookback_query(now_ms: int | None = None) -> str:
    """Summary: Build the Gmail search query for the lookback window.

    Importance: Narrows the listing call to unread mail inside the window.
    Alternatives: List all unread mail and filter locally only.
    """

    window = resolve_lookback_window(now_ms)
    # Gmail filters have second precision; widen by one second on each side.
    after = max(0, window.start_epoch_seconds - LOOKBACK_QUERY_BUFFER_SECONDS)
    before = window.end_epoch_seconds + LOOKBACK_QUERY_BUFFER_SECONDS
    return f"is:unread after:{after} before:{before}"


def filter_emails_in_lookback_window(
    emails: list[EmailMetadata], now_ms: int | None = None
) -> list[EmailMetadata]:
    """Summary: Keep emails whose Date header falls inside the window.

    Importance: Removes anything the widened Gmail query let through.
    Alternatives: Filter on Gmail internalDate instead of the Date header.
    """

    window = resolve_lookback_window(now_ms)
    kept: list[EmailMetadata] = []
    for email in emails:
        timestamp = parse_email_date_ms(email.date)
        # Unparsable dates are dropped, same as emails outside the window.
        if timestamp is None:
            continue
        if window.start_ms <= timestamp <= window.end_ms:
            kept.append(email)
    return kept


def parse_email_date_ms(value: str) -> int | None:
    """Summary: Parse an email Date header into epoch milliseconds.

    Importance: Accepts RFC 2822 headers and ISO-8601 strings.
    Alternatives: Use dateutil for lenient parsing.
    """

    cleaned = value.strip()
    if not cleaned:
        return None
    parsed: datetime | None
    try:
        parsed = parsedate_to_datetime(cleaned)
    except (TypeError, ValueError, IndexError):
        parsed = None
    if parsed is None:
        try:
            parsed = datetime.fromisoformat(cleaned.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)
