"""Summary: Narrative briefing built from ranked insights.

Importance: Turns a ranked list of insights into a short update and a full digest.
Alternatives: Ask the model to write the narrative in a third call.
"""

from __future__ import annotations

import re

from mailbrief.lookback import LOOKBACK_HOURS
from mailbrief.models import AnalyzedEmail, EmailCategory, EmailUrgency


MAX_ACTION_ITEMS = 5
MAX_INSIGHT_BULLETS = 3
SLANG_DENYLIST = ("asap", "btw", "gonna", "kinda", "lol")
EMPTY_NARRATIVE = f"No high-signal updates were found in the last {LOOKBACK_HOURS} hours."

URGENCY_LABELS: dict[EmailUrgency, str] = {
    EmailUrgency.ACTION_REQUIRED: "Action Required",
    EmailUrgency.FYI: "Updates",
    EmailUrgency.NOISE: "Background",
}

# Section order in the narrative.
SECTION_ORDER = (EmailUrgency.FYI, EmailUrgency.ACTION_REQUIRED, EmailUrgency.NOISE)


def extract_action_items(results: list[AnalyzedEmail]) -> list[str]:
    """Summary: Collect distinct action items in ranked order.

    Importance: Gives the reader a short to-do list without repeats.
    Alternatives: List every action, duplicates included.
    """

    action_items: list[str] = []
    seen: set[str] = set()
    for result in results:
        action = (result.insight.action or "").strip()
        if not action:
            continue
        normalized = _normalize_action_item(action)
        if normalized in seen:
            continue
        seen.add(normalized)
        action_items.append(sanitize_narrative_text(action))
    return action_items[:MAX_ACTION_ITEMS]


def build_narrative(results: list[AnalyzedEmail]) -> str:
    """Summary: Render the top ranked results as urgency sections.

    Importance: Keeps the briefing short by showing only the top few emails.
    Alternatives: Render every analyzed email.
    """

    if not results:
        return EMPTY_NARRATIVE
    selected = results[:MAX_INSIGHT_BULLETS]
    sections = []
    for urgency in SECTION_ORDER:
        matching = [result for result in selected if result.insight.urgency == urgency]
        if matching:
            sections.append(format_urgency_section(urgency, matching))
    return "\n\n".join(sections)


def format_urgency_section(urgency: EmailUrgency, results: list[AnalyzedEmail]) -> str:
    lines = []
    for result in results:
        line = (
            f"- {extract_sender_name(result.email.sender)}: "
            f"{sanitize_narrative_text(result.insight.summary)}"
        )
        if result.insight.action:
            line += f"\n  -> {sanitize_narrative_text(result.insight.action)}"
        lines.append(line)
    return f"## {URGENCY_LABELS[urgency]}\n" + "\n".join(lines)


def sanitize_narrative_text(value: str) -> str:
    """Summary: Remove exclamation marks and slang from model text."""

    sanitized = value.replace("!", "")
    for term in SLANG_DENYLIST:
        sanitized = re.sub(rf"\b{term}\b", "", sanitized, flags=re.IGNORECASE)
    return re.sub(r"\s+", " ", sanitized).strip()


def extract_sender_name(sender: str) -> str:
    """Summary: Pull a display name out of a From header.

    Importance: Narrative lines read better with names than addresses.
    Alternatives: email.utils.parseaddr, which drops names without brackets.
    """

    bracketed = re.match(r'^"?([^"<]+)"?\s*<', sender)
    if bracketed:
        return bracketed.group(1).strip()
    name_only = re.match(r"^([^@<]+)", sender)
    if name_only:
        return name_only.group(1).strip()
    return sender


def _normalize_action_item(value: str) -> str:
    return re.sub(r"[.!?]+$", "", sanitize_narrative_text(value).lower())


def build_digest(results: list[AnalyzedEmail]) -> str:
    """Summary: Render every ranked result as a markdown digest.

    Importance: The narrative shows only the top few emails; the digest covers
    the whole ranked list, grouped under one header per urgency run.
    Alternatives: Return structured insights only and leave rendering to clients.
    """

    if not results:
        return ""
    parts = [format_digest_intro(results)]
    current_urgency: EmailUrgency | None = None
    reading_list_started = False
    for result in results:
        insight = result.insight
        if insight.urgency != current_urgency:
            current_urgency = insight.urgency
            reading_list_started = False
            parts.append(format_section_header(current_urgency))
        if _is_reading_list_item(result) and not reading_list_started:
            reading_list_started = True
            parts.append("### Reading List\n\n")
        parts.append(format_insight_markdown(result))
    return "".join(parts)


def format_digest_intro(results: list[AnalyzedEmail]) -> str:
    counts = {urgency: 0 for urgency in EmailUrgency}
    for result in results:
        counts[result.insight.urgency] += 1
    parts = []
    action_count = counts[EmailUrgency.ACTION_REQUIRED]
    if action_count:
        verb = "needs" if action_count == 1 else "need"
        parts.append(f"**{action_count} {verb} attention**")
    fyi_count = counts[EmailUrgency.FYI]
    if fyi_count:
        parts.append(f"{fyi_count} update" if fyi_count == 1 else f"{fyi_count} updates")
    noise_count = counts[EmailUrgency.NOISE]
    if noise_count:
        parts.append(f"{noise_count} background")
    return f"{len(results)} unread in the last {LOOKBACK_HOURS} hours: {', '.join(parts)}.\n\n"


def format_section_header(urgency: EmailUrgency) -> str:
    return f"## {URGENCY_LABELS[urgency]}\n\n"


def format_insight_markdown(result: AnalyzedEmail) -> str:
    """Summary: Render one analyzed email in the layout of its urgency.

    Importance: Action items stand out while background mail collapses to a
    single bullet.
    Alternatives: One uniform layout for every urgency.
    """

    email, insight = result.email, result.insight
    summary = sanitize_narrative_text(insight.summary)
    if insight.urgency == EmailUrgency.ACTION_REQUIRED:
        block = f"**{summary}**\n"
        if insight.action:
            block += f"-> {sanitize_narrative_text(insight.action)}\n"
        return block + "\n---\n\n"
    if insight.urgency == EmailUrgency.NOISE:
        return f"- {summary} _({extract_sender_name(email.sender)})_\n"
    if _is_reading_list_item(result):
        return f"- **{email.subject}** ({extract_sender_name(email.sender)}) -- {summary}\n"
    return f"**From:** {email.sender}\n**Subject:** {email.subject}\n\n{summary}\n\n---\n\n"


def _is_reading_list_item(result: AnalyzedEmail) -> bool:
    return (
        result.insight.urgency == EmailUrgency.FYI
        and result.insight.category == EmailCategory.NEWSLETTER_OR_SPAM
    )
