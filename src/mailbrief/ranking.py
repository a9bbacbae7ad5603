"""Summary: Priority ranking for extracted insights.

Importance: Puts emails that need action first, then orders by who sent them.
Alternatives: Score emails with keyword heuristics or a second model call.
"""

from __future__ import annotations

from functools import cmp_to_key

from mailbrief.models import AnalyzedEmail, EmailCategory, EmailInsight, EmailUrgency


URGENCY_SORT_ORDER: dict[EmailUrgency, int] = {
    EmailUrgency.ACTION_REQUIRED: 0,
    EmailUrgency.FYI: 1,
    EmailUrgency.NOISE: 2,
}

CATEGORY_SORT_ORDER: dict[EmailCategory, int] = {
    EmailCategory.PERSONAL: 0,
    EmailCategory.BUSINESS: 1,
    EmailCategory.AUTOMATED: 2,
    EmailCategory.NEWSLETTER_OR_SPAM: 3,
}


def compare_by_category(a: EmailInsight, b: EmailInsight) -> int:
    """Summary: Compare two insights by urgency, then category.

    Importance: Total preorder used for a stable sort; no other field matters.
    Alternatives: Weighted scores combining several fields.
    """

    urgency_diff = URGENCY_SORT_ORDER[a.urgency] - URGENCY_SORT_ORDER[b.urgency]
    if urgency_diff != 0:
        return urgency_diff
    return CATEGORY_SORT_ORDER[a.category] - CATEGORY_SORT_ORDER[b.category]


def priority_key(insight: EmailInsight) -> tuple[int, int]:
    return URGENCY_SORT_ORDER[insight.urgency], CATEGORY_SORT_ORDER[insight.category]


def order_by_priority(results: list[AnalyzedEmail]) -> list[AnalyzedEmail]:
    """Summary: Return results sorted by insight priority, keeping input order on ties."""

    return sorted(results, key=cmp_to_key(lambda a, b: compare_by_category(a.insight, b.insight)))
