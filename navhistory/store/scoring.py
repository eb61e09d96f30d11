from __future__ import annotations

import datetime as dt

from .types import HistoryEntry

TYPED_BONUS = 2000.0
VISIT_BONUS = 100.0

# (max days since last visit, weight); anything past the last bucket gets
# FALLBACK_RECENCY_WEIGHT.
RECENCY_BUCKETS: tuple[tuple[int, float], ...] = (
    (4, 100.0),
    (14, 70.0),
    (31, 50.0),
    (90, 30.0),
)
FALLBACK_RECENCY_WEIGHT = 10.0

EXACT_MATCH = 1000.0
ADDRESS_PREFIX = 800.0
TITLE_PREFIX = 700.0
ADDRESS_BOUNDARY = 600.0
TITLE_WORD_PREFIX = 500.0
ADDRESS_CONTAINS = 300.0
TITLE_CONTAINS = 200.0
NO_MATCH = 0.0

_ADDRESS_BOUNDARIES = ("://", "/", ".")


SECONDS_PER_DAY = 86400


def days_since(last_visit: dt.datetime, now: dt.datetime) -> int:
    """Whole days between the visit and ``now``, truncated toward zero."""
    elapsed = (now - last_visit).total_seconds()
    days = int(abs(elapsed) // SECONDS_PER_DAY)
    return days if elapsed >= 0 else -days


def recency_weight(days: int) -> float:
    if days < 0:
        return FALLBACK_RECENCY_WEIGHT
    for max_days, weight in RECENCY_BUCKETS:
        if days <= max_days:
            return weight
    return FALLBACK_RECENCY_WEIGHT


def frecency_score(entry: HistoryEntry, now: dt.datetime) -> float:
    """Blend recency and frequency into a query-independent score.

    The three signals are summed so a weak one never zeroes the total. Only the
    relative order matters; scores are not normalized.
    """
    typed_bonus = TYPED_BONUS if entry.typed_count > 0 else 0.0
    frequency_bonus = entry.visit_count * VISIT_BONUS
    return recency_weight(days_since(entry.last_visit, now)) + typed_bonus + frequency_bonus


def matches(entry: HistoryEntry, query: str) -> bool:
    lowered = query.lower()
    return lowered in entry.address.lower() or lowered in entry.title.lower()


def match_score(entry: HistoryEntry, query: str) -> float:
    """Score how well ``query`` lines up with an entry; the first tier that hits wins."""
    q = query.lower()
    address = entry.address.lower()
    title = entry.title.lower()

    if address == q or title == q:
        return EXACT_MATCH
    if address.startswith(q):
        return ADDRESS_PREFIX
    if title.startswith(q):
        return TITLE_PREFIX
    if any(f"{boundary}{q}" in address for boundary in _ADDRESS_BOUNDARIES):
        return ADDRESS_BOUNDARY
    if any(word.startswith(q) for word in title.split()):
        return TITLE_WORD_PREFIX
    if q in address:
        return ADDRESS_CONTAINS
    if q in title:
        return TITLE_CONTAINS
    return NO_MATCH


def ranking_key(entry: HistoryEntry, query: str, now: dt.datetime) -> tuple[float, dt.datetime]:
    return (match_score(entry, query) + frecency_score(entry, now), entry.last_visit)
