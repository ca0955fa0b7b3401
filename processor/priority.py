"""Keyword and due-date priority scoring for tasks and assignments."""
import re
from datetime import datetime, timezone
from typing import Optional, Union

from processor.timezones import parse_iso

NONE, LOW, MEDIUM, HIGH, CRITICAL = range(5)

PRIORITY_LABELS = {
    CRITICAL: 'Critical',
    HIGH: 'High',
    MEDIUM: 'Medium',
    LOW: 'Low',
    NONE: 'No Priority',
}

PRIORITY_KEYWORDS = {
    CRITICAL: ['exam', 'test', 'quiz', 'midterm', 'final', 'urgent'],
    HIGH: ['assignment', 'project', 'presentation', 'paper', 'essay'],
    MEDIUM: ['homework', 'reading', 'discussion', 'lab'],
    LOW: ['optional', 'extra credit', 'review'],
}

# (max days until due, tier), checked in order
DUE_DATE_BUCKETS = [
    (1, CRITICAL),
    (3, HIGH),
    (7, LOW),
]

_LABEL_TO_SCORE = {
    'none': NONE,
    'low': LOW,
    'medium': MEDIUM,
    'high': HIGH,
    'critical': CRITICAL,
}

_KEYWORD_PATTERNS = {
    tier: [re.compile(r'\b' + re.escape(keyword)) for keyword in keywords]
    for tier, keywords in PRIORITY_KEYWORDS.items()
}


def keyword_priority(text: str) -> int:
    """Highest tier whose vocabulary appears in the text."""
    text = text.lower()
    for tier in (CRITICAL, HIGH, MEDIUM, LOW):
        if any(pattern.search(text) for pattern in _KEYWORD_PATTERNS[tier]):
            return tier
    return NONE


def due_date_priority(due_date: Union[datetime, str, None],
                      now: Optional[datetime] = None) -> int:
    """
    Bucket the time left until a due date into a priority tier.

    Overdue items count as due within a day.
    """
    if due_date is None:
        return NONE
    if isinstance(due_date, str):
        due_date = parse_iso(due_date)
    elif due_date.tzinfo is None:
        due_date = due_date.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)

    days_until_due = (due_date - now).total_seconds() / 86400
    for max_days, tier in DUE_DATE_BUCKETS:
        if days_until_due <= max_days:
            return tier
    return NONE


def calculate_priority(title: str, description: Optional[str] = None,
                       due_date: Union[datetime, str, None] = None,
                       now: Optional[datetime] = None) -> int:
    """
    Compute the priority tier (0-4) for a task or assignment.

    Args:
        title: Task title
        description: Optional free-text description
        due_date: Optional due date (datetime or ISO string)
        now: Reference time (default: current UTC time)

    Returns:
        Integer tier: 0 none, 1 low, 2 medium, 3 high, 4 critical
    """
    text = f"{title or ''} {description or ''}"
    return max(keyword_priority(text), due_date_priority(due_date, now))


def priority_label(score: int) -> str:
    return PRIORITY_LABELS.get(score, PRIORITY_LABELS[NONE])


def priority_from_label(label: str) -> int:
    return _LABEL_TO_SCORE.get((label or '').lower(), NONE)
