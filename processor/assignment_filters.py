"""Filtering of stale Canvas assignments and manual tasks."""
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Mapping, Optional

from processor.timezones import parse_iso

logger = logging.getLogger(__name__)

STALE_AFTER_DAYS = 7


def _item_date(item: Mapping, *fields: str) -> Optional[datetime]:
    for name in fields:
        value = item.get(name)
        if not value:
            continue
        if isinstance(value, str):
            return parse_iso(value)
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    return None


def filter_recent_assignments(items: List[Mapping],
                              now: Optional[datetime] = None) -> List[Mapping]:
    """
    Drop Canvas assignments and manual tasks more than a week overdue.

    Items are dict-like rows (events or tasks). Anything that is neither a
    Canvas assignment nor a dated manual task is kept.

    Args:
        items: Event or task rows
        now: Reference time (default: current UTC time)

    Returns:
        Items that are still recent, in input order
    """
    now = now or datetime.now(timezone.utc)
    today = now.astimezone(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    cutoff = today - timedelta(days=STALE_AFTER_DAYS)

    kept = []
    for item in items:
        is_canvas_assignment = (
            item.get('source_provider') == 'canvas' and
            item.get('event_type') == 'assignment'
        )
        is_manual_task = (
            item.get('due_date') and
            item.get('source_provider') in (None, '', 'manual')
        )

        if is_canvas_assignment:
            when = _item_date(item, 'start_time', 'end_time', 'due_date')
        elif is_manual_task:
            when = _item_date(item, 'due_date')
        else:
            kept.append(item)
            continue

        if when is not None and when < cutoff:
            logger.debug(f"Filtering out old item: {item.get('title')!r} due {when.date()}")
            continue
        kept.append(item)

    return kept


def filter_canvas_assignments(events: List[Mapping],
                              now: Optional[datetime] = None) -> List[Mapping]:
    canvas = [
        event for event in events
        if event.get('event_type') == 'assignment' and event.get('source_provider') == 'canvas'
    ]
    return filter_recent_assignments(canvas, now)
