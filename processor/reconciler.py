"""Diff planning between a fresh feed snapshot and stored events."""
import logging
from typing import Dict, Iterable, List

from processor.models import CalendarEvent, StoredEvent, SyncPlan
from processor.timezones import to_utc_iso

logger = logging.getLogger(__name__)


def index_incoming(events: Iterable[CalendarEvent]) -> Dict[str, CalendarEvent]:
    """
    Key incoming events by source_event_id.

    Later duplicates replace earlier ones, so the plan never holds two
    writes for the same external id.
    """
    indexed: Dict[str, CalendarEvent] = {}
    for event in events:
        if event.source_event_id in indexed:
            logger.debug(f"Duplicate source_event_id in feed: {event.source_event_id}")
        indexed[event.source_event_id] = event
    return indexed


def event_changed(incoming: CalendarEvent, stored: StoredEvent) -> bool:
    """
    Compare an incoming event with its stored row.

    Only title, start and end are compared.

    Args:
        incoming: Parsed event
        stored: Persisted event with the same source_event_id

    Returns:
        True if the stored row needs an update
    """
    return (
        incoming.title != stored.title or
        to_utc_iso(incoming.start_time) != stored.start_time or
        to_utc_iso(incoming.end_time) != stored.end_time
    )


def plan_sync(incoming: Iterable[CalendarEvent],
              existing: Iterable[StoredEvent]) -> SyncPlan:
    """
    Compute insert/update/delete sets for one (user, provider).

    The feed is authoritative: stored events missing from it are deleted.

    Args:
        incoming: Events parsed from the latest feed fetch
        existing: Events currently stored for the same user and provider

    Returns:
        SyncPlan with events to insert/update and source ids to delete
    """
    incoming_by_id = index_incoming(incoming)
    existing_by_id = {event.source_event_id: event for event in existing}

    plan = SyncPlan()
    for source_event_id, event in incoming_by_id.items():
        stored = existing_by_id.get(source_event_id)
        if stored is None:
            plan.to_insert.append(event)
        elif event_changed(event, stored):
            plan.to_update.append(event)

    plan.to_delete = [
        source_event_id for source_event_id in existing_by_id
        if source_event_id not in incoming_by_id
    ]

    logger.info(
        f"Sync plan: {len(plan.to_insert)} to add, "
        f"{len(plan.to_update)} to update, "
        f"{len(plan.to_delete)} to delete"
    )
    return plan
