"""Fetch-parse-reconcile cycle for one calendar connection."""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from feeds.feed_client import FeedClient, FeedFetchError
from feeds.ics_parser import ICSParser
from processor.models import CalendarConnection, CalendarEvent, SyncResult
from processor.reconciler import plan_sync
from storage.connection_store import ConnectionStore
from storage.event_store import EventStore

logger = logging.getLogger(__name__)


@dataclass
class ConnectionSyncOutcome:
    """Per-connection result reported by sync endpoints."""
    connection_id: str
    user_id: str
    success: bool
    reason: Optional[str] = None
    result: SyncResult = field(default_factory=SyncResult)
    fallback_dates: int = 0

    @property
    def events_processed(self) -> int:
        """Rows actually written (inserted + updated)."""
        return self.result.added + self.result.updated

    def to_dict(self) -> dict:
        data = {
            'connection_id': self.connection_id,
            'user_id': self.user_id,
            'success': self.success,
        }
        if self.reason:
            data['reason'] = self.reason
        if self.success:
            data.update({
                'events_processed': self.events_processed,
                'new_events': self.result.added,
                'updated_events': self.result.updated,
                'deleted_events': self.result.deleted,
                'errors': self.result.error_count,
            })
        return data


class CalendarSyncService:
    """Synchronizes feed-backed connections into the events table."""

    def __init__(self, event_store: EventStore, connection_store: ConnectionStore,
                 feed_client: Optional[FeedClient] = None, atomic: bool = False):
        self.event_store = event_store
        self.connection_store = connection_store
        self.feed_client = feed_client
        self.atomic = atomic

    def sync_connection(self, connection: CalendarConnection) -> ConnectionSyncOutcome:
        """
        Run one fetch-parse-reconcile cycle for an ICS connection.

        Upstream failures are reported on the outcome, never raised.

        Args:
            connection: Connection with a feed_url in sync_settings

        Returns:
            ConnectionSyncOutcome
        """
        outcome = ConnectionSyncOutcome(
            connection_id=connection.connection_id,
            user_id=connection.user_id,
            success=False,
        )

        if not connection.feed_url:
            logger.info(f"Skipping connection {connection.connection_id} - no feed URL")
            outcome.reason = 'No feed URL'
            return outcome

        logger.info(f"Syncing {connection.provider} feed for connection {connection.connection_id}")
        try:
            ics_content = self.feed_client.fetch_text(connection.feed_url)
        except FeedFetchError as e:
            logger.error(f"Failed to fetch feed for connection {connection.connection_id}: {e.reason}")
            outcome.reason = e.reason
            return outcome

        events = ICSParser(source_provider=connection.provider).parse(ics_content)
        outcome.fallback_dates = sum(1 for event in events if event.used_fallback_date)
        if outcome.fallback_dates:
            logger.warning(
                f"{outcome.fallback_dates} events on connection "
                f"{connection.connection_id} used fallback dates"
            )

        outcome.result = self.reconcile(connection.user_id, connection.provider, events)
        outcome.success = True
        self.connection_store.mark_synced(connection.connection_id)

        logger.info(
            f"Successfully synced connection {connection.connection_id}: "
            f"{outcome.result.added} new, {outcome.result.updated} updated, "
            f"{outcome.result.deleted} deleted"
        )
        return outcome

    def reconcile(self, user_id: str, provider: str,
                  events: List[CalendarEvent]) -> SyncResult:
        """
        Make the stored events for (user, provider) match a feed snapshot.

        Args:
            user_id: Owner of the events
            provider: Provider the snapshot came from
            events: Parsed events

        Returns:
            SyncResult with processed set to the snapshot size
        """
        existing = self.event_store.get_events(user_id, provider)
        plan = plan_sync(events, existing.values())
        if plan.is_empty:
            result = SyncResult()
        else:
            result = self.event_store.apply_plan(
                user_id, plan, provider, atomic=self.atomic
            )
        result.processed = len(events)
        return result
