"""Integration tests for CalendarSyncService: HTTP feed into DynamoDB."""
import pytest
import responses

from feeds.feed_client import FeedClient
from feeds.ics_parser import ICSParser
from services.calendar_sync import CalendarSyncService
from storage.connection_store import ConnectionStore
from storage.event_store import EventStore

FEED_URL = 'https://canvas.example.edu/feeds/calendars/user_abc.ics'


def feed(*uids: str, title_suffix: str = '') -> str:
    blocks = []
    for index, uid in enumerate(uids):
        blocks.extend([
            'BEGIN:VEVENT',
            f"UID:{uid}",
            f"SUMMARY:Assignment {uid}{title_suffix}",
            f"DTSTART:2024120{index + 1}T140000Z",
            f"DTEND:2024120{index + 1}T150000Z",
            'END:VEVENT',
        ])
    return '\r\n'.join(['BEGIN:VCALENDAR'] + blocks + ['END:VCALENDAR'])


@pytest.fixture
def stores(storage_session):
    return EventStore(storage_session), ConnectionStore(storage_session)


@pytest.fixture
def connection(stores):
    _, connection_store = stores
    return connection_store.create('user-1', 'canvas', {'feed_url': FEED_URL})


@pytest.fixture
def sync_service(stores):
    event_store, connection_store = stores
    return CalendarSyncService(
        event_store, connection_store, FeedClient(max_retries=1, base_delay=0)
    )


@responses.activate
def test_sync_inserts_then_is_idempotent(sync_service, stores, connection):
    responses.add(responses.GET, FEED_URL, body=feed('a', 'b', 'c'))

    first = sync_service.sync_connection(connection)
    second = sync_service.sync_connection(connection)

    assert first.success is True
    assert (first.result.added, first.result.updated, first.result.deleted) == (3, 0, 0)
    assert first.events_processed == 3
    assert (second.result.added, second.result.updated, second.result.deleted) == (0, 0, 0)
    assert second.result.processed == 3

    event_store, connection_store = stores
    assert sorted(event_store.get_events('user-1', 'canvas')) == ['a', 'b', 'c']
    assert connection_store.get(connection.connection_id).last_synced_at is not None


@responses.activate
def test_sync_applies_updates_and_deletes(sync_service, stores, connection):
    responses.add(responses.GET, FEED_URL, body=feed('a', 'b', 'c'))
    responses.add(responses.GET, FEED_URL, body=feed('a', 'b', title_suffix=' (revised)'))

    sync_service.sync_connection(connection)
    outcome = sync_service.sync_connection(connection)

    assert (outcome.result.added, outcome.result.updated, outcome.result.deleted) == (0, 2, 1)
    stored = stores[0].get_events('user-1', 'canvas')
    assert sorted(stored) == ['a', 'b']
    assert stored['a'].title == 'Assignment a (revised)'


@responses.activate
def test_empty_feed_clears_provider(sync_service, stores, connection):
    responses.add(responses.GET, FEED_URL, body=feed('a', 'b'))
    responses.add(responses.GET, FEED_URL, body=feed())

    sync_service.sync_connection(connection)
    outcome = sync_service.sync_connection(connection)

    assert outcome.success is True
    assert outcome.result.deleted == 2
    assert stores[0].get_events('user-1', 'canvas') == {}


@responses.activate
def test_fetch_failure_is_reported(sync_service, stores, connection):
    responses.add(responses.GET, FEED_URL, status=500)

    outcome = sync_service.sync_connection(connection)

    assert outcome.success is False
    assert outcome.reason.startswith('HTTP 500')
    assert outcome.to_dict() == {
        'connection_id': connection.connection_id,
        'user_id': 'user-1',
        'success': False,
        'reason': outcome.reason,
    }
    assert stores[1].get(connection.connection_id).last_synced_at is None


def test_connection_without_feed_url(sync_service, stores):
    connection = stores[1].create('user-2', 'canvas')

    outcome = sync_service.sync_connection(connection)

    assert outcome.success is False
    assert outcome.reason == 'No feed URL'


def test_reconcile_atomic_mode(stores):
    event_store, connection_store = stores
    service = CalendarSyncService(event_store, connection_store, atomic=True)
    events = ICSParser().parse(feed('x', 'y'))

    result = service.reconcile('user-1', 'canvas', events)

    assert result.added == 2
    assert result.processed == 2
    assert service.reconcile('user-1', 'canvas', events).added == 0
