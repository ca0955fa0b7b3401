"""Unit tests for the Google Calendar client and event conversion."""
from datetime import datetime, timezone

import pytest
import responses

from feeds.google_calendar import (
    CALENDAR_API, RECONNECT_MESSAGE, TASKS_API, TOKEN_URL, AuthorizationError,
    GoogleAPIError, GoogleCalendarClient, to_calendar_event,
)
from processor.timezones import to_utc_iso

NOW = datetime(2024, 11, 20, 12, 0, 0, tzinfo=timezone.utc)


class TestToCalendarEvent:
    """Test cases for to_calendar_event."""

    def test_timed_event(self):
        event = to_calendar_event({
            'id': 'evt1',
            'summary': 'Study group',
            'start': {'dateTime': '2024-12-01T10:00:00-05:00'},
            'end': {'dateTime': '2024-12-01T11:30:00-05:00'},
            'location': 'Library',
            'calendarName': 'School',
        })

        assert event.source_provider == 'google'
        assert event.source_event_id == 'evt1'
        assert to_utc_iso(event.start_time) == '2024-12-01T15:00:00Z'
        assert to_utc_iso(event.end_time) == '2024-12-01T16:30:00Z'
        assert event.is_all_day is False
        assert event.description == 'Calendar: School\n\nLocation: Library'

    def test_timed_event_without_end_lasts_one_hour(self):
        event = to_calendar_event({
            'id': 'evt2',
            'summary': 'Call',
            'start': {'dateTime': '2024-12-01T10:00:00Z'},
        })

        assert to_utc_iso(event.end_time) == '2024-12-01T11:00:00Z'

    def test_all_day_end_date_is_exclusive(self):
        event = to_calendar_event({
            'id': 'evt3',
            'summary': 'Fall break',
            'start': {'date': '2024-11-25'},
            'end': {'date': '2024-11-27'},
        })

        assert event.is_all_day is True
        assert to_utc_iso(event.start_time) == '2024-11-25T00:00:00Z'
        assert to_utc_iso(event.end_time) == '2024-11-26T23:59:59Z'

    def test_single_all_day(self):
        event = to_calendar_event({
            'id': 'evt4',
            'start': {'date': '2024-11-25'},
            'end': {'date': '2024-11-26'},
        })

        assert event.title == 'Untitled Event'
        assert to_utc_iso(event.end_time) == '2024-11-25T23:59:59Z'

    def test_cancelled_and_undated_are_skipped(self):
        assert to_calendar_event({
            'id': 'c', 'status': 'cancelled', 'start': {'date': '2024-11-25'}
        }) is None
        assert to_calendar_event({'id': 'u', 'summary': 'No time'}) is None


class TestGoogleCalendarClient:
    """Test cases for GoogleCalendarClient class."""

    @responses.activate
    def test_fetch_all_events_skips_unreadable_calendars(self):
        responses.add(responses.GET, f"{CALENDAR_API}/users/me/calendarList", json={
            'items': [
                {'id': 'primary', 'summary': 'Me', 'accessRole': 'owner',
                 'backgroundColor': '#123456'},
                {'id': 'busy', 'summary': 'Busy', 'accessRole': 'freeBusyReader'},
                {'id': 'hidden', 'summary': 'Hidden', 'accessRole': 'reader', 'hidden': True},
                {'id': 'off', 'summary': 'Off', 'accessRole': 'reader', 'selected': False},
            ]
        })
        responses.add(responses.GET, f"{CALENDAR_API}/calendars/primary/events", json={
            'items': [{'id': 'a'}], 'nextPageToken': 'page2'
        })
        responses.add(responses.GET, f"{CALENDAR_API}/calendars/primary/events", json={
            'items': [{'id': 'b'}]
        })

        client = GoogleCalendarClient('token')
        events = client.fetch_all_events(NOW)

        assert [event['id'] for event in events] == ['a', 'b']
        assert events[0]['calendarName'] == 'Me'
        assert events[0]['calendarColor'] == '#123456'
        assert 'pageToken=page2' in responses.calls[2].request.url
        assert len(responses.calls) == 3

    @responses.activate
    def test_failed_page_raises(self):
        url = f"{CALENDAR_API}/calendars/primary/events"
        responses.add(responses.GET, url, json={'items': [{'id': 'a'}], 'nextPageToken': 'p2'})
        responses.add(responses.GET, url, status=500)

        client = GoogleCalendarClient('token')

        with pytest.raises(GoogleAPIError, match='Incomplete fetch of calendar primary'):
            client.list_events('primary', NOW, NOW)

    @responses.activate
    def test_page_limit_raises(self):
        url = f"{CALENDAR_API}/calendars/primary/events"
        responses.add(responses.GET, url, json={'items': [{'id': 'a'}], 'nextPageToken': 'p2'})
        responses.add(responses.GET, url, json={'items': [{'id': 'b'}], 'nextPageToken': 'p3'})

        client = GoogleCalendarClient('token')
        client.MAX_PAGES = 2

        with pytest.raises(GoogleAPIError, match='page limit reached'):
            client.list_events('primary', NOW, NOW)
        assert len(responses.calls) == 2

    @responses.activate
    def test_failed_calendar_fails_whole_fetch(self):
        responses.add(responses.GET, f"{CALENDAR_API}/users/me/calendarList", json={
            'items': [{'id': 'primary', 'summary': 'Me', 'accessRole': 'owner'}]
        })
        responses.add(responses.GET, f"{CALENDAR_API}/calendars/primary/events", status=503)

        client = GoogleCalendarClient('token')

        with pytest.raises(GoogleAPIError):
            client.fetch_all_events(NOW)

    @responses.activate
    def test_expired_token_is_refreshed(self):
        url = f"{CALENDAR_API}/users/me/calendarList"
        responses.add(responses.GET, url, status=401)
        responses.add(responses.POST, TOKEN_URL, json={'access_token': 'fresh'})
        responses.add(responses.GET, url, json={'items': []})

        refreshed = []
        client = GoogleCalendarClient(
            'stale', refresh_token='refresh', client_id='id', client_secret='secret',
            on_token_refresh=refreshed.append
        )

        assert client.list_calendars() == []
        assert refreshed == ['fresh']
        assert responses.calls[2].request.headers['Authorization'] == 'Bearer fresh'

    @responses.activate
    def test_expired_token_without_refresh_token(self):
        responses.add(responses.GET, f"{CALENDAR_API}/users/me/calendarList", status=401)

        client = GoogleCalendarClient('stale')

        with pytest.raises(AuthorizationError) as exc_info:
            client.list_calendars()
        assert str(exc_info.value) == RECONNECT_MESSAGE

    @responses.activate
    def test_rejected_refresh(self):
        responses.add(responses.GET, f"{CALENDAR_API}/users/me/calendarList", status=401)
        responses.add(responses.POST, TOKEN_URL, status=400, json={'error': 'invalid_grant'})

        client = GoogleCalendarClient(
            'stale', refresh_token='revoked', client_id='id', client_secret='secret'
        )

        with pytest.raises(AuthorizationError):
            client.list_calendars()

    @responses.activate
    def test_fetch_all_tasks(self):
        responses.add(responses.GET, f"{TASKS_API}/users/@me/lists", json={
            'items': [{'id': 'list1', 'title': 'School'}]
        })
        responses.add(responses.GET, f"{TASKS_API}/lists/list1/tasks", json={
            'items': [{'id': 't1', 'title': 'Read chapter 3'}]
        })

        client = GoogleCalendarClient('token')
        tasks = client.fetch_all_tasks()

        assert tasks == [{'id': 't1', 'title': 'Read chapter 3', 'taskListName': 'School'}]
