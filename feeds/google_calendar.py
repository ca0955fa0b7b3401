"""Google Calendar and Google Tasks API client."""
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional
from urllib.parse import quote

import requests

from processor.models import CalendarEvent
from processor.timezones import parse_iso

logger = logging.getLogger(__name__)

CALENDAR_API = 'https://www.googleapis.com/calendar/v3'
TASKS_API = 'https://tasks.googleapis.com/tasks/v1'
TOKEN_URL = 'https://oauth2.googleapis.com/token'

RECONNECT_MESSAGE = (
    'Google authorization expired. Please reconnect your Google account.'
)


class AuthorizationError(Exception):
    """Missing or expired Google credentials that cannot be refreshed."""


class GoogleAPIError(Exception):
    """Non-auth failure talking to a Google API."""


class GoogleCalendarClient:
    """Read-only client for the Calendar and Tasks APIs."""

    MAX_PAGES = 50
    EVENTS_PAGE_SIZE = 2500
    MONTHS_BACK = 24
    MONTHS_FORWARD = 36

    def __init__(self, access_token: Optional[str],
                 refresh_token: Optional[str] = None,
                 client_id: Optional[str] = None,
                 client_secret: Optional[str] = None,
                 timeout: int = 30,
                 on_token_refresh: Optional[Callable[[str], None]] = None):
        """
        Initialize the client.

        Args:
            access_token: OAuth access token (may be stale)
            refresh_token: Stored refresh token used when the access token is rejected
            client_id: OAuth client id for refresh
            client_secret: OAuth client secret for refresh
            timeout: HTTP request timeout in seconds
            on_token_refresh: Called with the new access token after a refresh
        """
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self.on_token_refresh = on_token_refresh
        self.session = requests.Session()

    def list_calendars(self) -> List[dict]:
        data = self._request(f"{CALENDAR_API}/users/me/calendarList")
        return data.get('items', [])

    def list_events(self, calendar_id: str, time_min: datetime,
                    time_max: datetime) -> List[dict]:
        """
        Page through the events of one calendar.

        Args:
            calendar_id: Google calendar id
            time_min: Lower bound of the window
            time_max: Upper bound of the window

        Returns:
            Raw event resources

        Raises:
            GoogleAPIError: If a page fails or the page limit is reached
        """
        url = f"{CALENDAR_API}/calendars/{quote(calendar_id, safe='')}/events"
        params = {
            'maxResults': str(self.EVENTS_PAGE_SIZE),
            'singleEvents': 'true',
            'orderBy': 'startTime',
            'timeMin': time_min.isoformat(),
            'timeMax': time_max.isoformat(),
            'showDeleted': 'false',
            'showHiddenInvitations': 'false',
        }
        return self._paginate(url, params, label=f"calendar {calendar_id}")

    def fetch_all_events(self, now: Optional[datetime] = None) -> List[dict]:
        """
        Fetch events from every readable, visible calendar.

        Each raw event is annotated with calendarName, calendarId and
        calendarColor.
        """
        now = now or datetime.now(timezone.utc)
        time_min = now - timedelta(days=30 * self.MONTHS_BACK)
        time_max = now + timedelta(days=30 * self.MONTHS_FORWARD)

        events = []
        for calendar in self.list_calendars():
            access_role = calendar.get('accessRole')
            if (not access_role or access_role == 'freeBusyReader'
                    or calendar.get('hidden') is True
                    or calendar.get('selected') is False):
                logger.info(
                    f"Skipping calendar: {calendar.get('summary')} "
                    f"({access_role or 'no access'})"
                )
                continue

            calendar_events = self.list_events(calendar['id'], time_min, time_max)
            for event in calendar_events:
                event['calendarName'] = calendar.get('summary')
                event['calendarId'] = calendar['id']
                event['calendarColor'] = (
                    calendar.get('backgroundColor') or calendar.get('colorId')
                )
            logger.info(
                f"Fetched {len(calendar_events)} events from {calendar.get('summary')}"
            )
            events.extend(calendar_events)

        logger.info(f"Fetched {len(events)} events from all calendars")
        return events

    def list_task_lists(self) -> List[dict]:
        data = self._request(f"{TASKS_API}/users/@me/lists")
        return data.get('items', [])

    def list_tasks(self, tasklist_id: str) -> List[dict]:
        url = f"{TASKS_API}/lists/{quote(tasklist_id, safe='')}/tasks"
        params = {'maxResults': '100', 'showCompleted': 'true', 'showHidden': 'false'}
        return self._paginate(url, params, label=f"task list {tasklist_id}")

    def fetch_all_tasks(self) -> List[dict]:
        tasks = []
        for tasklist in self.list_task_lists():
            list_tasks = self.list_tasks(tasklist['id'])
            for task in list_tasks:
                task['taskListName'] = tasklist.get('title')
            tasks.extend(list_tasks)
        logger.info(f"Fetched {len(tasks)} tasks from all task lists")
        return tasks

    def refresh_access_token(self) -> str:
        """
        Exchange the stored refresh token for a new access token.

        Raises:
            AuthorizationError: If no refresh is possible or Google rejects it
        """
        if not (self.refresh_token and self.client_id and self.client_secret):
            raise AuthorizationError(RECONNECT_MESSAGE)

        logger.info("Refreshing Google access token")
        response = self.session.post(
            TOKEN_URL,
            data={
                'client_id': self.client_id,
                'client_secret': self.client_secret,
                'refresh_token': self.refresh_token,
                'grant_type': 'refresh_token',
            },
            timeout=self.timeout
        )
        if not response.ok:
            logger.error(f"Token refresh failed: HTTP {response.status_code}")
            raise AuthorizationError(RECONNECT_MESSAGE)

        self.access_token = response.json()['access_token']
        if self.on_token_refresh:
            self.on_token_refresh(self.access_token)
        return self.access_token

    def close(self) -> None:
        self.session.close()

    def _paginate(self, url: str, params: Dict[str, str], label: str) -> List[dict]:
        items: List[dict] = []
        page_token = None
        page_count = 0

        while True:
            page_count += 1
            page_params = dict(params)
            if page_token:
                page_params['pageToken'] = page_token
            try:
                data = self._request(url, params=page_params)
            except GoogleAPIError as e:
                logger.error(f"Failed to fetch page {page_count} of {label}: {e}")
                raise GoogleAPIError(f"Incomplete fetch of {label}: {e}") from e

            items.extend(data.get('items', []))
            page_token = data.get('nextPageToken')
            if not page_token:
                break
            if page_count >= self.MAX_PAGES:
                logger.error(f"{label} has more than {self.MAX_PAGES} pages")
                raise GoogleAPIError(f"Incomplete fetch of {label}: page limit reached")

        return items

    def _request(self, url: str, params: Optional[Dict[str, str]] = None,
                 retry_auth: bool = True) -> dict:
        if not self.access_token:
            self.refresh_access_token()

        response = self.session.get(
            url,
            params=params,
            headers={'Authorization': f"Bearer {self.access_token}"},
            timeout=self.timeout
        )
        if response.status_code == 401:
            if not retry_auth:
                raise AuthorizationError(RECONNECT_MESSAGE)
            self.refresh_access_token()
            return self._request(url, params=params, retry_auth=False)
        if not response.ok:
            raise GoogleAPIError(f"HTTP {response.status_code} for {url}")
        return response.json()


def _all_day_bounds(start_date: str, end_date: Optional[str]):
    start = datetime.combine(date.fromisoformat(start_date),
                             datetime.min.time(), tzinfo=timezone.utc)
    # Google all-day end dates are exclusive
    last_day = date.fromisoformat(start_date)
    if end_date:
        last_day = max(last_day, date.fromisoformat(end_date) - timedelta(days=1))
    end = datetime(last_day.year, last_day.month, last_day.day, 23, 59, 59,
                   tzinfo=timezone.utc)
    return start, end


def to_calendar_event(raw: dict) -> Optional[CalendarEvent]:
    """
    Convert a Google Calendar event resource to a CalendarEvent.

    Args:
        raw: Event resource, optionally annotated by fetch_all_events

    Returns:
        CalendarEvent, or None for cancelled events and events without times
    """
    start_info = raw.get('start') or {}
    end_info = raw.get('end') or {}
    if raw.get('status') == 'cancelled' or not (
            start_info.get('dateTime') or start_info.get('date')):
        logger.info(
            f"Skipping event: {raw.get('summary') or 'No title'} - "
            f"{raw.get('status') or 'no time info'}"
        )
        return None

    if start_info.get('date'):
        start, end = _all_day_bounds(start_info['date'], end_info.get('date'))
        is_all_day = True
    else:
        start = parse_iso(start_info['dateTime'])
        end = (parse_iso(end_info['dateTime']) if end_info.get('dateTime')
               else start + timedelta(hours=1))
        is_all_day = False

    details = [
        raw.get('description') or '',
        f"Calendar: {raw['calendarName']}" if raw.get('calendarName') else '',
        f"Location: {raw['location']}" if raw.get('location') else '',
        f"{len(raw['attendees'])} attendees" if raw.get('attendees') else '',
        f"View in Google Calendar: {raw['htmlLink']}" if raw.get('htmlLink') else '',
    ]

    return CalendarEvent(
        title=raw.get('summary') or 'Untitled Event',
        description='\n\n'.join(part for part in details if part) or None,
        start_time=start,
        end_time=end,
        location=raw.get('location'),
        event_type='event',
        source_provider='google',
        source_event_id=raw['id'],
        is_all_day=is_all_day,
    )
