"""Line scanner for iCalendar (RFC 5545) feeds."""
import hashlib
import logging
import re
from datetime import datetime, time, timedelta, timezone
from typing import Dict, List, Optional, Tuple

from processor.models import CalendarEvent

logger = logging.getLogger(__name__)

# Canvas feeds only ever carry these zones; DST is not applied.
TIMEZONE_OFFSETS = {
    'America/New_York': timedelta(hours=-5),
    'America/Chicago': timedelta(hours=-6),
    'America/Denver': timedelta(hours=-7),
    'America/Los_Angeles': timedelta(hours=-8),
    'America/Phoenix': timedelta(hours=-7),
    'US/Eastern': timedelta(hours=-5),
    'US/Central': timedelta(hours=-6),
    'US/Mountain': timedelta(hours=-7),
    'US/Pacific': timedelta(hours=-8),
}

DEFAULT_EVENT_TYPES = {
    'canvas': 'assignment',
}

_DATE_TIME_RE = re.compile(
    r'^(\d{4})(\d{2})(\d{2})T(\d{2})?(\d{2})?(\d{2})?(Z)?$'
)
_DATE_ONLY_RE = re.compile(r'^(\d{4})(\d{2})(\d{2})$')
_ESCAPE_RE = re.compile(r'\\([nN,;\\])')


def unfold_lines(ics_content: str) -> List[str]:
    """
    Split ICS text into logical lines, joining folded continuations.

    A physical line that starts with a space or tab continues the previous
    logical line; the single leading whitespace character is dropped.
    """
    lines: List[str] = []
    for raw_line in re.split(r'\r?\n', ics_content):
        raw_line = raw_line.rstrip('\r')
        if raw_line[:1] in (' ', '\t') and lines:
            lines[-1] += raw_line[1:]
        else:
            lines.append(raw_line)
    return lines


def split_property(line: str) -> Tuple[str, Dict[str, str], str]:
    """
    Split a content line into name, parameters and value.

    Args:
        line: Unfolded content line (e.g., "DTSTART;TZID=US/Eastern:20241201T090000")

    Returns:
        Tuple of (upper-cased name, parameter dict, raw value)
    """
    head, _, value = line.partition(':')
    parts = head.split(';')
    name = parts[0].strip().upper()
    params = {}
    for part in parts[1:]:
        key, _, param_value = part.partition('=')
        params[key.strip().upper()] = param_value.strip().strip('"')
    return name, params, value


def unescape_text(value: str) -> str:
    def replace(match):
        char = match.group(1)
        return '\n' if char in 'nN' else char
    return _ESCAPE_RE.sub(replace, value)


def is_date_only(value: str, params: Optional[Dict[str, str]] = None) -> bool:
    if params and params.get('VALUE', '').upper() == 'DATE':
        return True
    return bool(_DATE_ONLY_RE.match(value.strip()))


def parse_ics_date(value: str, tzid: Optional[str] = None) -> datetime:
    """
    Parse an ICS date or date-time value into an aware UTC datetime.

    Date-only values resolve to 23:59:59 UTC on that date. Date-time values
    ending in "Z" are UTC; otherwise the TZID offset table is consulted and
    unknown or missing zones are read as UTC. Missing time fields default to
    the end of the day.

    Args:
        value: Raw property value (e.g., "20241201T140000Z" or "20241201")
        tzid: Optional TZID parameter of the property

    Returns:
        Aware datetime in UTC

    Raises:
        ValueError: If the value cannot be read as a date
    """
    value = value.strip()

    match = _DATE_TIME_RE.match(value)
    if match:
        year, month, day, hour, minute, second, utc_flag = match.groups()
        local = datetime(
            int(year), int(month), int(day),
            int(hour or 23), int(minute or 59), int(second or 59)
        )
        if utc_flag or not tzid:
            return local.replace(tzinfo=timezone.utc)
        offset = TIMEZONE_OFFSETS.get(tzid)
        if offset is None:
            logger.debug(f"Unknown TZID {tzid}, reading {value} as UTC")
            return local.replace(tzinfo=timezone.utc)
        return local.replace(tzinfo=timezone(offset)).astimezone(timezone.utc)

    match = _DATE_ONLY_RE.match(value)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return datetime(year, month, day, 23, 59, 59, tzinfo=timezone.utc)

    # Last resort: ISO 8601 text, as some feeds emit
    parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def end_of_day(now: datetime) -> datetime:
    today = now.astimezone(timezone.utc).date()
    return datetime.combine(today, time(23, 59, 59), tzinfo=timezone.utc)


class ICSParser:
    """Parser turning ICS text into CalendarEvent records."""

    def __init__(self, source_provider: str = 'canvas',
                 event_type: Optional[str] = None):
        """
        Initialize the parser.

        Args:
            source_provider: Provider stamped on every parsed event
            event_type: Event type for parsed events (default depends on provider)
        """
        self.source_provider = source_provider
        self.event_type = event_type or DEFAULT_EVENT_TYPES.get(
            source_provider, 'event'
        )

    def parse(self, ics_content: str,
              now: Optional[datetime] = None) -> List[CalendarEvent]:
        """
        Parse all VEVENT blocks from ICS text.

        Malformed input never raises; missing or unreadable values are
        replaced with defaults and the event is flagged.

        Args:
            ics_content: Raw ICS document
            now: Reference time for fallback dates (default: current UTC time)

        Returns:
            List of CalendarEvent objects in feed order
        """
        now = now or datetime.now(timezone.utc)
        events = []
        current: Optional[dict] = None
        # Components open inside the current VEVENT, e.g. VALARM
        nested = 0

        lines = unfold_lines(ics_content)
        logger.debug(f"Parsing ICS with {len(lines)} logical lines")

        for line in lines:
            upper = line.strip().upper()
            if upper == 'BEGIN:VEVENT':
                current = {}
                nested = 0
            elif upper == 'END:VEVENT':
                if current is not None:
                    event = self._build_event(current, now)
                    if event:
                        events.append(event)
                current = None
            elif current is None:
                continue
            elif upper.startswith('BEGIN:'):
                nested += 1
            elif upper.startswith('END:'):
                nested = max(nested - 1, 0)
            elif nested == 0 and ':' in line:
                self._process_property(line, current, now)

        logger.info(f"Parsed {len(events)} events from ICS")
        return events

    def _process_property(self, line: str, current: dict, now: datetime) -> None:
        name, params, value = split_property(line)

        if name == 'SUMMARY':
            current['title'] = unescape_text(value).strip()
        elif name == 'DESCRIPTION':
            current['description'] = unescape_text(value)
        elif name == 'LOCATION':
            current['location'] = unescape_text(value)
        elif name == 'UID':
            current['uid'] = value.strip()
        elif name == 'CATEGORIES':
            current['categories'] = unescape_text(value)
        elif name in ('DTSTART', 'DTEND', 'DUE'):
            parsed = self._parse_date_property(name, params, value, current, now)
            if name == 'DTSTART':
                current['start'] = parsed
                current['all_day'] = is_date_only(value, params)
            elif name == 'DTEND':
                current['end'] = parsed
            else:
                # Canvas assignments often carry DUE instead of DTSTART
                current.setdefault('start', parsed)
                current['end'] = parsed

    def _parse_date_property(self, name, params, value, current, now) -> datetime:
        try:
            return parse_ics_date(value, params.get('TZID'))
        except ValueError:
            fallback = end_of_day(now)
            logger.warning(
                f"Unparseable {name} value {value!r}, using fallback "
                f"{fallback.isoformat()}"
            )
            current['used_fallback'] = True
            return fallback

    def _build_event(self, current: dict, now: datetime) -> Optional[CalendarEvent]:
        title = current.get('title')
        if not title:
            logger.debug("Dropping VEVENT without SUMMARY")
            return None

        used_fallback = current.get('used_fallback', False)
        start = current.get('start')
        if start is None:
            start = now.astimezone(timezone.utc).replace(microsecond=0)
            used_fallback = True
            logger.warning(f"Event '{title}' has no start date, using now")
        end = current.get('end') or start

        description = current.get('description')
        if not description and current.get('categories'):
            description = f"Course: {current['categories']}"

        source_event_id = current.get('uid') or self.generate_event_id(title, start)

        return CalendarEvent(
            title=title,
            description=description,
            start_time=start,
            end_time=end,
            location=current.get('location'),
            event_type=self.event_type,
            source_provider=self.source_provider,
            source_event_id=source_event_id,
            is_all_day=current.get('all_day', False),
            used_fallback_date=used_fallback,
        )

    def generate_event_id(self, title: str, start: datetime) -> str:
        """
        Generate a stable synthetic UID for an event lacking one.

        Args:
            title: Event title
            start: Event start time

        Returns:
            Identifier of the form "<provider>-<16 hex chars>"
        """
        composite = f"{title}|{start.isoformat()}"
        digest = hashlib.sha256(composite.encode('utf-8')).hexdigest()
        return f"{self.source_provider}-{digest[:16]}"
