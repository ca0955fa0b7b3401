"""Lambda handler returning raw diagnostics for a Canvas feed."""
import logging
from typing import Any, Dict, List

from feeds.feed_client import FeedClient, FeedFetchError
from feeds.ics_parser import split_property, unescape_text, unfold_lines
from handlers.common import (
    RequestError, error_response, is_preflight, json_response, parse_body,
    preflight_response, setup_logging,
)
from handlers.config import Settings
from handlers.sync_canvas_feed import load_feed_connection
from storage.connection_store import ConnectionStore
from storage.session import StorageSession

logger = logging.getLogger(__name__)

SAMPLE_LENGTH = 2000


def describe_feed(ics_content: str) -> Dict[str, Any]:
    """
    Summarize an ICS document without interpreting dates.

    Args:
        ics_content: Raw ICS text

    Returns:
        Diagnostics dict: sample, length, descriptions and per-event titles
    """
    descriptions: List[str] = []
    assignments: List[Dict[str, Any]] = []
    current = None
    nested = 0

    for line in unfold_lines(ics_content):
        upper = line.strip().upper()
        if upper == 'BEGIN:VEVENT':
            current = {}
            nested = 0
            continue
        if upper == 'END:VEVENT':
            if current is not None and current.get('title'):
                description = current.get('description', 'No description')
                assignments.append({
                    'title': current['title'],
                    'description': description,
                    'descriptionLength': len(current.get('description', '')),
                })
            current = None
            continue
        if current is not None and upper.startswith(('BEGIN:', 'END:')):
            nested = max(nested + (1 if upper.startswith('BEGIN:') else -1), 0)
            continue
        if nested or ':' not in line:
            continue

        name, _, value = split_property(line)
        if name == 'DESCRIPTION':
            descriptions.append(value)
            if current is not None:
                current['description'] = unescape_text(value).strip()
        elif name == 'SUMMARY' and current is not None:
            current['title'] = unescape_text(value).strip()

    return {
        'raw_content_sample': ics_content[:SAMPLE_LENGTH],
        'content_length': len(ics_content),
        'description_count': len(descriptions),
        'descriptions': descriptions,
        'assignments': assignments,
        'debug_info': {
            'contains_vevent': 'VEVENT' in ics_content,
            'contains_description': 'DESCRIPTION' in ics_content,
            'first_assignment_sample': assignments[0] if assignments else None,
        },
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    if is_preflight(event):
        return preflight_response()

    settings = Settings.from_env()
    setup_logging(settings.log_level)

    try:
        body = parse_body(event)
        with StorageSession(settings.table_names) as session:
            connection = load_feed_connection(ConnectionStore(session), body)

        logger.info(f"Debugging Canvas feed for connection: {connection.connection_id}")
        feed_client = FeedClient(timeout=settings.timeout_seconds, max_retries=1)
        try:
            ics_content = feed_client.fetch_text(connection.feed_url)
        except FeedFetchError as e:
            return error_response(400, f"Failed to fetch Canvas feed: {e.reason}")
        finally:
            feed_client.close()

        diagnostics = describe_feed(ics_content)
        logger.info(
            f"Parsed {len(diagnostics['assignments'])} assignments, "
            f"{diagnostics['description_count']} descriptions"
        )
        return json_response(200, {'success': True, **diagnostics})

    except RequestError as e:
        return error_response(e.status_code, str(e))
    except Exception as e:
        logger.error(f"Error in debug Canvas feed: {e}", exc_info=True)
        return error_response(500, 'Internal server error', details=str(e))
