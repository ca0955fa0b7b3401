"""Lambda handler syncing a single Canvas connection on demand."""
import logging
import time
from typing import Any, Dict

from feeds.feed_client import FeedClient
from handlers.common import (
    RequestError, error_response, is_preflight, json_response, parse_body,
    preflight_response, setup_logging,
)
from handlers.config import Settings
from processor.models import CalendarConnection
from services.calendar_sync import CalendarSyncService
from storage.connection_store import ConnectionStore
from storage.event_store import EventStore
from storage.session import StorageSession

logger = logging.getLogger(__name__)


def load_feed_connection(store: ConnectionStore, body: Dict[str, Any]) -> CalendarConnection:
    """
    Resolve the Canvas connection named in a request body.

    Raises:
        RequestError: 400 for a missing id or feed URL, 404 for an unknown connection
    """
    connection_id = body.get('connection_id')
    if not connection_id:
        raise RequestError('Missing connection_id')

    connection = store.get(connection_id, provider='canvas')
    if connection is None:
        logger.error(f"Connection not found: {connection_id}")
        raise RequestError('Calendar connection not found', status_code=404)
    if not connection.feed_url:
        logger.error(f"No feed URL found in connection {connection_id}")
        raise RequestError('No feed URL configured')
    return connection


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Sync one Canvas connection: {connection_id} -> counts.

    Args:
        event: API Gateway proxy event
        context: Lambda context object

    Returns:
        Response dict with statusCode and sync counts
    """
    if is_preflight(event):
        return preflight_response()

    settings = Settings.from_env()
    setup_logging(settings.log_level)
    start_time = time.time()

    try:
        body = parse_body(event)
        with StorageSession(settings.table_names) as session:
            connection_store = ConnectionStore(session)
            connection = load_feed_connection(connection_store, body)
            logger.info(f"Syncing Canvas feed for connection: {connection.connection_id}")

            feed_client = FeedClient(timeout=settings.timeout_seconds)
            sync_service = CalendarSyncService(
                EventStore(session), connection_store, feed_client,
                atomic=settings.sync_atomic
            )
            try:
                outcome = sync_service.sync_connection(connection)
            finally:
                feed_client.close()

        if not outcome.success:
            return error_response(400, f"Failed to fetch Canvas feed: {outcome.reason}")

        result = outcome.result
        logger.info(
            "Canvas feed sync completed",
            extra={
                'duration_seconds': round(time.time() - start_time, 2),
                'events_added': result.added,
                'events_updated': result.updated,
                'events_deleted': result.deleted,
                'errors': result.error_count,
            }
        )
        return json_response(200, {
            'success': True,
            'message': f"Successfully synced {result.processed} events from Canvas",
            'events_processed': outcome.events_processed,
            'new_events': result.added,
            'updated_events': result.updated,
            'deleted_events': result.deleted,
            'errors': result.errors,
        })

    except RequestError as e:
        return error_response(e.status_code, str(e))
    except Exception as e:
        logger.error(
            f"Error in Canvas feed sync: {e}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return error_response(500, 'Internal server error', details=str(e))
