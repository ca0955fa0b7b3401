"""Scheduled Lambda handler syncing every active Canvas connection."""
import logging
import time
from typing import Any, Dict

from feeds.feed_client import FeedClient
from handlers.common import error_response, json_response, setup_logging
from handlers.config import Settings
from services.calendar_sync import CalendarSyncService
from storage.connection_store import ConnectionStore
from storage.event_store import EventStore
from storage.session import StorageSession


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Sync all active Canvas connections.

    Args:
        event: EventBridge schedule payload (ignored)
        context: Lambda context object

    Returns:
        Response dict with statusCode and per-connection results
    """
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    logger.info(
        "Starting automatic Canvas sync",
        extra={'timeout_seconds': settings.timeout_seconds, 'atomic': settings.sync_atomic}
    )

    try:
        with StorageSession(settings.table_names) as session:
            connection_store = ConnectionStore(session)

            try:
                connections = connection_store.list_active('canvas')
            except Exception as e:
                logger.error(
                    f"Failed to fetch calendar connections: {e}",
                    extra={'error_type': type(e).__name__},
                    exc_info=True
                )
                return error_response(500, 'Failed to fetch calendar connections')

            if not connections:
                logger.info("No active Canvas connections found")
                return json_response(200, {
                    'success': True,
                    'message': 'No active Canvas connections to sync',
                    'connections_processed': 0,
                    'successful_syncs': 0,
                    'total_events_processed': 0,
                    'results': [],
                })

            logger.info(f"Found {len(connections)} active Canvas connections to sync")
            feed_client = FeedClient(timeout=settings.timeout_seconds)
            sync_service = CalendarSyncService(
                EventStore(session), connection_store, feed_client,
                atomic=settings.sync_atomic
            )
            results = []
            try:
                for connection in connections:
                    try:
                        outcome = sync_service.sync_connection(connection)
                        results.append(outcome.to_dict())
                    except Exception as e:
                        # One broken connection must not stop the rest
                        logger.error(
                            f"Error syncing connection {connection.connection_id}: {e}",
                            exc_info=True
                        )
                        results.append({
                            'connection_id': connection.connection_id,
                            'user_id': connection.user_id,
                            'success': False,
                            'reason': str(e),
                        })
            finally:
                feed_client.close()

        success_count = sum(1 for result in results if result['success'])
        total_events = sum(result.get('events_processed', 0) for result in results)
        duration = time.time() - start_time

        logger.info(
            "Canvas sync completed",
            extra={
                'duration_seconds': round(duration, 2),
                'connections_processed': len(connections),
                'successful_syncs': success_count,
                'total_events_processed': total_events,
            }
        )

        return json_response(200, {
            'success': True,
            'message': f"Synced {success_count}/{len(connections)} connections",
            'connections_processed': len(connections),
            'successful_syncs': success_count,
            'total_events_processed': total_events,
            'results': results,
            'duration_seconds': round(duration, 2),
        })

    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Canvas sync failed: {e}",
            extra={'duration_seconds': round(duration, 2), 'error_type': type(e).__name__},
            exc_info=True
        )
        return error_response(500, 'Internal server error', details=str(e))
