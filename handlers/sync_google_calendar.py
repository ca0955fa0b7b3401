"""Lambda handler importing Google Calendar events and Google Tasks."""
import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from feeds.google_calendar import (
    AuthorizationError, GoogleAPIError, GoogleCalendarClient, to_calendar_event,
)
from handlers.common import (
    RequestError, error_response, is_preflight, json_response, parse_body,
    preflight_response, require_user_id, setup_logging,
)
from handlers.config import Settings
from processor.models import CalendarEvent
from services.calendar_sync import CalendarSyncService
from services.tasks import sync_google_tasks
from storage.connection_store import ConnectionStore
from storage.event_store import EventStore
from storage.session import StorageSession
from storage.task_store import TaskStore

logger = logging.getLogger(__name__)


def convert_events(raw_events: List[dict]) -> Tuple[List[CalendarEvent], int]:
    """Convert raw Google events, counting the ones that could not be read."""
    events = []
    errors = 0
    for raw in raw_events:
        try:
            event = to_calendar_event(raw)
        except (KeyError, ValueError) as e:
            logger.error(f"Error converting Google event {raw.get('id')}: {e}")
            errors += 1
            continue
        if event is not None:
            events.append(event)
    return events, errors


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    {connectionId, accessToken?} -> synced event and task counts.

    Args:
        event: API Gateway proxy event carrying authorizer claims
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
        user_id = require_user_id(event)
        body = parse_body(event)
        connection_id = body.get('connectionId')
        if not connection_id:
            raise RequestError('Missing connectionId parameter')

        with StorageSession(settings.table_names) as session:
            connection_store = ConnectionStore(session)
            connection = connection_store.get(connection_id, provider='google')
            if connection is None or connection.user_id != user_id:
                raise RequestError('Calendar connection not found', status_code=404)

            logger.info(f"Starting Google Calendar sync for connection: {connection_id}")

            def persist_token(access_token: str) -> None:
                connection_store.update_sync_settings(connection_id, access_token=access_token)

            client = GoogleCalendarClient(
                access_token=body.get('accessToken') or connection.sync_settings.get('access_token'),
                refresh_token=connection.sync_settings.get('refresh_token'),
                client_id=settings.google_client_id,
                client_secret=settings.google_client_secret,
                timeout=settings.timeout_seconds,
                on_token_refresh=persist_token,
            )
            try:
                now = datetime.now(timezone.utc)
                raw_events = client.fetch_all_events(now)
                raw_tasks = client.fetch_all_tasks()
            finally:
                client.close()

            events, conversion_errors = convert_events(raw_events)
            sync_service = CalendarSyncService(
                EventStore(session), connection_store, atomic=settings.sync_atomic
            )
            result = sync_service.reconcile(user_id, 'google', events)
            synced_tasks, task_errors = sync_google_tasks(
                TaskStore(session), user_id, raw_tasks, now
            )
            connection_store.mark_synced(connection_id, now)

        synced_events = result.added + result.updated
        errors = conversion_errors + result.error_count + task_errors
        logger.info(
            "Google Calendar sync completed",
            extra={
                'duration_seconds': round(time.time() - start_time, 2),
                'synced_events': synced_events,
                'deleted_events': result.deleted,
                'synced_tasks': synced_tasks,
                'errors': errors,
            }
        )
        return json_response(200, {
            'success': True,
            'syncedEvents': synced_events,
            'syncedTasks': synced_tasks,
            'errors': errors,
            'totalEvents': len(events),
            'totalTasks': len(raw_tasks),
        })

    except RequestError as e:
        return error_response(e.status_code, str(e))
    except AuthorizationError as e:
        logger.warning(f"Google authorization failed: {e}")
        return error_response(401, str(e))
    except GoogleAPIError as e:
        # Nothing has been written yet; stored events stay as they were
        logger.error(f"Google fetch failed: {e}")
        return error_response(502, f"Failed to fetch Google data: {e}")
    except Exception as e:
        logger.error(
            f"Google Calendar sync failed: {e}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return error_response(500, 'Internal server error', details=str(e))
