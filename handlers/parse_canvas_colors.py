"""Lambda handler resolving and storing Canvas course colours."""
import logging
from typing import Any, Dict

from feeds.canvas_colors import CanvasColorScraper
from feeds.feed_client import FeedClient, FeedFetchError
from handlers.common import (
    RequestError, error_response, is_preflight, json_response, parse_body,
    preflight_response, setup_logging,
)
from handlers.config import Settings
from storage.session import StorageSession
from storage.social_store import CourseColorStore

logger = logging.getLogger(__name__)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    {icsUrl, userId} -> {courseColors}.

    Args:
        event: API Gateway proxy event
        context: Lambda context object

    Returns:
        Response dict with the colour per course code
    """
    if is_preflight(event):
        return preflight_response()

    settings = Settings.from_env()
    setup_logging(settings.log_level)

    try:
        body = parse_body(event)
        ics_url = body.get('icsUrl')
        user_id = body.get('userId')
        if not ics_url or not user_id:
            raise RequestError('Missing icsUrl or userId')

        logger.info("Processing Canvas ICS URL for course colors")
        feed_client = FeedClient(timeout=settings.timeout_seconds)
        try:
            scraper = CanvasColorScraper(feed_client, timeout=settings.timeout_seconds)
            course_colors = scraper.fetch_course_colors(ics_url)
        finally:
            feed_client.close()

        with StorageSession(settings.table_names) as session:
            CourseColorStore(session).upsert_colors(user_id, course_colors)

        return json_response(200, {
            'success': True,
            'courseColors': course_colors,
            'message': f"Updated colors for {len(course_colors)} courses",
        })

    except RequestError as e:
        return error_response(e.status_code, str(e))
    except (ValueError, FeedFetchError) as e:
        logger.error(f"Error processing Canvas colors: {e}")
        return error_response(500, 'Failed to process Canvas colors', details=str(e))
    except Exception as e:
        logger.error(f"Error processing Canvas colors: {e}", exc_info=True)
        return error_response(500, 'Failed to process Canvas colors', details=str(e))
