"""Lambda handler creating a promotion for one of the caller's posts."""
import logging
from typing import Any, Dict

from handlers.common import (
    RequestError, error_response, is_preflight, json_response, parse_body,
    preflight_response, require_user_id, setup_logging,
)
from handlers.config import Settings
from services.promotions import PromotionError, PromotionService
from storage.session import StorageSession
from storage.social_store import PostStore, ProfileStore, PromotionStore

logger = logging.getLogger(__name__)


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    if is_preflight(event):
        return preflight_response()

    settings = Settings.from_env()
    setup_logging(settings.log_level)

    try:
        user_id = require_user_id(event)
        body = parse_body(event)
        try:
            budget = float(body.get('budget') or 0)
            duration_days = int(body.get('durationDays') or 0)
        except (TypeError, ValueError):
            raise RequestError('Budget and durationDays must be numbers')

        with StorageSession(settings.table_names) as session:
            service = PromotionService(
                PostStore(session), PromotionStore(session), ProfileStore(session)
            )
            promotion = service.create_promotion(
                user_id,
                body.get('postId'),
                budget,
                duration_days,
                skip_payment=bool(body.get('skipPayment')),
                promotion_config=body.get('promotionConfig'),
            )

        response = {
            'success': True,
            'promotionId': promotion.promotion_id,
        }
        if promotion.status == 'active':
            response['message'] = 'Promotion activated'
            response['priorityScore'] = promotion.priority_score
        else:
            response['message'] = 'Promotion created, awaiting payment'
        return json_response(200, response)

    except (RequestError, PromotionError) as e:
        status_code = getattr(e, 'status_code', 400)
        logger.info(f"Promotion request rejected: {e}")
        return error_response(status_code, str(e))
    except Exception as e:
        logger.error(f"Error creating promotion: {e}", exc_info=True)
        return error_response(500, 'Internal server error', details=str(e))
