"""Post promotion creation, lifecycle and feed ranking."""
import logging
import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from processor.models import Promotion
from processor.timezones import parse_iso, to_utc_iso
from storage.social_store import PostStore, ProfileStore, PromotionStore

logger = logging.getLogger(__name__)

MIN_BUDGET = 5
MAX_BUDGET = 1000


class PromotionError(Exception):
    """Promotion request rejected; the message is shown to the user."""


def target_impressions(budget: float, duration_days: int) -> int:
    return math.floor(budget * 100 * (1 + duration_days / 10))


def promotion_priority(budget: float, duration_days: int) -> int:
    """
    Priority of an activated promotion, 0-100.

    Budget and duration each contribute up to 50 points, saturating at
    $500 and 30 days.
    """
    budget_score = min(budget / 500 * 50, 50)
    duration_score = min(duration_days / 30 * 50, 50)
    # Half-up rounding; round() would send 12.5 to 12
    return math.floor(budget_score + duration_score + 0.5)


class PromotionService:
    """Creates and manages promoted posts."""

    def __init__(self, posts: PostStore, promotions: PromotionStore,
                 profiles: ProfileStore):
        self.posts = posts
        self.promotions = promotions
        self.profiles = profiles

    def create_promotion(self, user_id: str, post_id: str, budget: float,
                         duration_days: int, skip_payment: bool = False,
                         promotion_config: Optional[dict] = None,
                         now: Optional[datetime] = None) -> Promotion:
        """
        Create a promotion for one of the caller's posts.

        Args:
            user_id: Caller
            post_id: Post to promote
            budget: Budget in dollars (5-1000)
            duration_days: Length of the promotion window
            skip_payment: Activate immediately without payment
            promotion_config: Free-form targeting options
            now: Reference time (default: current UTC time)

        Returns:
            The stored Promotion

        Raises:
            PromotionError: On any validation failure
        """
        if not post_id or not budget or not duration_days:
            raise PromotionError('Missing required fields')
        if budget < MIN_BUDGET or budget > MAX_BUDGET:
            raise PromotionError(f"Budget must be between ${MIN_BUDGET} and ${MAX_BUDGET}")

        post = self.posts.get(post_id)
        if post is None:
            raise PromotionError('Post not found')
        if post.get('user_id') != user_id:
            raise PromotionError('You can only promote your own posts')
        if self.promotions.get(post_id) is not None:
            raise PromotionError('This post is already promoted')

        profile = self.profiles.get(user_id)
        if profile is None or not (profile.account_type or '').startswith('professional_'):
            raise PromotionError('Professional account required to promote posts')

        now = now or datetime.now(timezone.utc)
        promotion = Promotion(
            post_id=post_id,
            promotion_id=str(uuid.uuid4()),
            user_id=user_id,
            budget=budget,
            duration_days=int(duration_days),
            target_impressions=target_impressions(budget, duration_days),
            promotion_config=promotion_config or {},
            created_at=to_utc_iso(now),
        )
        if not self.promotions.create(promotion):
            raise PromotionError('This post is already promoted')
        logger.info(f"Promotion created: {promotion.promotion_id} for post {post_id}")

        if skip_payment:
            self.activate(promotion, now)
        return promotion

    def activate(self, promotion: Promotion, now: Optional[datetime] = None) -> Promotion:
        now = now or datetime.now(timezone.utc)
        promotion.priority_score = promotion_priority(
            promotion.budget, promotion.duration_days
        )
        promotion.status = 'active'
        promotion.payment_status = 'completed'
        promotion.moderation_status = 'approved'
        promotion.starts_at = to_utc_iso(now)
        promotion.ends_at = to_utc_iso(now + timedelta(days=promotion.duration_days))

        self.promotions.update(
            promotion.post_id,
            status=promotion.status,
            payment_status=promotion.payment_status,
            moderation_status=promotion.moderation_status,
            priority_score=promotion.priority_score,
            starts_at=promotion.starts_at,
            ends_at=promotion.ends_at,
        )
        self.posts.mark_promoted(promotion.post_id, promotion.priority_score)
        logger.info(
            f"Promotion {promotion.promotion_id} activated with priority "
            f"{promotion.priority_score}"
        )
        return promotion

    def pause(self, post_id: str) -> None:
        self.promotions.update(post_id, status='paused')

    def resume(self, post_id: str) -> None:
        self.promotions.update(post_id, status='active')


def is_live(promotion: Promotion, now: datetime) -> bool:
    """Active promotion whose window contains now."""
    if promotion.status != 'active' or not promotion.starts_at or not promotion.ends_at:
        return False
    return parse_iso(promotion.starts_at) <= now < parse_iso(promotion.ends_at)


def rank_feed(posts: List[dict], promotions: List[Promotion],
              now: Optional[datetime] = None) -> List[dict]:
    """
    Order feed posts with live promotions first.

    Promoted posts are ordered by promotion priority, everything else
    (including promotions outside their window) by recency.

    Args:
        posts: Post rows with post_id and created_at
        promotions: Promotions for any of those posts
        now: Reference time (default: current UTC time)

    Returns:
        Posts in display order
    """
    now = now or datetime.now(timezone.utc)
    live: Dict[str, int] = {
        promotion.post_id: promotion.priority_score or 0
        for promotion in promotions if is_live(promotion, now)
    }

    by_recency = sorted(posts, key=lambda post: post.get('created_at') or '', reverse=True)
    promoted = sorted(
        (post for post in by_recency if post['post_id'] in live),
        key=lambda post: live[post['post_id']],
        reverse=True
    )
    organic = [post for post in by_recency if post['post_id'] not in live]
    return promoted + organic
