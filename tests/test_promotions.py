"""Unit tests for post promotions."""
from datetime import datetime, timedelta, timezone

import pytest

from processor.models import Profile, Promotion
from services.promotions import (
    PromotionError, PromotionService, is_live, promotion_priority, rank_feed,
    target_impressions,
)
from storage.social_store import PostStore, ProfileStore, PromotionStore

NOW = datetime(2024, 12, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def stores(storage_session):
    posts = PostStore(storage_session)
    promotions = PromotionStore(storage_session)
    profiles = ProfileStore(storage_session)
    profiles.put(Profile(user_id='pro', display_name='Pro', account_type='professional_creator'))
    profiles.put(Profile(user_id='casual', display_name='Casual'))
    posts.put({'post_id': 'post-1', 'user_id': 'pro', 'created_at': '2024-11-30T00:00:00Z'})
    posts.put({'post_id': 'post-2', 'user_id': 'casual', 'created_at': '2024-11-30T00:00:00Z'})
    return posts, promotions, profiles


@pytest.fixture
def service(stores):
    return PromotionService(*stores)


def test_formulas():
    assert target_impressions(50, 10) == 10000
    assert promotion_priority(50, 10) == 22
    assert promotion_priority(125, 0) == 13
    assert promotion_priority(1000, 90) == 100


def test_create_pending_promotion(service, stores):
    promotion = service.create_promotion('pro', 'post-1', 50, 10, now=NOW)

    stored = stores[1].get('post-1')
    assert stored.promotion_id == promotion.promotion_id
    assert stored.status == 'pending'
    assert stored.target_impressions == 10000
    assert stored.priority_score is None
    assert stores[0].get('post-1').get('is_promoted') is None


def test_skip_payment_activates(service, stores):
    promotion = service.create_promotion(
        'pro', 'post-1', 50, 10, skip_payment=True,
        promotion_config={'audience': 'campus'}, now=NOW
    )

    assert promotion.priority_score == 22
    stored = stores[1].get('post-1')
    assert stored.status == 'active'
    assert stored.payment_status == 'completed'
    assert stored.starts_at == '2024-12-01T12:00:00Z'
    assert stored.ends_at == '2024-12-11T12:00:00Z'
    assert stored.promotion_config == {'audience': 'campus'}
    post = stores[0].get('post-1')
    assert post['is_promoted'] is True
    assert post['promotion_priority'] == 22


@pytest.mark.parametrize('user_id,post_id,budget,days,message', [
    ('pro', None, 50, 10, 'Missing required fields'),
    ('pro', 'post-1', 4, 10, 'Budget must be between $5 and $1000'),
    ('pro', 'post-1', 1001, 10, 'Budget must be between $5 and $1000'),
    ('pro', 'missing', 50, 10, 'Post not found'),
    ('pro', 'post-2', 50, 10, 'You can only promote your own posts'),
    ('casual', 'post-2', 50, 10, 'Professional account required to promote posts'),
])
def test_validation(service, user_id, post_id, budget, days, message):
    with pytest.raises(PromotionError, match=message.replace('$', r'\$')):
        service.create_promotion(user_id, post_id, budget, days, now=NOW)


def test_post_can_only_be_promoted_once(service):
    service.create_promotion('pro', 'post-1', 50, 10, now=NOW)

    with pytest.raises(PromotionError, match='already promoted'):
        service.create_promotion('pro', 'post-1', 80, 5, now=NOW)


def test_pause_and_resume(service, stores):
    service.create_promotion('pro', 'post-1', 50, 10, skip_payment=True, now=NOW)

    service.pause('post-1')
    assert stores[1].get('post-1').status == 'paused'

    service.resume('post-1')
    assert stores[1].get('post-1').status == 'active'


def make_promotion(post_id, priority, starts_at, ends_at, status='active'):
    return Promotion(
        post_id=post_id, promotion_id=f"promo-{post_id}", user_id='pro',
        budget=50, duration_days=10, target_impressions=10000, status=status,
        priority_score=priority, starts_at=starts_at, ends_at=ends_at,
    )


def test_is_live_window():
    promotion = make_promotion('p', 10, '2024-12-01T00:00:00Z', '2024-12-02T00:00:00Z')

    assert is_live(promotion, NOW)
    assert not is_live(promotion, NOW + timedelta(days=1))
    promotion.status = 'paused'
    assert not is_live(promotion, NOW)


def test_rank_feed():
    posts = [
        {'post_id': 'old', 'created_at': '2024-11-01T00:00:00Z'},
        {'post_id': 'new', 'created_at': '2024-11-30T00:00:00Z'},
        {'post_id': 'promo-low', 'created_at': '2024-11-15T00:00:00Z'},
        {'post_id': 'promo-high', 'created_at': '2024-10-01T00:00:00Z'},
        {'post_id': 'expired', 'created_at': '2024-11-20T00:00:00Z'},
    ]
    promotions = [
        make_promotion('promo-low', 20, '2024-11-30T00:00:00Z', '2024-12-05T00:00:00Z'),
        make_promotion('promo-high', 80, '2024-11-30T00:00:00Z', '2024-12-05T00:00:00Z'),
        make_promotion('expired', 99, '2024-11-01T00:00:00Z', '2024-11-10T00:00:00Z'),
    ]

    ordered = [post['post_id'] for post in rank_feed(posts, promotions, NOW)]

    assert ordered == ['promo-high', 'promo-low', 'new', 'expired', 'old']
