"""DynamoDB stores for profiles, posts, promotions and course colours."""
import logging
from typing import Dict, List, Optional

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from processor.models import Profile, Promotion, UserInterests
from storage.session import StorageSession, from_dynamo, to_dynamo

logger = logging.getLogger(__name__)


def _scan_all(table, **kwargs) -> List[dict]:
    response = table.scan(**kwargs)
    items = response.get('Items', [])
    while 'LastEvaluatedKey' in response:
        response = table.scan(ExclusiveStartKey=response['LastEvaluatedKey'], **kwargs)
        items.extend(response.get('Items', []))
    return items


class ProfileStore:
    """Profiles table keyed by user_id; onboarding interests are nested."""

    def __init__(self, session: StorageSession):
        self.table = session.table('profiles')

    def put(self, profile: Profile) -> Profile:
        self.table.put_item(Item=to_dynamo(self._profile_to_item(profile)))
        return profile

    def get(self, user_id: str) -> Optional[Profile]:
        item = self.table.get_item(Key={'user_id': user_id}).get('Item')
        return self._item_to_profile(item) if item else None

    def list_all(self) -> List[Profile]:
        try:
            return [self._item_to_profile(item) for item in _scan_all(self.table)]
        except ClientError as e:
            logger.error(f"Error scanning profiles table: {e}")
            raise

    def _profile_to_item(self, profile: Profile) -> dict:
        item = {
            'user_id': profile.user_id,
            'display_name': profile.display_name,
            'account_type': profile.account_type,
            'is_public': profile.is_public,
            'friend_ids': list(profile.friend_ids),
        }
        for name in ('school', 'major', 'avatar_url', 'created_at'):
            value = getattr(profile, name)
            if value is not None:
                item[name] = value
        if profile.interests is not None:
            interests = profile.interests
            item['interests'] = {
                'music_preference': interests.music_preference,
                'music_genres': list(interests.music_genres),
                'year_in_school': interests.year_in_school,
                'campus_hangout_spots': interests.campus_hangout_spots,
                'clubs_and_events': interests.clubs_and_events,
                'passion_outside_school': interests.passion_outside_school,
                'onboarding_completed': interests.onboarding_completed,
            }
        return item

    def _item_to_profile(self, item: dict) -> Profile:
        item = from_dynamo(item)
        raw_interests = item.get('interests')
        interests = None
        if raw_interests:
            interests = UserInterests(
                music_preference=raw_interests.get('music_preference'),
                music_genres=list(raw_interests.get('music_genres') or []),
                year_in_school=raw_interests.get('year_in_school'),
                campus_hangout_spots=raw_interests.get('campus_hangout_spots'),
                clubs_and_events=raw_interests.get('clubs_and_events'),
                passion_outside_school=raw_interests.get('passion_outside_school'),
                onboarding_completed=bool(raw_interests.get('onboarding_completed', False)),
            )
        return Profile(
            user_id=item['user_id'],
            display_name=item.get('display_name', ''),
            school=item.get('school'),
            major=item.get('major'),
            avatar_url=item.get('avatar_url'),
            account_type=item.get('account_type', 'personal'),
            is_public=bool(item.get('is_public', True)),
            friend_ids=list(item.get('friend_ids') or []),
            interests=interests,
            created_at=item.get('created_at'),
        )


class PostStore:
    """Posts table keyed by post_id."""

    def __init__(self, session: StorageSession):
        self.table = session.table('posts')

    def put(self, post: dict) -> dict:
        self.table.put_item(Item=to_dynamo(post))
        return post

    def get(self, post_id: str) -> Optional[dict]:
        item = self.table.get_item(Key={'post_id': post_id}).get('Item')
        return from_dynamo(item) if item else None

    def list_all(self) -> List[dict]:
        return [from_dynamo(item) for item in _scan_all(self.table)]

    def mark_promoted(self, post_id: str, priority_score: int) -> None:
        self.table.update_item(
            Key={'post_id': post_id},
            UpdateExpression='SET is_promoted = :promoted, promotion_priority = :priority',
            ExpressionAttributeValues={':promoted': True, ':priority': priority_score}
        )


class PromotionStore:
    """
    Promoted posts table keyed by post_id.

    Keying by post makes "one promotion per post" a conditional write.
    """

    def __init__(self, session: StorageSession):
        self.table = session.table('promoted_posts')

    def create(self, promotion: Promotion) -> bool:
        """
        Insert a promotion unless the post already has one.

        Returns:
            True if created, False if the post was already promoted
        """
        try:
            self.table.put_item(
                Item=to_dynamo(self._promotion_to_item(promotion)),
                ConditionExpression='attribute_not_exists(post_id)'
            )
            return True
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                return False
            raise

    def get(self, post_id: str) -> Optional[Promotion]:
        item = self.table.get_item(Key={'post_id': post_id}).get('Item')
        return self._item_to_promotion(item) if item else None

    def list_all(self) -> List[Promotion]:
        return [self._item_to_promotion(item) for item in _scan_all(self.table)]

    def update(self, post_id: str, **fields) -> None:
        names = {f"#f{i}": name for i, name in enumerate(fields)}
        values = {f":v{i}": value for i, value in enumerate(fields.values())}
        assignments = [f"#f{i} = :v{i}" for i in range(len(fields))]
        self.table.update_item(
            Key={'post_id': post_id},
            UpdateExpression='SET ' + ', '.join(assignments),
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=to_dynamo(values)
        )

    def _promotion_to_item(self, promotion: Promotion) -> dict:
        item = {
            'post_id': promotion.post_id,
            'promotion_id': promotion.promotion_id,
            'user_id': promotion.user_id,
            'promotion_budget': promotion.budget,
            'promotion_duration_days': promotion.duration_days,
            'target_impressions': promotion.target_impressions,
            'status': promotion.status,
            'payment_status': promotion.payment_status,
            'moderation_status': promotion.moderation_status,
            'promotion_config': promotion.promotion_config,
        }
        for name in ('priority_score', 'starts_at', 'ends_at', 'created_at'):
            value = getattr(promotion, name)
            if value is not None:
                item[name] = value
        return item

    def _item_to_promotion(self, item: dict) -> Promotion:
        item = from_dynamo(item)
        return Promotion(
            post_id=item['post_id'],
            promotion_id=item['promotion_id'],
            user_id=item['user_id'],
            budget=item['promotion_budget'],
            duration_days=int(item['promotion_duration_days']),
            target_impressions=int(item['target_impressions']),
            status=item.get('status', 'pending'),
            payment_status=item.get('payment_status', 'pending'),
            moderation_status=item.get('moderation_status', 'pending'),
            priority_score=item.get('priority_score'),
            promotion_config=item.get('promotion_config') or {},
            starts_at=item.get('starts_at'),
            ends_at=item.get('ends_at'),
            created_at=item.get('created_at'),
        )


class CourseColorStore:
    """Course colours keyed by user_id (hash) and course_code (range)."""

    def __init__(self, session: StorageSession):
        self.table = session.table('course_colors')

    def upsert_colors(self, user_id: str, colors: Dict[str, str]) -> int:
        """
        Write one row per course; failures are logged and skipped.

        Returns:
            Count of stored colours
        """
        stored = 0
        for course_code, color in colors.items():
            try:
                self.table.put_item(Item={
                    'user_id': user_id,
                    'course_code': course_code,
                    'canvas_color': color,
                })
                stored += 1
            except ClientError as e:
                logger.error(f"Error storing course color for {course_code}: {e}")
        return stored

    def get_colors(self, user_id: str) -> Dict[str, str]:
        response = self.table.query(KeyConditionExpression=Key('user_id').eq(user_id))
        return {item['course_code']: item['canvas_color'] for item in response.get('Items', [])}
