"""Suggested connections ranked by interest match score."""
import logging
from typing import List

from processor.matching import calculate_match_score
from processor.models import MatchedUser, Profile
from storage.social_store import ProfileStore

logger = logging.getLogger(__name__)


def rank_candidates(target: Profile, candidates: List[Profile],
                    limit: int = 20) -> List[MatchedUser]:
    """
    Score and order candidate profiles for a target user.

    Candidates are excluded when they are the target, private, not done
    with onboarding, or already friends. Ties on score go to the newer
    profile.

    Args:
        target: Profile suggestions are computed for
        candidates: Profiles to consider
        limit: Maximum number of suggestions

    Returns:
        MatchedUser list, best match first
    """
    if target.interests is None:
        return []

    friends = set(target.friend_ids)
    scored = []
    for candidate in candidates:
        if (candidate.user_id == target.user_id
                or not candidate.is_public
                or candidate.user_id in friends
                or target.user_id in candidate.friend_ids
                or candidate.interests is None
                or not candidate.interests.onboarding_completed):
            continue
        scored.append((calculate_match_score(target, candidate), candidate))

    # Two stable sorts: newest first, then best score first
    scored.sort(key=lambda pair: pair[1].created_at or '', reverse=True)
    scored.sort(key=lambda pair: pair[0], reverse=True)

    return [
        MatchedUser(
            user_id=candidate.user_id,
            match_score=score,
            display_name=candidate.display_name,
            avatar_url=candidate.avatar_url,
            school=candidate.school,
            major=candidate.major,
            shared_interests={
                'music': candidate.interests.music_preference,
                'year': candidate.interests.year_in_school,
                'clubs': candidate.interests.clubs_and_events,
            },
        )
        for score, candidate in scored[:limit]
    ]


def suggest_connections(store: ProfileStore, user_id: str,
                        limit: int = 20) -> List[MatchedUser]:
    target = store.get(user_id)
    if target is None:
        logger.warning(f"No profile for user {user_id}, no suggestions")
        return []
    suggestions = rank_candidates(target, store.list_all(), limit)
    logger.info(f"Computed {len(suggestions)} suggestions for user {user_id}")
    return suggestions
