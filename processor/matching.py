"""Compatibility scoring between two user profiles."""
from typing import List, Optional

from processor.models import Profile, UserInterests

MUSIC_WEIGHT = 30
YEAR_WEIGHT = 15
HANGOUT_WEIGHT = 20
CLUBS_WEIGHT = 20
PASSION_WEIGHT = 15
SCHOOL_WEIGHT = 10
MAJOR_WEIGHT = 10

TOTAL_WEIGHT = (MUSIC_WEIGHT + YEAR_WEIGHT + HANGOUT_WEIGHT + CLUBS_WEIGHT
                + PASSION_WEIGHT + SCHOOL_WEIGHT + MAJOR_WEIGHT)

# Shared items needed for full credit on list facets
HANGOUT_SATURATION = 3
CLUBS_SATURATION = 2


def _shared(left: Optional[List[str]], right: Optional[List[str]]) -> int:
    return len(set(left or []) & set(right or []))


def _same_text(left: Optional[str], right: Optional[str]) -> bool:
    if not (left and right):
        return False
    return left.strip().lower() == right.strip().lower()


def _interest_points(a: UserInterests, b: UserInterests) -> float:
    points = 0.0

    if _same_text(a.music_preference, b.music_preference):
        points += MUSIC_WEIGHT
    elif _shared(a.music_genres, b.music_genres) > 0:
        points += MUSIC_WEIGHT / 2

    if a.year_in_school and a.year_in_school == b.year_in_school:
        points += YEAR_WEIGHT

    shared = _shared(a.campus_hangout_spots, b.campus_hangout_spots)
    points += HANGOUT_WEIGHT * min(shared / HANGOUT_SATURATION, 1)

    shared = _shared(a.clubs_and_events, b.clubs_and_events)
    points += CLUBS_WEIGHT * min(shared / CLUBS_SATURATION, 1)

    if a.passion_outside_school and b.passion_outside_school:
        left = a.passion_outside_school.lower()
        right = b.passion_outside_school.lower()
        if left in right or right in left:
            points += PASSION_WEIGHT

    return points


def calculate_match_score(a: Profile, b: Profile) -> float:
    """
    Score how compatible two profiles are, from 0 to 100.

    Points earned on each facet are divided by the fixed sum of all facet
    weights, so the score only moves when what the profiles share changes.
    Adding a shared facet or one more shared list item never lowers it.

    Args:
        a: First profile
        b: Second profile

    Returns:
        Score in [0, 100], rounded to two decimals
    """
    points = 0.0
    if _same_text(a.school, b.school):
        points += SCHOOL_WEIGHT
    if _same_text(a.major, b.major):
        points += MAJOR_WEIGHT
    if a.interests and b.interests:
        points += _interest_points(a.interests, b.interests)

    return round(points / TOTAL_WEIGHT * 100, 2)


def match_label(score: float) -> str:
    if score >= 80:
        return 'Excellent Match'
    if score >= 60:
        return 'Great Match'
    if score >= 40:
        return 'Good Match'
    return 'Potential Match'
