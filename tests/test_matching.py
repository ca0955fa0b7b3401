"""Unit tests for profile match scoring."""
from dataclasses import replace

import pytest

from processor.matching import calculate_match_score, match_label
from processor.models import Profile, UserInterests


def make_profile(user_id='u1', **interests):
    return Profile(
        user_id=user_id,
        display_name=user_id,
        interests=UserInterests(onboarding_completed=True, **interests),
    )


@pytest.fixture
def full_profile():
    profile = make_profile(
        music_preference='Indie',
        music_genres=['indie', 'rock'],
        year_in_school='sophomore',
        campus_hangout_spots=['library', 'gym', 'quad'],
        clubs_and_events=['chess', 'robotics'],
        passion_outside_school='hiking',
    )
    profile.school = 'State University'
    profile.major = 'Biology'
    return profile


def test_identical_profiles_score_100(full_profile):
    other = replace(full_profile, user_id='u2')

    assert calculate_match_score(full_profile, other) == 100.0


def test_no_common_facets_scores_zero():
    assert calculate_match_score(make_profile('a'), make_profile('b')) == 0.0


def test_school_and_major_only():
    a = Profile(user_id='a', display_name='a', school='State', major='Math')
    b = Profile(user_id='b', display_name='b', school='state ', major='History')

    assert calculate_match_score(a, b) == 8.33


def test_genre_overlap_gives_half_music_credit():
    a = make_profile('a', music_preference='Pop', music_genres=['pop', 'jazz'])
    b = make_profile('b', music_preference='Jazz', music_genres=['jazz'])

    assert calculate_match_score(a, b) == 12.5


def test_hangout_credit_saturates():
    a = make_profile('a', campus_hangout_spots=['library', 'gym', 'quad', 'cafe'])
    one = make_profile('b', campus_hangout_spots=['library'])
    four = make_profile('c', campus_hangout_spots=['library', 'gym', 'quad', 'cafe'])

    assert calculate_match_score(a, one) == 5.56
    assert calculate_match_score(a, four) == 16.67


def test_passion_matches_by_containment():
    a = make_profile('a', passion_outside_school='Hiking')
    b = make_profile('b', passion_outside_school='hiking and climbing')

    assert calculate_match_score(a, b) == 12.5


def test_sharing_more_never_lowers_score(full_profile):
    other = make_profile(
        'u2',
        music_preference='Classical',
        year_in_school='senior',
        campus_hangout_spots=[],
        clubs_and_events=[],
        passion_outside_school='painting',
    )
    other.school = 'State University'

    previous = calculate_match_score(full_profile, other)
    steps = [
        lambda p: setattr(p.interests, 'campus_hangout_spots', ['library']),
        lambda p: setattr(p.interests, 'campus_hangout_spots', ['library', 'gym']),
        lambda p: setattr(p.interests, 'clubs_and_events', ['chess']),
        lambda p: setattr(p.interests, 'music_genres', ['rock']),
        lambda p: setattr(p.interests, 'year_in_school', 'sophomore'),
        lambda p: setattr(p.interests, 'music_preference', 'indie'),
        lambda p: setattr(p, 'major', 'Biology'),
    ]
    for step in steps:
        step(other)
        score = calculate_match_score(full_profile, other)
        assert score >= previous
        previous = score


def test_answering_a_facet_with_partial_overlap_never_lowers_score():
    a = make_profile('a')
    b = make_profile('b')
    a.school = b.school = 'State'

    previous = calculate_match_score(a, b)
    a.interests.campus_hangout_spots = ['library', 'gym']
    b.interests.campus_hangout_spots = ['library']
    after_hangout = calculate_match_score(a, b)
    a.interests.clubs_and_events = ['chess', 'debate']
    b.interests.clubs_and_events = ['chess']
    after_clubs = calculate_match_score(a, b)
    a.interests.music_preference, a.interests.music_genres = 'Pop', ['pop', 'jazz']
    b.interests.music_preference, b.interests.music_genres = 'Jazz', ['jazz']
    after_music = calculate_match_score(a, b)

    assert previous < after_hangout < after_clubs < after_music


def test_unshared_answers_do_not_change_score():
    a = Profile(user_id='a', display_name='a', school='State')
    b = Profile(user_id='b', display_name='b', school='State')
    before = calculate_match_score(a, b)

    a.major, b.major = 'Math', 'History'

    assert calculate_match_score(a, b) == before


@pytest.mark.parametrize('score,label', [
    (95, 'Excellent Match'),
    (60, 'Great Match'),
    (45.5, 'Good Match'),
    (10, 'Potential Match'),
])
def test_match_label(score, label):
    assert match_label(score) == label
