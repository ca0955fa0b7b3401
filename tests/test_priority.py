"""Unit tests for priority scoring."""
from datetime import datetime, timedelta, timezone

import pytest

from processor.priority import (
    CRITICAL, HIGH, LOW, MEDIUM, NONE, calculate_priority, due_date_priority,
    keyword_priority, priority_from_label, priority_label,
)

NOW = datetime(2024, 12, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize('text,expected', [
    ('Final Exam', CRITICAL),
    ('Chapter 4 quiz', CRITICAL),
    ('Testing strategies', CRITICAL),
    ('Research paper', HIGH),
    ('Group project kickoff', HIGH),
    ('Homework 3', MEDIUM),
    ('Lab notebook', MEDIUM),
    ('Extra credit worksheet', LOW),
    ('Latest contest results', NONE),
    ('Coffee with friends', NONE),
])
def test_keyword_priority(text, expected):
    assert keyword_priority(text) == expected


@pytest.mark.parametrize('delta,expected', [
    (timedelta(hours=-5), CRITICAL),
    (timedelta(hours=12), CRITICAL),
    (timedelta(days=2), HIGH),
    (timedelta(days=5), LOW),
    (timedelta(days=10), NONE),
])
def test_due_date_priority(delta, expected):
    assert due_date_priority(NOW + delta, NOW) == expected


def test_due_date_priority_accepts_iso_strings():
    assert due_date_priority('2024-12-02T00:00:00Z', NOW) == CRITICAL
    assert due_date_priority(None, NOW) == NONE


def test_priority_takes_highest_tier():
    assert calculate_priority('Reading', None, NOW + timedelta(hours=6), NOW) == CRITICAL
    assert calculate_priority('Midterm', None, NOW + timedelta(days=30), NOW) == CRITICAL
    assert calculate_priority('Reading', 'for the midterm', None, NOW) == CRITICAL


def test_earlier_due_date_never_lowers_priority():
    titles = ['Reading', 'Essay', 'Coffee', 'Quiz', 'Optional review']
    deltas = [timedelta(days=d) for d in (30, 10, 7, 5, 3, 2, 1, 0.5, 0, -1)]
    for title in titles:
        scores = [calculate_priority(title, None, NOW + delta, NOW) for delta in deltas]
        assert scores == sorted(scores), title


def test_adding_a_due_date_never_lowers_priority():
    for title in ['Reading', 'Essay', 'Coffee', 'Exam']:
        undated = calculate_priority(title, None, None, NOW)
        for days in (0, 2, 5, 20):
            assert calculate_priority(title, None, NOW + timedelta(days=days), NOW) >= undated


def test_labels():
    for score in (LOW, MEDIUM, HIGH, CRITICAL):
        assert priority_from_label(priority_label(score)) == score
    assert priority_label(CRITICAL) == 'Critical'
    assert priority_label(99) == 'No Priority'
    assert priority_from_label('HIGH') == HIGH
    assert priority_from_label(None) == NONE
