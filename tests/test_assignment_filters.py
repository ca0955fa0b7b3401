"""Unit tests for stale assignment filtering."""
from datetime import datetime, timezone

from processor.assignment_filters import filter_canvas_assignments, filter_recent_assignments

NOW = datetime(2024, 12, 10, 15, 0, tzinfo=timezone.utc)


def canvas(title, start_time):
    return {
        'title': title,
        'source_provider': 'canvas',
        'event_type': 'assignment',
        'start_time': start_time,
    }


def test_old_canvas_assignments_are_dropped():
    items = [
        canvas('Old essay', '2024-12-01T23:59:00Z'),
        canvas('Recent quiz', '2024-12-05T23:59:00Z'),
        canvas('On the cutoff', '2024-12-03T00:00:00Z'),
    ]

    kept = filter_recent_assignments(items, NOW)

    assert [item['title'] for item in kept] == ['Recent quiz', 'On the cutoff']


def test_manual_tasks_use_due_date():
    items = [
        {'title': 'Old chore', 'due_date': '2024-11-20T12:00:00Z', 'source_provider': 'manual'},
        {'title': 'New chore', 'due_date': '2024-12-12T12:00:00Z'},
        {'title': 'Undated chore', 'source_provider': 'manual'},
    ]

    kept = filter_recent_assignments(items, NOW)

    assert [item['title'] for item in kept] == ['New chore', 'Undated chore']


def test_naive_datetimes_are_read_as_utc():
    items = [
        canvas('Old essay', datetime(2024, 12, 1, 23, 59)),
        canvas('Recent quiz', datetime(2024, 12, 5, 23, 59)),
        {'title': 'Old chore', 'due_date': datetime(2024, 11, 20, 12, 0)},
    ]

    kept = filter_recent_assignments(items, NOW)

    assert [item['title'] for item in kept] == ['Recent quiz']


def test_other_providers_are_kept():
    items = [
        {'title': 'Old meeting', 'source_provider': 'google', 'event_type': 'event',
         'start_time': '2024-01-01T10:00:00Z'},
    ]

    assert filter_recent_assignments(items, NOW) == items


def test_filter_canvas_assignments_only_returns_recent_canvas():
    events = [
        canvas('Recent quiz', '2024-12-09T23:59:00Z'),
        canvas('Old essay', '2024-11-01T23:59:00Z'),
        {'title': 'Lecture', 'source_provider': 'canvas', 'event_type': 'event',
         'start_time': '2024-12-09T10:00:00Z'},
        {'title': 'Party', 'source_provider': 'google', 'event_type': 'event',
         'start_time': '2024-12-09T20:00:00Z'},
    ]

    kept = filter_canvas_assignments(events, NOW)

    assert [item['title'] for item in kept] == ['Recent quiz']
