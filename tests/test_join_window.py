from datetime import datetime, timedelta, timezone

import pytest

from carelink.services.join_window_service import (
    JoinWindowState,
    evaluate_join_window,
    join_window_message,
)

SCHEDULED = datetime(2025, 3, 10, 10, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "now, expected",
    [
        (SCHEDULED - timedelta(minutes=30), JoinWindowState.NOT_YET_OPEN),
        (SCHEDULED - timedelta(minutes=15, seconds=1), JoinWindowState.NOT_YET_OPEN),
        (SCHEDULED - timedelta(minutes=15), JoinWindowState.OPEN),
        (SCHEDULED - timedelta(minutes=10), JoinWindowState.OPEN),
        (SCHEDULED, JoinWindowState.OPEN),
        (SCHEDULED + timedelta(minutes=120), JoinWindowState.OPEN),
        (SCHEDULED + timedelta(minutes=120, seconds=1), JoinWindowState.ENDED),
        (SCHEDULED + timedelta(days=1), JoinWindowState.ENDED),
    ],
)
def test_window_states(now, expected):
    window = evaluate_join_window(SCHEDULED, now)
    assert window.state == expected
    assert window.can_join is (expected == JoinWindowState.OPEN)


def test_unscheduled_is_not_available():
    window = evaluate_join_window(None, SCHEDULED)
    assert window.state == JoinWindowState.NOT_AVAILABLE
    assert not window.can_join
    assert window.opens_at is None
    assert join_window_message(window) == "Not scheduled yet"


def test_window_bounds():
    window = evaluate_join_window(SCHEDULED, SCHEDULED)
    assert window.opens_at == datetime(2025, 3, 10, 9, 45, tzinfo=timezone.utc)
    assert window.closes_at == datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


def test_naive_values_are_treated_as_utc():
    naive = SCHEDULED.replace(tzinfo=None)
    window = evaluate_join_window(naive, SCHEDULED - timedelta(minutes=10))
    assert window.state == JoinWindowState.OPEN


def test_messages():
    before = evaluate_join_window(SCHEDULED, SCHEDULED - timedelta(hours=1))
    assert join_window_message(before) == "Join available from 09:45 AM"
    assert join_window_message(before, long_form=True) == "Available to join Monday, March 10, 2025 at 09:45 AM"

    during = evaluate_join_window(SCHEDULED, SCHEDULED)
    assert join_window_message(during) == "Ready to join"
    assert join_window_message(during, long_form=True) == "You can join the video call now"

    after = evaluate_join_window(SCHEDULED, SCHEDULED + timedelta(hours=3))
    assert join_window_message(after) == "Session ended"
    assert join_window_message(after, long_form=True) == "The scheduled time has passed"


def test_messages_use_display_timezone():
    before = evaluate_join_window(SCHEDULED, SCHEDULED - timedelta(hours=1))
    # Nairobi is UTC+3
    assert join_window_message(before, "Africa/Nairobi") == "Join available from 12:45 PM"
