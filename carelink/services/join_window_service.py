# carelink/services/join_window_service.py
"""
When may a scheduled consultation's meeting link be used?

    opens_at  = scheduled - 15 min
    closes_at = scheduled + 120 min

Both boundaries are inclusive. Pure functions: callers pass "now" so the
result can be recomputed on every poll.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum as PyEnum

from carelink.utils.datetime_utils import (
    as_utc,
    format_clock_time,
    format_long_date,
    to_display_tz,
)

JOIN_OPENS_BEFORE = timedelta(minutes=15)
JOIN_CLOSES_AFTER = timedelta(minutes=120)


class JoinWindowState(str, PyEnum):
    NOT_AVAILABLE = "not-available"
    NOT_YET_OPEN = "not-yet-open"
    OPEN = "open"
    ENDED = "ended"


@dataclass(frozen=True)
class JoinWindow:
    state: JoinWindowState
    opens_at: datetime | None = None
    closes_at: datetime | None = None

    @property
    def can_join(self) -> bool:
        return self.state == JoinWindowState.OPEN


def evaluate_join_window(scheduled_at: datetime | None, now: datetime) -> JoinWindow:
    if scheduled_at is None:
        return JoinWindow(JoinWindowState.NOT_AVAILABLE)

    scheduled_at = as_utc(scheduled_at)
    now = as_utc(now)
    opens_at = scheduled_at - JOIN_OPENS_BEFORE
    closes_at = scheduled_at + JOIN_CLOSES_AFTER

    if now < opens_at:
        state = JoinWindowState.NOT_YET_OPEN
    elif now > closes_at:
        state = JoinWindowState.ENDED
    else:
        state = JoinWindowState.OPEN
    return JoinWindow(state, opens_at=opens_at, closes_at=closes_at)


def join_window_message(window: JoinWindow, tz_name: str = "UTC", *, long_form: bool = False) -> str:
    """
    Human readable status for the join control.

    long_form gives the sentence used on the detail view, the short form
    fits next to the button.
    """
    if window.state == JoinWindowState.NOT_AVAILABLE:
        return "Not scheduled yet"

    if window.state == JoinWindowState.NOT_YET_OPEN:
        opens_local = to_display_tz(window.opens_at, tz_name)
        if long_form:
            return f"Available to join {format_long_date(opens_local)} at {format_clock_time(opens_local)}"
        return f"Join available from {format_clock_time(opens_local)}"

    if window.state == JoinWindowState.OPEN:
        return "You can join the video call now" if long_form else "Ready to join"

    return "The scheduled time has passed" if long_form else "Session ended"
