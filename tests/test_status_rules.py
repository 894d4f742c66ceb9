from datetime import date, datetime, time, timezone

import pytest

from carelink.models.consultation import ConsultationStatus
from carelink.services.consultation_service import (
    SchedulingValidationError,
    normalize_admin_notes,
    normalize_status_update,
)

LINK = "https://meet.carelink.io/room-42"
EXISTING = datetime(2025, 3, 10, 10, 0, tzinfo=timezone.utc)


def _normalize(**overrides):
    values = {
        "current_status": ConsultationStatus.PENDING,
        "current_scheduled_date": None,
        "current_meeting_link": None,
        "status": None,
        "scheduled_date": None,
        "scheduled_time": None,
        "meeting_link": None,
    }
    values.update(overrides)
    return normalize_status_update(**values)


def test_scheduling_with_all_fields():
    result = _normalize(
        status=ConsultationStatus.SCHEDULED,
        scheduled_date=date(2025, 3, 10),
        scheduled_time=time(10, 0),
        meeting_link=f"  {LINK} ",
    )
    assert result.status == ConsultationStatus.SCHEDULED
    assert result.scheduled_date == EXISTING
    assert result.meeting_link == LINK


def test_schedule_time_is_read_in_schedule_timezone():
    result = _normalize(
        status=ConsultationStatus.SCHEDULED,
        scheduled_date=date(2025, 3, 10),
        scheduled_time=time(10, 0),
        meeting_link=LINK,
        tz_name="Africa/Nairobi",
    )
    assert result.scheduled_date == datetime(2025, 3, 10, 7, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "fields, missing",
    [
        ({"scheduled_time": time(10, 0), "meeting_link": LINK}, "date"),
        ({"scheduled_date": date(2025, 3, 10), "meeting_link": LINK}, "time"),
        ({"scheduled_date": date(2025, 3, 10), "scheduled_time": time(10, 0)}, "meeting link"),
        ({"scheduled_date": date(2025, 3, 10), "scheduled_time": time(10, 0), "meeting_link": "   "}, "meeting link"),
    ],
)
def test_scheduling_requires_every_field(fields, missing):
    with pytest.raises(SchedulingValidationError) as exc_info:
        _normalize(status=ConsultationStatus.SCHEDULED, **fields)
    assert missing in str(exc_info.value)


def test_scheduling_rejects_non_http_links():
    with pytest.raises(SchedulingValidationError):
        _normalize(
            status=ConsultationStatus.SCHEDULED,
            scheduled_date=date(2025, 3, 10),
            scheduled_time=time(10, 0),
            meeting_link="javascript:alert(1)",
        )


@pytest.mark.parametrize(
    "status",
    [s for s in ConsultationStatus if s != ConsultationStatus.SCHEDULED],
)
def test_leaving_scheduled_clears_the_schedule(status):
    result = _normalize(
        current_status=ConsultationStatus.SCHEDULED,
        current_scheduled_date=EXISTING,
        current_meeting_link=LINK,
        status=status,
    )
    assert result.status == status
    assert result.scheduled_date is None
    assert result.meeting_link is None


def test_stray_scheduling_fields_are_dropped_for_other_statuses():
    result = _normalize(
        status=ConsultationStatus.APPROVED,
        scheduled_date=date(2025, 3, 10),
        scheduled_time=time(10, 0),
        meeting_link=LINK,
    )
    assert result.status == ConsultationStatus.APPROVED
    assert result.scheduled_date is None
    assert result.meeting_link is None


def test_notes_only_edit_keeps_existing_schedule():
    result = _normalize(
        current_status=ConsultationStatus.SCHEDULED,
        current_scheduled_date=EXISTING,
        current_meeting_link=LINK,
    )
    assert result.status == ConsultationStatus.SCHEDULED
    assert result.scheduled_date == EXISTING
    assert result.meeting_link == LINK


def test_any_status_can_be_set_from_any_status():
    for current in ConsultationStatus:
        for target in ConsultationStatus:
            if target == ConsultationStatus.SCHEDULED:
                continue
            assert _normalize(current_status=current, status=target).status == target


def test_admin_notes_normalization():
    assert normalize_admin_notes(None) is None
    assert normalize_admin_notes("   ") is None
    assert normalize_admin_notes("  Bring recent ECG  ") == "Bring recent ECG"
