from datetime import datetime, timedelta

import pytest

from carelink.models.consultation import Consultation, ConsultationStatus
from carelink.models.notification import Notification, NotificationStatus
from carelink.models.user import AppRole
from carelink.utils.datetime_utils import as_utc, utc_now

LINK = "https://meet.carelink.io/room-42"
SCHEDULE = {
    "status": "scheduled",
    "scheduled_date": "2025-03-10",
    "scheduled_time": "10:00",
    "meeting_link": LINK,
}


@pytest.fixture
def admin_headers(consultation_admin, auth_headers):
    return auth_headers(consultation_admin)


@pytest.fixture
def patient_headers(patient, auth_headers):
    return auth_headers(patient)


def _patch(client, consultation_id, headers, payload):
    return client.patch(f"/api/v1/admin/consultations/{consultation_id}", headers=headers, json=payload)


# -------------------------
# Submission
# -------------------------
def test_patient_submits_consultation(client, db, patient, hospital, patient_headers):
    res = client.post(
        "/api/v1/consultations/",
        headers=patient_headers,
        json={
            "hospital_id": str(hospital.id),
            "specialty": "Orthopedics",
            "specialist_name": "Dr. Juma Mwangi",
            "condition_description": "Knee pain after a football injury, worse on stairs.",
            "urgency_level": "urgent",
            "phone": "+254711111111",
        },
    )
    assert res.status_code == 201, res.text
    body = res.json()
    assert body["status"] == "pending"
    assert body["status_label"] == "Pending"
    assert body["scheduled_date"] is None
    assert body["meeting_link"] is None
    assert body["hospital_name"] == "Aga Khan University Hospital"

    db.expire_all()
    assert patient.profile.phone == "+254711111111"

    res = client.get("/api/v1/consultations/mine", headers=patient_headers)
    assert [c["id"] for c in res.json()] == [body["id"]]


def test_submission_validation(client, hospital, patient_headers):
    res = client.post(
        "/api/v1/consultations/",
        headers=patient_headers,
        json={
            "hospital_id": str(hospital.id),
            "specialty": "Cardiology",
            "specialist_name": "Dr. Kamau",
            "condition_description": "Too short",
        },
    )
    assert res.status_code == 422


def test_submission_to_unknown_hospital(client, patient_headers):
    res = client.post(
        "/api/v1/consultations/",
        headers=patient_headers,
        json={
            "hospital_id": "00000000-0000-0000-0000-000000000000",
            "specialty": "Cardiology",
            "specialist_name": "Dr. Kamau",
            "condition_description": "Recurring chest pain during light exercise.",
        },
    )
    assert res.status_code == 404


# -------------------------
# Scheduling
# -------------------------
def test_scheduling_sends_one_email(client, db, patient, make_consultation, admin_headers, outbox):
    consultation = make_consultation(patient)

    res = _patch(client, consultation.id, admin_headers, SCHEDULE)
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["status"] == "scheduled"
    assert body["scheduled_date"].startswith("2025-03-10T10:00:00")
    assert body["meeting_link"] == LINK
    assert body["patient"]["full_name"] == "Amina Otieno"

    assert len(outbox) == 1
    email = outbox[0]
    assert email["to"] == "amina@carelink.io"
    assert email["subject"] == "Your Medical Consultation Has Been Scheduled"
    assert "Amina Otieno" in email["body"]
    assert "Dr. Wanjiru Kamau" in email["body"]
    assert "Cardiology" in email["body"]
    assert "Monday, March 10, 2025" in email["body"]
    assert "10:00 AM" in email["body"]
    assert LINK in email["body"]

    log = db.query(Notification).one()
    assert log.status == NotificationStatus.SENT
    assert log.reason == "consultation_scheduled"

    # same schedule saved again: no second email
    assert _patch(client, consultation.id, admin_headers, SCHEDULE).status_code == 200
    assert len(outbox) == 1

    # moved to a new time: patient is told again
    assert _patch(client, consultation.id, admin_headers, {**SCHEDULE, "scheduled_time": "14:30"}).status_code == 200
    assert len(outbox) == 2
    assert "02:30 PM" in outbox[1]["body"]


def test_email_failure_does_not_fail_scheduling(client, db, patient, make_consultation, admin_headers, monkeypatch):
    def failing_send_email(*args, **kwargs):
        raise ConnectionError("SMTP unavailable")

    monkeypatch.setattr("carelink.services.notification_service.send_email", failing_send_email)
    consultation = make_consultation(patient)

    res = _patch(client, consultation.id, admin_headers, SCHEDULE)
    assert res.status_code == 200
    assert res.json()["status"] == "scheduled"

    assert db.query(Notification).one().status == NotificationStatus.FAILED


def test_scheduling_with_missing_fields_changes_nothing(client, db, patient, make_consultation, admin_headers, outbox):
    consultation = make_consultation(patient, status=ConsultationStatus.APPROVED)

    res = _patch(client, consultation.id, admin_headers, {"status": "scheduled", "scheduled_date": "2025-03-10"})
    assert res.status_code == 400
    assert "time" in res.json()["detail"]
    assert "meeting link" in res.json()["detail"]

    db.expire_all()
    stored = db.get(Consultation, consultation.id)
    assert stored.status == ConsultationStatus.APPROVED
    assert stored.scheduled_date is None
    assert outbox == []


def test_scheduling_rejects_non_http_link(client, patient, make_consultation, admin_headers):
    consultation = make_consultation(patient)
    res = _patch(client, consultation.id, admin_headers, {**SCHEDULE, "meeting_link": "ftp://files.example"})
    assert res.status_code == 400


def test_cancelling_clears_the_schedule(client, db, patient, make_consultation, admin_headers, outbox):
    consultation = make_consultation(patient)
    _patch(client, consultation.id, admin_headers, SCHEDULE)

    res = _patch(client, consultation.id, admin_headers, {"status": "cancelled"})
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "cancelled"
    assert body["scheduled_date"] is None
    assert body["meeting_link"] is None

    db.expire_all()
    stored = db.get(Consultation, consultation.id)
    assert stored.scheduled_date is None
    assert stored.meeting_link is None
    assert len(outbox) == 1


def test_notes_only_edit_keeps_schedule(client, patient, make_consultation, admin_headers, patient_headers, outbox):
    consultation = make_consultation(patient)
    _patch(client, consultation.id, admin_headers, SCHEDULE)

    res = _patch(client, consultation.id, admin_headers, {"admin_notes": "  Bring your latest ECG.  "})
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "scheduled"
    assert body["meeting_link"] == LINK
    assert body["admin_notes"] == "Bring your latest ECG."
    assert len(outbox) == 1

    # notes are visible to the owner
    res = client.get(f"/api/v1/consultations/{consultation.id}", headers=patient_headers)
    assert res.json()["admin_notes"] == "Bring your latest ECG."

    res = _patch(client, consultation.id, admin_headers, {"admin_notes": ""})
    assert res.json()["admin_notes"] is None


def test_status_can_move_backwards(client, patient, make_consultation, admin_headers):
    consultation = make_consultation(patient, status=ConsultationStatus.COMPLETED)
    res = _patch(client, consultation.id, admin_headers, {"status": "under_review"})
    assert res.status_code == 200
    assert res.json()["status"] == "under_review"
    assert res.json()["status_label"] == "Under Review"


def test_update_unknown_consultation(client, admin_headers):
    res = _patch(client, "00000000-0000-0000-0000-000000000000", admin_headers, {"status": "approved"})
    assert res.status_code == 404


# -------------------------
# Authorization
# -------------------------
def test_patient_cannot_update_status(client, db, patient, make_consultation, patient_headers, outbox):
    consultation = make_consultation(patient)

    res = _patch(client, consultation.id, patient_headers, SCHEDULE)
    assert res.status_code == 403

    db.expire_all()
    assert db.get(Consultation, consultation.id).status == ConsultationStatus.PENDING
    assert outbox == []


@pytest.mark.parametrize("role", [AppRole.VISA_ADMIN, AppRole.ACCOMMODATION_ADMIN, AppRole.HOSPITAL_ADMIN])
def test_other_admin_roles_cannot_manage_consultations(client, make_user, auth_headers, role):
    headers = auth_headers(make_user(role))
    assert client.get("/api/v1/admin/consultations/", headers=headers).status_code == 403


@pytest.mark.parametrize("role", [AppRole.ADMIN, AppRole.CONSULTATION_ADMIN, AppRole.SUPER_ADMIN])
def test_consultation_managers(client, make_user, auth_headers, role):
    headers = auth_headers(make_user(role))
    assert client.get("/api/v1/admin/consultations/", headers=headers).status_code == 200


def test_patients_only_see_their_own(client, make_user, make_consultation, auth_headers, admin_headers):
    alice = make_user(AppRole.PATIENT, full_name="Alice")
    bob = make_user(AppRole.PATIENT, full_name="Bob")
    alice_case = make_consultation(alice)
    bob_case = make_consultation(bob, specialty="Oncology")

    alice_headers = auth_headers(alice)
    res = client.get("/api/v1/consultations/mine", headers=alice_headers)
    assert [c["id"] for c in res.json()] == [str(alice_case.id)]

    assert client.get(f"/api/v1/consultations/{bob_case.id}", headers=alice_headers).status_code == 404
    assert client.get(f"/api/v1/consultations/{bob_case.id}/join-window", headers=alice_headers).status_code == 404

    res = client.get("/api/v1/admin/consultations/", headers=admin_headers)
    assert {c["id"] for c in res.json()} == {str(alice_case.id), str(bob_case.id)}

    res = client.get("/api/v1/admin/consultations/?search=onco", headers=admin_headers)
    assert [c["id"] for c in res.json()] == [str(bob_case.id)]

    res = client.get("/api/v1/admin/consultations/?status=scheduled", headers=admin_headers)
    assert res.json() == []


def test_admin_view_of_patient_without_profile(client, make_user, make_consultation, admin_headers):
    ghost = make_user(AppRole.PATIENT, with_profile=False)
    consultation = make_consultation(ghost)

    res = client.get(f"/api/v1/admin/consultations/{consultation.id}", headers=admin_headers)
    assert res.status_code == 200
    assert res.json()["patient"] is None


# -------------------------
# Join window
# -------------------------
def _parse_utc(value):
    return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def _schedule_at(client, consultation_id, headers, when):
    payload = {
        "status": "scheduled",
        "scheduled_date": when.date().isoformat(),
        "scheduled_time": when.strftime("%H:%M"),
        "meeting_link": LINK,
    }
    res = _patch(client, consultation_id, headers, payload)
    assert res.status_code == 200, res.text


def test_join_window_not_scheduled(client, patient, make_consultation, patient_headers):
    consultation = make_consultation(patient)
    res = client.get(f"/api/v1/consultations/{consultation.id}/join-window", headers=patient_headers)
    assert res.status_code == 200
    body = res.json()
    assert body["state"] == "not-available"
    assert body["can_join"] is False
    assert body["meeting_link"] is None
    assert body["message"] == "Not scheduled yet"


def test_join_window_open_shortly_before_start(client, patient, make_consultation, admin_headers, patient_headers):
    consultation = make_consultation(patient)
    _schedule_at(client, consultation.id, admin_headers, utc_now() + timedelta(minutes=5))

    body = client.get(f"/api/v1/consultations/{consultation.id}/join-window", headers=patient_headers).json()
    assert body["state"] == "open"
    assert body["can_join"] is True
    assert body["meeting_link"] == LINK
    assert body["message"] == "Ready to join"


def test_join_window_hides_link_until_open(client, patient, make_consultation, admin_headers, patient_headers):
    consultation = make_consultation(patient)
    start = utc_now() + timedelta(days=2)
    _schedule_at(client, consultation.id, admin_headers, start)

    body = client.get(f"/api/v1/consultations/{consultation.id}/join-window", headers=patient_headers).json()
    assert body["state"] == "not-yet-open"
    assert body["can_join"] is False
    assert body["meeting_link"] is None
    assert body["message"].startswith("Join available from ")
    assert _parse_utc(body["opens_at"]) < _parse_utc(body["scheduled_date"])


def test_join_window_ended(client, patient, make_consultation, admin_headers, patient_headers):
    consultation = make_consultation(patient)
    _schedule_at(client, consultation.id, admin_headers, utc_now() - timedelta(hours=3))

    body = client.get(f"/api/v1/consultations/{consultation.id}/join-window", headers=patient_headers).json()
    assert body["state"] == "ended"
    assert body["meeting_link"] is None
    assert body["detail"] == "The scheduled time has passed"
