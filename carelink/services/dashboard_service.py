# carelink/services/dashboard_service.py
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from carelink.models.consultation import Consultation, ConsultationStatus
from carelink.models.profile import Profile
from carelink.utils.datetime_utils import utc_now

NEW_PATIENT_WINDOW = timedelta(days=7)


def get_dashboard_stats(db: Session, *, now: datetime | None = None, recent_limit: int = 5) -> dict:
    now = now or utc_now()

    counts = {status: 0 for status in ConsultationStatus}
    rows = (
        db.query(Consultation.status, func.count(Consultation.id))
        .group_by(Consultation.status)
        .all()
    )
    for status, count in rows:
        counts[ConsultationStatus(status)] = count

    total_patients = db.query(func.count(Profile.id)).scalar() or 0
    new_patients = (
        db.query(func.count(Profile.id))
        .filter(Profile.created_at >= now - NEW_PATIENT_WINDOW)
        .scalar()
        or 0
    )
    recent = (
        db.query(Consultation)
        .order_by(Consultation.created_at.desc())
        .limit(recent_limit)
        .all()
    )

    return {
        "status_counts": {status.value: count for status, count in counts.items()},
        "total_consultations": sum(counts.values()),
        "total_patients": total_patients,
        "new_patients_last_7_days": new_patients,
        "recent_consultations": recent,
    }
