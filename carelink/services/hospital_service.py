# carelink/services/hospital_service.py
import re

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from carelink.models.hospital import Hospital

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


class HospitalNotFoundError(Exception):
    pass


def slugify(name: str) -> str:
    """
    "St. Mary's Hospital, Nairobi" -> "st-mary-s-hospital-nairobi"
    """
    return _NON_ALNUM.sub("-", name.lower()).strip("-")


def list_active_hospitals(db: Session, *, city: str | None = None, search: str | None = None) -> list[Hospital]:
    query = db.query(Hospital).filter(Hospital.is_active.is_(True))
    if city:
        query = query.filter(func.lower(Hospital.city) == city.strip().lower())
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(
                func.lower(Hospital.name).like(pattern),
                func.lower(Hospital.description).like(pattern),
            )
        )
    return query.order_by(Hospital.name.asc()).all()


def get_active_hospital_by_slug(db: Session, slug: str) -> Hospital:
    hospital = (
        db.query(Hospital)
        .filter(Hospital.slug == slug, Hospital.is_active.is_(True))
        .first()
    )
    if not hospital:
        raise HospitalNotFoundError("Hospital not found")
    return hospital


def ensure_hospital(db: Session, *, name: str, city: str | None = None, country: str | None = None,
                    description: str | None = None, slug: str | None = None) -> Hospital:
    """
    Idempotent insert used by seed scripts; the slug is the natural key.
    """
    slug = slug or slugify(name)
    hospital = db.query(Hospital).filter(Hospital.slug == slug).first()
    if hospital:
        return hospital

    hospital = Hospital(name=name, slug=slug, city=city, country=country, description=description)
    db.add(hospital)
    db.flush()
    return hospital
