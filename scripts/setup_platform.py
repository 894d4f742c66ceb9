#!/usr/bin/env python3
# scripts/setup_platform.py
"""
Platform setup. Safe to run many times (idempotent).

- --seed-hospitals: inserts the partner hospital catalog (slug is the key,
  existing rows are left alone).
- --ensure-super-admin: creates the superadmin account, or makes an existing
  one login-ready again (active, password rotated, superadmin role present).

When both flags are given, hospitals are seeded first.

Examples:
  python -m scripts.setup_platform --seed-hospitals
  python -m scripts.setup_platform --ensure-super-admin --email admin@afaya.care --password "Admin@12345"

  # credentials from env (SUPER_ADMIN_EMAIL / SUPER_ADMIN_PASSWORD)
  python -m scripts.setup_platform --seed-hospitals --ensure-super-admin
"""

import argparse
import logging
import sys

from sqlalchemy.orm import Session

from carelink.core.config import get_settings
from carelink.core.database import SessionLocal
from carelink.core.logging_config import setup_logging
from carelink.core.security import get_password_hash
from carelink.models.hospital import Hospital
from carelink.models.profile import Profile
from carelink.models.user import AppRole, User, UserRole
from carelink.services.hospital_service import ensure_hospital, slugify
from carelink.services.user_service import get_user_by_email, normalize_email

logger = logging.getLogger(__name__)

PARTNER_HOSPITALS = [
    {
        "name": "Aga Khan University Hospital",
        "city": "Nairobi",
        "country": "Kenya",
        "description": "Tertiary referral hospital with cardiology, oncology and neurosciences centres.",
    },
    {
        "name": "Nairobi Hospital",
        "city": "Nairobi",
        "country": "Kenya",
        "description": "Private hospital offering orthopaedics, renal care and a cancer centre.",
    },
    {
        "name": "Mulago National Referral Hospital",
        "city": "Kampala",
        "country": "Uganda",
        "description": "National referral hospital with specialist surgical and paediatric units.",
    },
    {
        "name": "Muhimbili National Hospital",
        "city": "Dar es Salaam",
        "country": "Tanzania",
        "description": "Teaching hospital with cardiac, neurosurgery and nephrology services.",
    },
]


def seed_hospitals(db: Session) -> int:
    existing = {slug for (slug,) in db.query(Hospital.slug).all()}
    created = 0
    for data in PARTNER_HOSPITALS:
        if slugify(data["name"]) not in existing:
            created += 1
        ensure_hospital(db, **data)
    db.commit()
    logger.info("Hospital catalog ensured (%d new, %d total)", created, len(PARTNER_HOSPITALS))
    return created


def ensure_super_admin(db: Session, *, email: str, password: str, full_name: str = "Platform Admin") -> User:
    """
    Ensure a superadmin exists and can log in.

    If the password changes in env, it is rotated on the next run.
    """
    email = normalize_email(email)
    hashed = get_password_hash(password)
    user = get_user_by_email(db, email)

    if user is None:
        user = User(email=email, hashed_password=hashed, is_active=True)
        user.profile = Profile(full_name=full_name, email=email)
        db.add(user)
        action = "created"
    else:
        user.hashed_password = hashed
        user.is_active = True
        if user.profile is None:
            user.profile = Profile(full_name=full_name, email=email)
        action = "updated"

    if not any(r.role == AppRole.SUPER_ADMIN for r in user.roles):
        user.roles.append(UserRole(role=AppRole.SUPER_ADMIN))

    db.commit()
    db.refresh(user)
    logger.info("Superadmin %s: %s", action, email)
    return user


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Afaya Care Link platform setup")
    p.add_argument("--seed-hospitals", action="store_true", help="Ensure the partner hospital catalog exists")
    p.add_argument(
        "--ensure-super-admin",
        action="store_true",
        help="Ensure a superadmin exists (from args if provided, else from env)",
    )

    # Optional CLI overrides (otherwise env is used)
    p.add_argument("--email", type=str, help="Superadmin email (or env SUPER_ADMIN_EMAIL)")
    p.add_argument("--password", type=str, help="Superadmin password (or env SUPER_ADMIN_PASSWORD)")
    p.add_argument("--full-name", type=str, default=None, help="Default: env SUPER_ADMIN_FULL_NAME")
    return p.parse_args()


def main() -> None:
    args = parse_args()

    if not args.seed_hospitals and not args.ensure_super_admin:
        print("Nothing to do. Use --seed-hospitals and/or --ensure-super-admin.")
        sys.exit(1)

    settings = get_settings()
    setup_logging(settings.log_level)

    email = password = None
    full_name = settings.super_admin_full_name
    if args.ensure_super_admin:
        # CLI args take precedence, then settings (from .env)
        email = args.email or settings.super_admin_email
        password = args.password or settings.super_admin_password
        full_name = args.full_name or full_name

        if not email or not password:
            raise SystemExit(
                "Superadmin credentials missing.\n"
                "Provide --email/--password OR set env SUPER_ADMIN_EMAIL and SUPER_ADMIN_PASSWORD."
            )

    db: Session = SessionLocal()
    try:
        if args.seed_hospitals:
            seed_hospitals(db)

        if args.ensure_super_admin:
            ensure_super_admin(db, email=email, password=password, full_name=full_name)

    except Exception:
        db.rollback()
        logger.exception("Platform setup failed")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
