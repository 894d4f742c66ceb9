# carelink/services/user_service.py
from uuid import UUID

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from carelink.core.security import get_password_hash
from carelink.models.profile import Profile
from carelink.models.user import AppRole, User, UserRole
from carelink.schemas.auth import RegisterRequest
from carelink.schemas.user import ProfileUpdate


class EmailAlreadyRegisteredError(Exception):
    pass


def normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def get_user(db: Session, user_id: UUID) -> User | None:
    return db.get(User, user_id)


def register_patient(db: Session, data: RegisterRequest) -> User:
    """
    Sign-up: user + profile + the `patient` role, in one transaction.
    """
    email = normalize_email(data.email)
    if get_user_by_email(db, email):
        raise EmailAlreadyRegisteredError("An account with this email already exists")

    user = User(
        email=email,
        hashed_password=get_password_hash(data.password),
        is_active=True,
    )
    user.profile = Profile(
        full_name=data.full_name.strip(),
        email=email,
        phone=data.phone,
        country=data.country,
    )
    user.roles.append(UserRole(role=AppRole.PATIENT))

    try:
        db.add(user)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise EmailAlreadyRegisteredError("An account with this email already exists") from exc
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(user)
    return user


def set_password(db: Session, user: User, new_password: str) -> None:
    user.hashed_password = get_password_hash(new_password)
    db.flush()


def get_or_create_profile(db: Session, user: User) -> Profile:
    """
    Profiles are expected for every signed-up user; older accounts may lack one.
    """
    profile = db.query(Profile).filter(Profile.user_id == user.id).first()
    if profile is None:
        profile = Profile(user_id=user.id, email=user.email)
        db.add(profile)
        db.flush()
    return profile


def update_profile(db: Session, user: User, data: ProfileUpdate) -> Profile:
    profile = get_or_create_profile(db, user)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(profile, field, value)

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(profile)
    return profile


def list_users_with_roles(db: Session, *, search: str | None = None) -> list[User]:
    """
    Users (with profile and roles eagerly loaded), newest first.
    """
    query = (
        db.query(User)
        .outerjoin(Profile, Profile.user_id == User.id)
        .options(selectinload(User.roles), selectinload(User.profile))
    )
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(
                func.lower(User.email).like(pattern),
                func.lower(Profile.full_name).like(pattern),
            )
        )
    return query.order_by(User.created_at.desc()).all()
