# carelink/services/user_role_service.py
"""
Reading and changing a user's role tags.
"""

import logging
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from carelink.models.user import AppRole, User, UserRole
from carelink.services.permission_service import RoleSet

logger = logging.getLogger(__name__)


class UserNotFoundError(Exception):
    pass


class DuplicateRoleError(Exception):
    pass


class RoleNotHeldError(Exception):
    pass


def get_user_role_set(db: Session, user_id: UUID) -> RoleSet:
    """
    Load the user's roles.

    Fails closed: if the lookup errors, the user is treated as holding no roles.
    """
    try:
        rows = db.query(UserRole.role).filter(UserRole.user_id == user_id).all()
    except SQLAlchemyError:
        logger.warning("Role lookup failed for user=%s; treating as no roles", user_id, exc_info=True)
        db.rollback()
        return RoleSet.empty()
    return RoleSet(row[0] for row in rows)


def grant_role(db: Session, *, user_id: UUID, role: AppRole) -> UserRole:
    """
    Add a role tag to a user. Raises DuplicateRoleError if already held.
    """
    user = db.get(User, user_id)
    if not user:
        raise UserNotFoundError("User not found")

    existing = (
        db.query(UserRole)
        .filter(UserRole.user_id == user_id, UserRole.role == role)
        .first()
    )
    if existing:
        raise DuplicateRoleError("User already has this role")

    assignment = UserRole(user_id=user_id, role=role)
    try:
        db.add(assignment)
        db.commit()
    except IntegrityError as exc:
        # concurrent grant of the same role
        db.rollback()
        raise DuplicateRoleError("User already has this role") from exc
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(assignment)
    return assignment


def revoke_role(db: Session, *, user_id: UUID, role: AppRole) -> None:
    assignment = (
        db.query(UserRole)
        .filter(UserRole.user_id == user_id, UserRole.role == role)
        .first()
    )
    if not assignment:
        raise RoleNotHeldError("User does not have this role")

    try:
        db.delete(assignment)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
