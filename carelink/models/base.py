# carelink/models/base.py
from enum import Enum as PyEnum

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all ORM models.
    """

    pass


def enum_values(enum_cls: type[PyEnum]) -> list[str]:
    """
    Persist enum *values* (e.g. "under_review") rather than member names,
    so the stored strings match the public API.
    """
    return [member.value for member in enum_cls]
