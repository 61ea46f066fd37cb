"""
Box Database Base - SQLAlchemy declarative base.
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for box, folder and user documents."""

    pass
