"""
Box Database Schema - SQLAlchemy ORM models for boxes, folders and users.

Each model is one document: scalar fields are columns, every embedded
structure (item collections, sub-sections, notes, settings, membership lists)
is a JSON column. Updating a row is the single-document atomic primitive.
IDs are 24-character hex strings.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base
from ..utils.enums import ItemKind


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def default_sort_spec() -> dict:
    """Sorting preference for a section that was never customized."""
    return {
        "primarySorting": "custom",
        "secondarySorting": "none",
        "view": "grid",
        "ascendingOrder": True,
        "displayGrouping": False,
        "displaySubSections": False,
    }


def default_section_sorting() -> dict:
    return {kind.collection: default_sort_spec() for kind in ItemKind}


def default_section_visibility() -> dict:
    return {kind.collection: True for kind in ItemKind}


# =============================================================================
# USER MODEL
# =============================================================================


class User(Base):
    """
    Application user.

    ``identity_subject`` is the subject id returned by the identity provider;
    the dashboard lists hold the ids of the boxes and folders shown on the
    user's dashboard, in display order.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(24), primary_key=True)

    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    username: Mapped[Optional[str]] = mapped_column(String(255), index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True)
    image: Mapped[Optional[str]] = mapped_column(Text)
    identity_subject: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, index=True
    )

    # {"spotify": {...}} - linked third-party accounts
    services: Mapped[dict] = mapped_column(JSON, default=dict)
    # {"emailVerified": bool}
    account: Mapped[dict] = mapped_column(JSON, default=dict)

    dashboard_boxes: Mapped[list] = mapped_column(JSON, default=list)
    dashboard_folders: Mapped[list] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    modified_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )


# =============================================================================
# FOLDER MODEL
# =============================================================================


class Folder(Base):
    """A named grouping of boxes. ``boxes`` holds ``{"boxId", "boxName"}`` entries."""

    __tablename__ = "folders"

    id: Mapped[str] = mapped_column(String(24), primary_key=True)

    name: Mapped[Optional[str]] = mapped_column(String(255))
    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    description: Mapped[Optional[str]] = mapped_column(Text)
    # Not a foreign key: owners may be missing.
    creator_id: Mapped[Optional[str]] = mapped_column(String(24), index=True)

    boxes: Mapped[list] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    modified_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )


# =============================================================================
# BOX MODEL
# =============================================================================


class Box(Base):
    """
    Box document.

    Item collections (one column per ``ItemKind.collection``) hold catalog
    payloads plus the box-local fields ``localId``, ``subSectionCount`` and
    the optional ``subSection`` back-pointer. ``sub_sections`` entries are
    ``{"localId", "type", "name", "index", "items"}`` where ``items`` are
    copies, not references. ``notes`` entries are
    ``{"localId", "itemId", "noteText", "subSectionId"?}``.

    ``is_deleted_by_user`` is nullable: rows written before the flag existed
    carry NULL, which every read treats as False.
    """

    __tablename__ = "boxes"

    id: Mapped[str] = mapped_column(String(24), primary_key=True)

    name: Mapped[str] = mapped_column(String(255), default="")
    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    description: Mapped[Optional[str]] = mapped_column(Text, default="")
    # Not a foreign key: orphan boxes are allowed.
    creator_id: Mapped[Optional[str]] = mapped_column(String(24), index=True)

    # Item collections
    artists: Mapped[list] = mapped_column(JSON, default=list)
    albums: Mapped[list] = mapped_column(JSON, default=list)
    tracks: Mapped[list] = mapped_column(JSON, default=list)
    playlists: Mapped[list] = mapped_column(JSON, default=list)

    # Display settings, keyed by collection name
    section_sorting: Mapped[dict] = mapped_column(
        JSON, default=default_section_sorting
    )
    section_visibility: Mapped[dict] = mapped_column(
        JSON, default=default_section_visibility
    )

    sub_sections: Mapped[list] = mapped_column(JSON, default=list)
    notes: Mapped[list] = mapped_column(JSON, default=list)

    is_deleted_by_user: Mapped[Optional[bool]] = mapped_column(Boolean)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    modified_at: Mapped[datetime] = mapped_column(
        DateTime, default=_utcnow, onupdate=_utcnow
    )

    def items(self, kind: ItemKind) -> list:
        """Return the stored collection for ``kind`` (never None)."""
        return list(getattr(self, kind.collection) or [])

    def to_dashboard_dict(self) -> dict:
        """Entry shape used by dashboards and folder box lists."""
        return {"boxId": self.id, "boxName": self.name}
