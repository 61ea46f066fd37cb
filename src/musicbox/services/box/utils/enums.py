"""
Box service enums - item kinds and error codes.
"""

from enum import Enum


class ItemKind(str, Enum):
    """
    The four catalog item kinds a box can hold.

    Each kind owns one collection column on the box document. The value is the
    singular kind name; ``collection`` is the plural name used for the column,
    the URL path segment and the sub-section ``type`` field.
    """

    ARTIST = "artist"
    ALBUM = "album"
    TRACK = "track"
    PLAYLIST = "playlist"

    @property
    def collection(self) -> str:
        return f"{self.value}s"

    @property
    def removal_field(self) -> str:
        """Field a sub-section entry is matched on when it is removed."""
        # Playlist copies are pulled by their local id, everything else by catalog id
        if self is ItemKind.PLAYLIST:
            return "localId"
        return "id"

    @classmethod
    def from_collection(cls, name: str) -> "ItemKind":
        """Resolve either the plural collection name or the singular kind."""
        for kind in cls:
            if name in (kind.value, kind.collection):
                return kind
        raise ValueError(f"unknown item kind '{name}'")


class ErrorCode(str, Enum):
    """Error codes returned in the ``code`` field of error responses."""

    # Client errors (4xx)
    VALIDATION_ERROR = "validation_error"
    UNAUTHORIZED = "unauthorized"
    BOX_NOT_FOUND = "box_not_found"
    SUB_SECTION_NOT_FOUND = "sub_section_not_found"
    DUPLICATE_ITEM = "duplicate_item"

    # Server errors (5xx)
    STORAGE_FAILURE = "storage_failure"
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"
    INTERNAL_SERVER_ERROR = "internal_server_error"
