"""
Typed operations for the box service - Pydantic wrappers around operations.py.

Inputs stay plain dicts (they are validated by the wrapped functions) and
outputs are Pydantic models, so results can be serialized with
``model_dump(by_alias=True)`` in the client's camelCase shape.

Usage:
    from musicbox.services.box.database.typed_operations import BoxOperations
    from musicbox.services.box.utils import ItemKind

    ops = BoxOperations(session)

    box = ops.create_box({"name": "Road trip", "creatorId": user.id})
    ops.add_item(box.id, ItemKind.ARTIST, {"id": "4Z8W4fKeB5YxbusRsdQVPb"})
    box = ops.get_box(box.id)

    box.model_dump(by_alias=True)
"""

from typing import Any, Optional

from sqlalchemy.orm import Session

from . import lifecycle
from . import operations as ops
from .pydantic_schemas import BoxSchema, FolderSchema, UserSchema
from ..utils.enums import ItemKind


def _box(box) -> Optional[BoxSchema]:
    return BoxSchema.model_validate(box) if box is not None else None


class BoxOperations:
    """
    Type-safe operations for the box service.

    The session is held by the instance; nothing is committed here, so the
    caller decides when the unit of work ends.

    Example:
        ops = BoxOperations(session)
        ops.reorder_items(box_id, ItemKind.TRACK, source_index=3, destination_index=0)
        session.commit()
    """

    def __init__(self, session: Session):
        """
        Initialize operations with a database session.

        Args:
            session: SQLAlchemy session for database operations
        """
        self.session = session

    # ==========================================================================
    # BOX OPERATIONS
    # ==========================================================================

    def get_box(self, box_id: str) -> Optional[BoxSchema]:
        """
        Get a box unless its user deleted it.

        Args:
            box_id: Box ID

        Returns:
            BoxSchema or None when the box is missing or soft-deleted
        """
        return _box(ops.get_active_box(self.session, box_id))

    def get_boxes(self, box_ids: list[str]) -> list[BoxSchema]:
        """
        Fetch many boxes, ordered like ``box_ids``.

        Args:
            box_ids: Box IDs in the order the caller wants them back

        Returns:
            List of BoxSchema; ids with no box are dropped
        """
        return [
            BoxSchema.model_validate(b)
            for b in ops.get_boxes_by_ids(self.session, box_ids)
        ]

    def create_box(self, initial_data: dict[str, Any]) -> BoxSchema:
        """
        Create a box and put it on its owner's dashboard.

        Args:
            initial_data: Box fields; ``creatorId`` is required

        Returns:
            The created box
        """
        return BoxSchema.model_validate(lifecycle.create_box(self.session, initial_data))

    def soft_delete_box(self, box_id: str, folder_id: Optional[str] = None) -> None:
        """
        Hide a box and detach it from its folder or its owner's dashboard.

        Args:
            box_id: Box ID
            folder_id: Containing folder, when the box sits in one
        """
        lifecycle.soft_delete_box(self.session, box_id, folder_id=folder_id)

    # ==========================================================================
    # ITEM OPERATIONS
    # ==========================================================================

    def add_item(
        self, box_id: str, kind: ItemKind, item: dict[str, Any]
    ) -> Optional[list[dict]]:
        """
        Add a catalog item to a box.

        Args:
            box_id: Box ID
            kind: Item kind
            item: Catalog payload; ``id`` is required

        Returns:
            The updated collection, or None when the box is missing

        Raises:
            MusicBoxError: duplicate_item when the catalog id is already present
        """
        return ops.add_item(self.session, box_id, kind, item)

    def replace_items(
        self, box_id: str, kind: ItemKind, items: list[dict[str, Any]]
    ) -> Optional[list[dict]]:
        return ops.replace_items(self.session, box_id, kind, items)

    def update_item(
        self, box_id: str, kind: ItemKind, item_id: str, payload: dict[str, Any]
    ) -> Optional[BoxSchema]:
        return _box(ops.update_item(self.session, box_id, kind, item_id, payload))

    def reorder_items(
        self,
        box_id: str,
        kind: ItemKind,
        source_index: int,
        destination_index: int,
    ) -> BoxSchema:
        """
        Move an item inside its collection.

        Args:
            box_id: Box ID
            kind: Item kind
            source_index: Current position
            destination_index: New position

        Returns:
            The updated box

        Raises:
            MusicBoxError: box_not_found, or validation_error for bad indices
        """
        return BoxSchema.model_validate(
            ops.reorder_items(
                self.session, box_id, kind, source_index, destination_index
            )
        )

    def remove_item(
        self, box_id: str, kind: ItemKind, item_id: str
    ) -> Optional[list[dict]]:
        return ops.remove_item(self.session, box_id, kind, item_id)

    # ==========================================================================
    # SUB-SECTION OPERATIONS
    # ==========================================================================

    def create_sub_section(
        self, box_id: str, type: str, name: str, index: int = 0
    ) -> Optional[list[dict]]:
        return ops.create_sub_section(
            self.session, box_id, type=type, name=name, index=index
        )

    def add_item_to_sub_section(
        self,
        box_id: str,
        kind: ItemKind,
        item_id: str,
        sub_section_id: str,
        item_data: dict[str, Any],
    ) -> Optional[BoxSchema]:
        """
        Copy an item into a sub-section and bump its membership counter.

        Args:
            box_id: Box ID
            kind: Item kind
            item_id: Local id of the collection item
            sub_section_id: Target sub-section
            item_data: Payload of the copy

        Returns:
            The updated box, or None when the box is missing
        """
        return _box(
            ops.add_item_to_sub_section(
                self.session, box_id, kind, item_id, sub_section_id, item_data
            )
        )

    def remove_item_from_sub_section(
        self,
        box_id: str,
        kind: ItemKind,
        item_id: str,
        sub_section_id: str,
        removal_key: str,
    ) -> Optional[BoxSchema]:
        return _box(
            ops.remove_item_from_sub_section(
                self.session, box_id, kind, item_id, sub_section_id, removal_key
            )
        )

    def delete_sub_section(
        self, box_id: str, sub_section_id: str, affected_kind: ItemKind
    ) -> Optional[BoxSchema]:
        return _box(
            ops.delete_sub_section(self.session, box_id, sub_section_id, affected_kind)
        )

    # ==========================================================================
    # FOLDER & USER OPERATIONS
    # ==========================================================================

    def create_folder(self, initial_data: dict[str, Any]) -> FolderSchema:
        return FolderSchema.model_validate(
            lifecycle.create_folder(self.session, initial_data)
        )

    def get_folder(self, folder_id: str) -> Optional[FolderSchema]:
        folder = ops.get_folder_by_id(self.session, folder_id)
        return FolderSchema.model_validate(folder) if folder is not None else None

    def create_user(self, data: dict[str, Any]) -> UserSchema:
        return UserSchema.model_validate(ops.create_user(self.session, data))

    def get_user(self, user_id: str) -> Optional[UserSchema]:
        """
        Get a user by ID.

        Args:
            user_id: User ID

        Returns:
            UserSchema or None if not found
        """
        user = ops.get_user_by_id(self.session, user_id)
        return UserSchema.model_validate(user) if user is not None else None
