"""
Box and folder lifecycle - operations that touch more than one document.

Each step is its own single-document update. There is no transaction
spanning the steps at this layer: callers share one request-scoped session,
so a failure before commit rolls everything back, but the steps are written
so that a partial application leaves recoverable state (an orphan box, a
stale dashboard entry) rather than a corrupt document.
"""

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from . import operations as ops
from .schema import Box, Folder, User
from .pydantic_schemas import BoxCreate, FolderCreate
from ..utils.enums import ItemKind
from ..utils.ids import generate_box_id, generate_folder_id

logger = logging.getLogger(__name__)


# =============================================================================
# BOXES
# =============================================================================


def create_box(session: Session, initial_data: dict[str, Any]) -> Box:
    """
    Create a box and append it to its owner's dashboard.

    Step one inserts the box; step two appends the id to the owner's
    ``dashboard_boxes``. A missing owner does not fail the call: the box is
    kept as an orphan and a warning is logged.
    """
    data = ops.validate_payload(BoxCreate, initial_data)

    box = Box(
        id=generate_box_id(),
        name=data.name,
        is_public=data.is_public,
        description=data.description,
        creator_id=data.creator_id,
        section_sorting=data.section_sorting.model_dump(by_alias=True),
        section_visibility=data.section_visibility.model_dump(by_alias=True),
        sub_sections=[
            ops.with_local_id(s.model_dump(by_alias=True)) for s in data.sub_sections
        ],
        notes=[
            ops.with_local_id(n.model_dump(by_alias=True, exclude_none=True))
            for n in data.notes
        ],
        is_deleted_by_user=False,
    )
    for kind in ItemKind:
        items = []
        for raw in getattr(data, kind.collection):
            item = ops.with_local_id(ops.validate_item(kind, raw))
            item.setdefault(ops.MEMBERSHIP_COUNT, 0)
            items.append(item)
        setattr(box, kind.collection, items)

    session.add(box)
    session.flush()

    if ops.push_dashboard_box(session, data.creator_id, box.id) is None:
        logger.warning(
            f"Box {box.id} created for unknown user {data.creator_id}; "
            "it is not on any dashboard"
        )
    else:
        logger.info(f"Created box {box.id} for user {data.creator_id}")
    return box


def soft_delete_box(
    session: Session, box_id: str, *, folder_id: Optional[str] = None
) -> Optional[Folder | User]:
    """
    Flag a box as deleted by its user and detach it from where it is shown.

    When ``folder_id`` is given the box is pulled from that folder; otherwise
    it is pulled from the creator's dashboard. Returns the detaching document,
    or None when the box does not exist.
    """
    box = ops.lock_row(session, Box, box_id)
    if box is None:
        return None

    box.is_deleted_by_user = True
    session.flush()

    if folder_id is not None:
        folder = ops.pull_folder_box(session, folder_id, box_id)
        if folder is None:
            logger.warning(f"Deleted box {box_id} but folder {folder_id} is gone")
        return folder

    if box.creator_id is None:
        return None
    ops.pull_dashboard_box(session, box.creator_id, box_id)
    return ops.get_user_by_id(session, box.creator_id)


# =============================================================================
# FOLDERS
# =============================================================================


def create_folder(session: Session, initial_data: dict[str, Any]) -> Folder:
    """Create a folder and append it to its owner's dashboard folders."""
    data = ops.validate_payload(FolderCreate, initial_data)
    folder = Folder(
        id=generate_folder_id(),
        name=data.name,
        is_public=data.is_public,
        description=data.description,
        creator_id=data.creator_id,
        boxes=[b.model_dump(by_alias=True) for b in data.boxes],
    )
    session.add(folder)
    session.flush()

    owner = ops.lock_row(session, User, data.creator_id)
    if owner is None:
        logger.warning(f"Folder {folder.id} created for unknown user {data.creator_id}")
        return folder
    ops.set_field(
        owner, "dashboard_folders", [*(owner.dashboard_folders or []), folder.id]
    )
    session.flush()
    return folder


def delete_folder(session: Session, folder_id: str) -> Optional[User]:
    """
    Delete a folder and return its boxes to the owner's dashboard.

    Folders are removed outright, unlike boxes. Returns the updated owner.
    """
    folder = ops.get_folder_by_id(session, folder_id)
    if folder is None:
        return None

    creator_id = folder.creator_id
    box_ids = [entry.get("boxId") for entry in folder.boxes or []]
    session.delete(folder)
    session.flush()

    owner = ops.lock_row(session, User, creator_id) if creator_id else None
    if owner is None:
        logger.warning(f"Deleted folder {folder_id} with no owner to return boxes to")
        return None
    ops.set_field(
        owner,
        "dashboard_folders",
        [f for f in owner.dashboard_folders or [] if f != folder_id],
    )
    ops.set_field(owner, "dashboard_boxes", [*(owner.dashboard_boxes or []), *box_ids])
    session.flush()
    return owner


def attach_box_to_folder(
    session: Session, folder_id: str, box_id: str, box_name: str
) -> Optional[Folder]:
    """Add a box to a folder and take it off the owner's dashboard."""
    folder = ops.push_folder_box(session, folder_id, box_id, box_name)
    if folder is None:
        return None
    if folder.creator_id:
        ops.pull_dashboard_box(session, folder.creator_id, box_id)
    return folder


def detach_box_from_folder(
    session: Session, folder_id: str, box_id: str
) -> Optional[Folder]:
    """Remove a box from a folder and put it back on the owner's dashboard."""
    folder = ops.pull_folder_box(session, folder_id, box_id)
    if folder is None:
        return None
    if folder.creator_id:
        ops.push_dashboard_box(session, folder.creator_id, box_id)
    return folder


def move_box_between_folders(
    session: Session,
    source_id: str,
    target_id: str,
    box_id: str,
    box_name: str,
) -> tuple[Optional[Folder], Optional[Folder]]:
    """Pull a box from one folder and push it onto another."""
    source = ops.pull_folder_box(session, source_id, box_id)
    target = ops.push_folder_box(session, target_id, box_id, box_name)
    return source, target
