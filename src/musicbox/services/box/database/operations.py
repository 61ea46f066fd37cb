"""
Box Database Operations - single-document operations on boxes, folders and users.

Session is passed to all functions (no global session).

Each write loads one row, mutates the affected JSON field(s) in memory and
flushes once; that row update is the only atomic primitive. Mutations that
the persistence layer would express as push/pull/increment load the row
``FOR UPDATE``. Reorders read without a lock and write the whole array back,
so a concurrent write to the same collection between the read and the write
is lost (last writer wins).

Lookups that miss degrade to a no-op and return ``None`` unless the operation
performs an explicit existence check (reorders), which raises.
"""

import copy
import json
import logging
from typing import Any, Optional, Sequence, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import false, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from .schema import Box, Folder, User
from .pydantic_schemas import (
    ITEM_MODELS,
    BoxCreate,
    FolderBoxEntry,
    NoteSchema,
    SectionSorting,
    SectionVisibility,
    SubSectionSchema,
    UserCreate,
)
from ..utils.enums import ItemKind
from ..utils.errors import (
    box_not_found_error,
    sub_section_not_found_error,
    duplicate_item_error,
    validation_error,
)
from ..utils.ids import generate_local_id, generate_user_id

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

LOCAL_ID = "localId"
CATALOG_ID = "id"
MEMBERSHIP_COUNT = "subSectionCount"
SUB_SECTION_REF = "subSection"


# =============================================================================
# HELPERS
# =============================================================================


def validate_payload(model: type[M], payload: Any) -> M:
    """Validate a payload against a pydantic model, raising ``validation_error``."""
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise validation_error(
            f"Invalid {model.__name__} payload",
            errors=json.loads(e.json(include_url=False)),
        ) from e


def validate_item(kind: ItemKind, payload: Any) -> dict[str, Any]:
    """Validate a catalog payload for ``kind`` and return it as a plain dict."""
    item = validate_payload(ITEM_MODELS[kind], payload)
    return item.model_dump(by_alias=True, exclude_unset=True)


def with_local_id(document: dict[str, Any]) -> dict[str, Any]:
    if not document.get(LOCAL_ID):
        document[LOCAL_ID] = generate_local_id()
    return document


def set_field(document: Any, field: str, value: Any) -> None:
    """Assign a JSON column and mark it dirty (JSON columns do not track mutation)."""
    setattr(document, field, value)
    flag_modified(document, field)


def lock_row(session: Session, model: type, document_id: str):
    """Load one document row for update, refreshing any identity-map copy."""
    stmt = (
        select(model)
        .where(model.id == document_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return session.execute(stmt).scalars().first()


def splice(sequence: list, source_index: int, destination_index: int) -> list:
    """
    Move the element at ``source_index`` to ``destination_index``.

    Both indices must address an existing element; anything else is rejected
    rather than left to list slicing semantics.
    """
    length = len(sequence)
    if not 0 <= source_index < length or not 0 <= destination_index < length:
        raise validation_error(
            "Index out of range",
            errors=[
                {
                    "sourceIndex": source_index,
                    "destinationIndex": destination_index,
                    "length": length,
                }
            ],
        )
    result = list(sequence)
    target = result.pop(source_index)
    result.insert(destination_index, target)
    return result


def order_by_ids(documents: Sequence[Any], ids: Sequence[str]) -> list:
    """Return ``documents`` in the order of ``ids``; ids without a document are dropped."""
    lookup = {doc.id: doc for doc in documents}
    return [lookup[doc_id] for doc_id in ids if doc_id in lookup]


def _find_sub_section(sub_sections: list, sub_section_id: str) -> Optional[dict]:
    return next(
        (s for s in sub_sections if s.get(LOCAL_ID) == sub_section_id), None
    )


# =============================================================================
# SOFT-DELETE FILTER
# =============================================================================


def active_box_clause():
    """
    Visibility clause for standard box reads.

    A box is visible when ``is_deleted_by_user`` is false or was never set.
    Every read path that lists boxes uses this clause.
    """
    return or_(Box.is_deleted_by_user == false(), Box.is_deleted_by_user.is_(None))


# =============================================================================
# BOX READS
# =============================================================================


def get_box_by_id(session: Session, box_id: str) -> Optional[Box]:
    """Get a box by ID regardless of its deleted flag (used by writes)."""
    return session.execute(select(Box).where(Box.id == box_id)).scalars().first()


def get_active_box(session: Session, box_id: str) -> Optional[Box]:
    """Get a box by ID unless the user deleted it."""
    stmt = select(Box).where(Box.id == box_id, active_box_clause())
    return session.execute(stmt).scalars().first()


def list_boxes_by_creator(session: Session, user_id: str) -> list[Box]:
    """List a user's boxes, hiding boxes the user deleted."""
    stmt = select(Box).where(Box.creator_id == user_id, active_box_clause())
    return list(session.execute(stmt).scalars().all())


def get_boxes_by_ids(session: Session, box_ids: Sequence[str]) -> list[Box]:
    """
    Fetch many boxes in one query and return them in the order of ``box_ids``.

    The ``IN`` query does not preserve order, so rows are re-sorted through a
    lookup; ids with no row are silently dropped. The soft-delete filter is
    not applied here.
    """
    if not box_ids:
        return []
    rows = session.execute(select(Box).where(Box.id.in_(list(box_ids)))).scalars().all()
    return order_by_ids(rows, box_ids)


# =============================================================================
# ITEM COLLECTION OPERATIONS
# =============================================================================


def add_item(
    session: Session, box_id: str, kind: ItemKind, item: dict[str, Any]
) -> Optional[list]:
    """
    Append a catalog item to a box collection.

    Raises ``duplicate_item`` when the catalog id is already in the collection.
    The check is a plain read before the locked write, so two concurrent adds
    of the same item can both pass it.
    """
    new_item = validate_item(kind, item)

    box = get_box_by_id(session, box_id)
    if box is None:
        return None
    if any(existing.get(CATALOG_ID) == new_item[CATALOG_ID] for existing in box.items(kind)):
        raise duplicate_item_error(kind.value, new_item[CATALOG_ID])

    box = lock_row(session, Box, box_id)
    if box is None:
        return None
    new_item[LOCAL_ID] = generate_local_id()
    new_item[MEMBERSHIP_COUNT] = 0
    items = copy.deepcopy(box.items(kind))
    items.append(new_item)
    set_field(box, kind.collection, items)
    session.flush()
    return box.items(kind)


def replace_items(
    session: Session, box_id: str, kind: ItemKind, new_items: list[dict[str, Any]]
) -> Optional[list]:
    """Overwrite a collection wholesale (client-side reconciliation, no duplicate check)."""
    items = [with_local_id(validate_item(kind, item)) for item in new_items]
    box = lock_row(session, Box, box_id)
    if box is None:
        return None
    set_field(box, kind.collection, items)
    session.flush()
    return box.items(kind)


def update_item(
    session: Session,
    box_id: str,
    kind: ItemKind,
    item_id: str,
    payload: dict[str, Any],
) -> Optional[Box]:
    """Replace one item's payload in place, keeping its position and local id."""
    replacement = validate_item(kind, payload)
    box = lock_row(session, Box, box_id)
    if box is None:
        return None

    items = copy.deepcopy(box.items(kind))
    for position, existing in enumerate(items):
        if existing.get(LOCAL_ID) == item_id:
            replacement[LOCAL_ID] = item_id
            items[position] = replacement
            set_field(box, kind.collection, items)
            session.flush()
            break
    return box


def reorder_items(
    session: Session,
    box_id: str,
    kind: ItemKind,
    source_index: int,
    destination_index: int,
) -> Box:
    """Move one item inside its collection and write the whole array back."""
    box = get_box_by_id(session, box_id)
    if box is None:
        raise box_not_found_error(box_id)

    items = splice(box.items(kind), source_index, destination_index)
    set_field(box, kind.collection, items)
    session.flush()
    return box


def remove_item(
    session: Session, box_id: str, kind: ItemKind, item_id: str
) -> Optional[list]:
    """Remove an item by local id; a missing item leaves the box unchanged."""
    box = lock_row(session, Box, box_id)
    if box is None:
        return None

    items = box.items(kind)
    remaining = [item for item in items if item.get(LOCAL_ID) != item_id]
    if len(remaining) != len(items):
        set_field(box, kind.collection, remaining)
        session.flush()
    return box.items(kind)


# =============================================================================
# SUB-SECTION OPERATIONS
# =============================================================================


def create_sub_section(
    session: Session, box_id: str, *, type: str, name: str, index: int = 0
) -> Optional[list]:
    """Append an empty sub-section grouping items of one kind."""
    try:
        kind = ItemKind.from_collection(type)
    except ValueError as e:
        raise validation_error(str(e)) from e

    box = lock_row(session, Box, box_id)
    if box is None:
        return None

    sub_sections = copy.deepcopy(box.sub_sections or [])
    sub_sections.append(
        {
            LOCAL_ID: generate_local_id(),
            "type": kind.collection,
            "name": name,
            "index": index,
            "items": [],
        }
    )
    set_field(box, "sub_sections", sub_sections)
    session.flush()
    return box.sub_sections


def rename_sub_section(
    session: Session, box_id: str, sub_section_id: str, name: str
) -> Optional[list]:
    box = lock_row(session, Box, box_id)
    if box is None:
        return None

    sub_sections = copy.deepcopy(box.sub_sections or [])
    target = _find_sub_section(sub_sections, sub_section_id)
    if target is not None:
        target["name"] = name
        set_field(box, "sub_sections", sub_sections)
        session.flush()
    return box.sub_sections


def replace_sub_sections(
    session: Session, box_id: str, new_sub_sections: list[dict[str, Any]]
) -> Optional[list]:
    """Overwrite the sub-section list (client-driven restructuring)."""
    sub_sections = [
        with_local_id(validate_payload(SubSectionSchema, s).model_dump(by_alias=True))
        for s in new_sub_sections
    ]
    box = lock_row(session, Box, box_id)
    if box is None:
        return None
    set_field(box, "sub_sections", sub_sections)
    session.flush()
    return box.sub_sections


def reorder_sub_section_items(
    session: Session,
    box_id: str,
    sub_section_id: str,
    source_index: int,
    destination_index: int,
) -> list:
    """Move one entry inside a sub-section and write the sub-section list back."""
    box = get_box_by_id(session, box_id)
    if box is None:
        raise box_not_found_error(box_id)

    sub_sections = copy.deepcopy(box.sub_sections or [])
    target = _find_sub_section(sub_sections, sub_section_id)
    if target is None:
        raise sub_section_not_found_error(box_id, sub_section_id)

    target["items"] = splice(target.get("items") or [], source_index, destination_index)
    set_field(box, "sub_sections", sub_sections)
    session.flush()
    return box.sub_sections


def add_item_to_sub_section(
    session: Session,
    box_id: str,
    kind: ItemKind,
    item_id: str,
    sub_section_id: str,
    item_data: dict[str, Any],
) -> Optional[Box]:
    """
    Copy an item into a sub-section.

    Increments the membership counter on the collection item, then appends a
    copy with its own local id to the sub-section. Both steps are applied to
    the locked row in one flush. A counter step that matches no item does not
    stop the copy from being appended.
    """
    entry = validate_item(kind, item_data)
    box = lock_row(session, Box, box_id)
    if box is None:
        return None

    items = copy.deepcopy(box.items(kind))
    for item in items:
        if item.get(LOCAL_ID) == item_id:
            item[MEMBERSHIP_COUNT] = (item.get(MEMBERSHIP_COUNT) or 0) + 1
    set_field(box, kind.collection, items)

    sub_sections = copy.deepcopy(box.sub_sections or [])
    target = _find_sub_section(sub_sections, sub_section_id)
    if target is not None:
        entry[LOCAL_ID] = generate_local_id()
        target.setdefault("items", []).append(entry)
        set_field(box, "sub_sections", sub_sections)

    session.flush()
    return box


def remove_item_from_sub_section(
    session: Session,
    box_id: str,
    kind: ItemKind,
    item_id: str,
    sub_section_id: str,
    removal_key: str,
) -> Optional[Box]:
    """
    Remove an item's copy from a sub-section.

    Decrements the membership counter without clamping at zero, then pulls
    every entry whose ``kind.removal_field`` equals ``removal_key``.
    """
    box = lock_row(session, Box, box_id)
    if box is None:
        return None

    items = copy.deepcopy(box.items(kind))
    for item in items:
        if item.get(LOCAL_ID) == item_id:
            item[MEMBERSHIP_COUNT] = (item.get(MEMBERSHIP_COUNT) or 0) - 1
    set_field(box, kind.collection, items)

    sub_sections = copy.deepcopy(box.sub_sections or [])
    target = _find_sub_section(sub_sections, sub_section_id)
    if target is not None:
        target["items"] = [
            entry
            for entry in target.get("items") or []
            if entry.get(kind.removal_field) != removal_key
        ]
        set_field(box, "sub_sections", sub_sections)

    session.flush()
    return box


def delete_sub_section(
    session: Session, box_id: str, sub_section_id: str, affected_kind: ItemKind
) -> Optional[Box]:
    """
    Delete a sub-section and clear back-pointers in one collection.

    Only items of ``affected_kind`` are scanned; items of other kinds that
    point at the deleted sub-section keep the stale pointer. Membership
    counters are not decremented.
    """
    box = lock_row(session, Box, box_id)
    if box is None:
        return None

    sub_sections = [
        s for s in box.sub_sections or [] if s.get(LOCAL_ID) != sub_section_id
    ]
    set_field(box, "sub_sections", sub_sections)

    items = copy.deepcopy(box.items(affected_kind))
    cleared = 0
    for item in items:
        if item.get(SUB_SECTION_REF) == sub_section_id:
            del item[SUB_SECTION_REF]
            cleared += 1
    if cleared:
        set_field(box, affected_kind.collection, items)

    session.flush()
    logger.debug(
        f"Deleted sub-section {sub_section_id} from box {box_id}, "
        f"cleared {cleared} {affected_kind.collection} back-pointers"
    )
    return box


# =============================================================================
# BOX SETTINGS, INFO & NOTES
# =============================================================================


def replace_box(
    session: Session, box_id: str, document: dict[str, Any]
) -> Optional[Box]:
    """
    Replace a box document wholesale.

    The id and the deleted flag are kept; everything else comes from
    ``document``.
    """
    data = validate_payload(BoxCreate, document)
    collections = {
        kind: [with_local_id(validate_item(kind, i)) for i in getattr(data, kind.collection)]
        for kind in ItemKind
    }
    box = lock_row(session, Box, box_id)
    if box is None:
        return None

    box.name = data.name
    box.is_public = data.is_public
    box.description = data.description
    box.creator_id = data.creator_id
    for kind, items in collections.items():
        set_field(box, kind.collection, items)
    set_field(box, "section_sorting", data.section_sorting.model_dump(by_alias=True))
    set_field(
        box, "section_visibility", data.section_visibility.model_dump(by_alias=True)
    )
    set_field(
        box,
        "sub_sections",
        [with_local_id(s.model_dump(by_alias=True)) for s in data.sub_sections],
    )
    set_field(
        box,
        "notes",
        [with_local_id(n.model_dump(by_alias=True, exclude_none=True)) for n in data.notes],
    )
    session.flush()
    return box


def update_section_sorting(
    session: Session, box_id: str, sorting: dict[str, Any]
) -> Optional[dict]:
    value = validate_payload(SectionSorting, sorting).model_dump(by_alias=True)
    box = lock_row(session, Box, box_id)
    if box is None:
        return None
    set_field(box, "section_sorting", value)
    session.flush()
    return box.section_sorting


def update_section_visibility(
    session: Session, box_id: str, visibility: dict[str, Any]
) -> Optional[dict]:
    value = validate_payload(SectionVisibility, visibility).model_dump(by_alias=True)
    box = lock_row(session, Box, box_id)
    if box is None:
        return None
    set_field(box, "section_visibility", value)
    session.flush()
    return box.section_visibility


def update_box_info(
    session: Session,
    box_id: str,
    *,
    name: str,
    is_public: bool,
    description: str,
) -> Optional[Box]:
    box = lock_row(session, Box, box_id)
    if box is None:
        return None
    box.name = name
    box.is_public = is_public
    box.description = description
    session.flush()
    return box


def add_note(session: Session, box_id: str, note: dict[str, Any]) -> Optional[list]:
    """Append a note and return the box's notes."""
    value = validate_payload(NoteSchema, note).model_dump(by_alias=True, exclude_none=True)
    value[LOCAL_ID] = generate_local_id()

    box = lock_row(session, Box, box_id)
    if box is None:
        return None
    notes = copy.deepcopy(box.notes or [])
    notes.append(value)
    set_field(box, "notes", notes)
    session.flush()
    return box.notes


def update_note(
    session: Session, box_id: str, note_id: str, note_text: str
) -> Optional[list]:
    box = lock_row(session, Box, box_id)
    if box is None:
        return None

    notes = copy.deepcopy(box.notes or [])
    for note in notes:
        if note.get(LOCAL_ID) == note_id:
            note["noteText"] = note_text
            set_field(box, "notes", notes)
            session.flush()
            break
    return box.notes


# =============================================================================
# USER OPERATIONS
# =============================================================================


def get_user_by_id(session: Session, user_id: str) -> Optional[User]:
    return session.execute(select(User).where(User.id == user_id)).scalars().first()


def get_user_by_subject(session: Session, subject: str) -> Optional[User]:
    """Get the user linked to an identity-provider subject id."""
    stmt = select(User).where(User.identity_subject == subject)
    return session.execute(stmt).scalars().first()


def username_exists(session: Session, username: str) -> bool:
    stmt = select(User.id).where(User.username == username).limit(1)
    return session.execute(stmt).first() is not None


def create_user(session: Session, data: dict[str, Any]) -> User:
    values = validate_payload(UserCreate, data)
    user = User(
        id=generate_user_id(),
        display_name=values.display_name,
        username=values.username,
        email=values.email,
        image=values.image,
        identity_subject=values.identity_subject,
        services=values.services,
        account={"emailVerified": False},
        dashboard_boxes=[],
        dashboard_folders=[],
    )
    session.add(user)
    session.flush()
    return user


def verify_user_email(session: Session, user_id: str) -> Optional[User]:
    user = lock_row(session, User, user_id)
    if user is None:
        return None
    set_field(user, "account", {**(user.account or {}), "emailVerified": True})
    session.flush()
    return user


def link_user_service(
    session: Session, user_id: str, service: str, service_data: dict[str, Any]
) -> Optional[User]:
    """Store the linked account data for one third-party service."""
    user = lock_row(session, User, user_id)
    if user is None:
        return None
    set_field(user, "services", {**(user.services or {}), service: service_data})
    session.flush()
    return user


def replace_dashboard_boxes(
    session: Session, user_id: str, box_ids: list[str]
) -> Optional[list]:
    user = lock_row(session, User, user_id)
    if user is None:
        return None
    set_field(user, "dashboard_boxes", list(box_ids))
    session.flush()
    return user.dashboard_boxes


def replace_dashboard_folders(
    session: Session, user_id: str, folder_ids: list[str]
) -> Optional[list]:
    user = lock_row(session, User, user_id)
    if user is None:
        return None
    set_field(user, "dashboard_folders", list(folder_ids))
    session.flush()
    return user.dashboard_folders


def push_dashboard_box(session: Session, user_id: str, box_id: str) -> Optional[list]:
    user = lock_row(session, User, user_id)
    if user is None:
        return None
    set_field(user, "dashboard_boxes", [*(user.dashboard_boxes or []), box_id])
    session.flush()
    return user.dashboard_boxes


def pull_dashboard_box(session: Session, user_id: str, box_id: str) -> Optional[list]:
    """Remove every occurrence of ``box_id`` from the user's dashboard."""
    user = lock_row(session, User, user_id)
    if user is None:
        return None
    set_field(
        user,
        "dashboard_boxes",
        [b for b in user.dashboard_boxes or [] if b != box_id],
    )
    session.flush()
    return user.dashboard_boxes


# =============================================================================
# FOLDER OPERATIONS
# =============================================================================


def get_folder_by_id(session: Session, folder_id: str) -> Optional[Folder]:
    return session.execute(select(Folder).where(Folder.id == folder_id)).scalars().first()


def get_folders_by_ids(session: Session, folder_ids: Sequence[str]) -> list[Folder]:
    if not folder_ids:
        return []
    stmt = select(Folder).where(Folder.id.in_(list(folder_ids)))
    return order_by_ids(session.execute(stmt).scalars().all(), folder_ids)


def list_folders_by_creator(session: Session, user_id: str) -> list[Folder]:
    stmt = select(Folder).where(Folder.creator_id == user_id)
    return list(session.execute(stmt).scalars().all())


def push_folder_box(
    session: Session, folder_id: str, box_id: str, box_name: str
) -> Optional[Folder]:
    folder = lock_row(session, Folder, folder_id)
    if folder is None:
        return None
    entry = FolderBoxEntry(box_id=box_id, box_name=box_name).model_dump(by_alias=True)
    set_field(folder, "boxes", [*(folder.boxes or []), entry])
    session.flush()
    return folder


def pull_folder_box(session: Session, folder_id: str, box_id: str) -> Optional[Folder]:
    folder = lock_row(session, Folder, folder_id)
    if folder is None:
        return None
    set_field(
        folder, "boxes", [b for b in folder.boxes or [] if b.get("boxId") != box_id]
    )
    session.flush()
    return folder


def replace_folder_boxes(
    session: Session, folder_id: str, entries: list[dict[str, Any]]
) -> Optional[Folder]:
    boxes = [
        validate_payload(FolderBoxEntry, e).model_dump(by_alias=True) for e in entries
    ]
    folder = lock_row(session, Folder, folder_id)
    if folder is None:
        return None
    set_field(folder, "boxes", boxes)
    session.flush()
    return folder


def rename_folder_box(
    session: Session, folder_id: str, box_id: str, name: str
) -> Optional[Folder]:
    """Rename every entry for ``box_id`` in a folder's box list."""
    folder = lock_row(session, Folder, folder_id)
    if folder is None:
        return None
    boxes = copy.deepcopy(folder.boxes or [])
    for entry in boxes:
        if entry.get("boxId") == box_id:
            entry["boxName"] = name
    set_field(folder, "boxes", boxes)
    session.flush()
    return folder
