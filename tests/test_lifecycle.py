"""
Box and folder lifecycle: dashboards, soft delete, folders and multi-fetch.
"""

import logging

import pytest
from sqlalchemy import update

from musicbox.services.box.database import lifecycle
from musicbox.services.box.database import operations as ops
from musicbox.services.box.database.schema import Box
from musicbox.services.box.database.typed_operations import BoxOperations
from musicbox.services.box.utils import ErrorCode, ItemKind, MusicBoxError


def make_box(session, user, name: str) -> Box:
    return lifecycle.create_box(session, {"name": name, "creatorId": user.id})


def make_folder(session, user, name: str = "Folder"):
    return lifecycle.create_folder(session, {"name": name, "creatorId": user.id})


def test_create_box_appends_to_dashboard(session, user):
    first = make_box(session, user, "One")
    second = make_box(session, user, "Two")

    assert ops.get_user_by_id(session, user.id).dashboard_boxes == [first.id, second.id]
    assert first.to_dashboard_dict() == {"boxId": first.id, "boxName": "One"}
    assert len(first.id) == 24


def test_create_box_defaults(session, user):
    box = make_box(session, user, "Defaults")

    assert box.section_visibility == {
        "artists": True,
        "albums": True,
        "tracks": True,
        "playlists": True,
    }
    assert box.section_sorting["tracks"]["primarySorting"] == "custom"
    assert box.is_deleted_by_user is False
    assert box.artists == []


def test_create_box_for_unknown_owner_leaves_orphan(session, caplog):
    with caplog.at_level(logging.WARNING):
        box = lifecycle.create_box(session, {"name": "Orphan", "creator": "0" * 24})

    assert ops.get_box_by_id(session, box.id) is not None
    assert "not on any dashboard" in caplog.text


def test_soft_delete_without_folder_pulls_from_dashboard(session, user):
    keep = make_box(session, user, "Keep")
    gone = make_box(session, user, "Gone")

    owner = lifecycle.soft_delete_box(session, gone.id)

    assert owner.dashboard_boxes == [keep.id]
    assert ops.get_active_box(session, gone.id) is None
    assert ops.get_box_by_id(session, gone.id).is_deleted_by_user is True


def test_soft_delete_with_folder_leaves_dashboard(session, user):
    folder = make_folder(session, user)
    box = make_box(session, user, "Filed")
    lifecycle.attach_box_to_folder(session, folder.id, box.id, box.name)
    ops.push_dashboard_box(session, user.id, "other")

    result = lifecycle.soft_delete_box(session, box.id, folder_id=folder.id)

    assert result.boxes == []
    assert ops.get_user_by_id(session, user.id).dashboard_boxes == ["other"]


def test_soft_delete_missing_box_is_noop(session):
    assert lifecycle.soft_delete_box(session, "1" * 24) is None


def test_unset_deleted_flag_reads_like_false(session, user):
    legacy = make_box(session, user, "Legacy")
    explicit = make_box(session, user, "Explicit")
    deleted = make_box(session, user, "Deleted")
    session.execute(
        update(Box).where(Box.id == legacy.id).values(is_deleted_by_user=None)
    )
    lifecycle.soft_delete_box(session, deleted.id)
    session.expire_all()

    visible = {b.id for b in ops.list_boxes_by_creator(session, user.id)}

    assert visible == {legacy.id, explicit.id}
    assert ops.get_active_box(session, legacy.id) is not None


def test_fetch_many_preserves_input_order_and_drops_missing(session, user):
    one = make_box(session, user, "One")
    three = make_box(session, user, "Three")

    boxes = ops.get_boxes_by_ids(session, [three.id, "2" * 24, one.id])

    assert [b.id for b in boxes] == [three.id, one.id]
    assert ops.get_boxes_by_ids(session, []) == []


def test_folder_create_and_delete_round_trip_dashboard(session, user):
    folder = make_folder(session, user, "Summer")
    box = make_box(session, user, "Beach")
    lifecycle.attach_box_to_folder(session, folder.id, box.id, box.name)
    owner = ops.get_user_by_id(session, user.id)
    assert owner.dashboard_folders == [folder.id]
    assert owner.dashboard_boxes == []

    owner = lifecycle.delete_folder(session, folder.id)

    assert owner.dashboard_folders == []
    assert owner.dashboard_boxes == [box.id]
    assert ops.get_folder_by_id(session, folder.id) is None


def test_detach_returns_box_to_dashboard(session, user):
    folder = make_folder(session, user)
    box = make_box(session, user, "Back")
    lifecycle.attach_box_to_folder(session, folder.id, box.id, box.name)

    folder = lifecycle.detach_box_from_folder(session, folder.id, box.id)

    assert folder.boxes == []
    assert ops.get_user_by_id(session, user.id).dashboard_boxes == [box.id]


def test_move_box_between_folders(session, user):
    source = make_folder(session, user, "Source")
    target = make_folder(session, user, "Target")
    box = make_box(session, user, "Mover")
    lifecycle.attach_box_to_folder(session, source.id, box.id, box.name)

    source, target = lifecycle.move_box_between_folders(
        session, source.id, target.id, box.id, "Mover"
    )

    assert source.boxes == []
    assert target.boxes == [{"boxId": box.id, "boxName": "Mover"}]


def test_rename_and_replace_folder_boxes(session, user):
    folder = make_folder(session, user)
    ops.replace_folder_boxes(
        session,
        folder.id,
        [{"boxId": "b1", "boxName": "One"}, {"boxId": "b2", "boxName": "Two"}],
    )

    folder = ops.rename_folder_box(session, folder.id, "b2", "Deux")

    assert folder.boxes == [
        {"boxId": "b1", "boxName": "One"},
        {"boxId": "b2", "boxName": "Deux"},
    ]


def test_get_folders_by_ids_keeps_order(session, user):
    first = make_folder(session, user, "First")
    second = make_folder(session, user, "Second")

    folders = ops.get_folders_by_ids(session, [second.id, first.id])

    assert [f.name for f in folders] == ["Second", "First"]


def test_box_info_notes_and_settings(session, box):
    ops.update_box_info(session, box.id, name="Renamed", is_public=False, description="d")
    notes = ops.add_note(session, box.id, {"itemId": "x", "noteText": "first"})
    notes = ops.update_note(session, box.id, notes[0]["localId"], "edited")
    sorting = ops.update_section_sorting(
        session, box.id, {"artists": {"primarySorting": "name", "ascendingOrder": False}}
    )
    visibility = ops.update_section_visibility(session, box.id, {"albums": False})

    stored = ops.get_box_by_id(session, box.id)
    assert (stored.name, stored.is_public, stored.description) == ("Renamed", False, "d")
    assert notes[0]["noteText"] == "edited"
    assert sorting["artists"]["primarySorting"] == "name"
    assert sorting["albums"]["primarySorting"] == "custom"
    assert visibility["albums"] is False
    assert visibility["tracks"] is True


def test_replace_box_keeps_deleted_flag(session, user):
    box = make_box(session, user, "Old")
    lifecycle.soft_delete_box(session, box.id)

    replaced = ops.replace_box(
        session,
        box.id,
        {"name": "New", "creatorId": user.id, "tracks": [{"id": "t1"}]},
    )

    assert replaced.name == "New"
    assert replaced.tracks[0]["id"] == "t1"
    assert replaced.tracks[0]["localId"]
    assert replaced.is_deleted_by_user is True


def test_users_dashboard_and_services(session, user):
    assert ops.username_exists(session, "dana")
    assert not ops.username_exists(session, "nobody")

    assert ops.replace_dashboard_boxes(session, user.id, ["b2", "b1"]) == ["b2", "b1"]
    assert ops.push_dashboard_box(session, user.id, "b3") == ["b2", "b1", "b3"]
    assert ops.pull_dashboard_box(session, user.id, "b2") == ["b1", "b3"]
    assert ops.replace_dashboard_folders(session, user.id, ["f1"]) == ["f1"]

    user = ops.link_user_service(session, user.id, "spotify", {"id": "sp-1"})
    user = ops.verify_user_email(session, user.id)
    assert user.services == {"spotify": {"id": "sp-1"}}
    assert user.account["emailVerified"] is True


def test_typed_operations_wrap_results(session, user):
    typed = BoxOperations(session)

    box = typed.create_box({"name": "Typed", "creatorId": user.id})
    typed.add_item(box.id, ItemKind.ALBUM, {"id": "al1", "name": "Album"})

    fetched = typed.get_box(box.id)
    dumped = fetched.model_dump(by_alias=True)
    assert dumped["albums"][0]["id"] == "al1"
    assert "isDeletedByUser" not in dumped
    assert typed.get_user(user.id).dashboard_boxes[-1] == box.id


def test_replace_box_with_invalid_item_leaves_row_untouched(session, box):
    ops.add_item(session, box.id, ItemKind.TRACK, {"id": "t1"})

    with pytest.raises(MusicBoxError) as exc_info:
        ops.replace_box(
            session,
            box.id,
            {"name": "Clobbered", "creator": box.creator_id, "artists": [{"name": "no id"}]},
        )

    assert exc_info.value.code == ErrorCode.VALIDATION_ERROR
    assert not session.dirty
    stored = ops.get_box_by_id(session, box.id)
    assert stored.name == "Road Trip"
    assert [t["id"] for t in stored.tracks] == ["t1"]
