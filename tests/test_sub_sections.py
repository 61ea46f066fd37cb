"""
Sub-section index: membership counters, copies and the delete cascade.
"""

import pytest

from musicbox.services.box.database import operations as ops
from musicbox.services.box.utils import ErrorCode, ItemKind, MusicBoxError


def track(catalog_id: str) -> dict:
    return {"id": catalog_id, "name": f"Track {catalog_id}", "type": "track"}


def playlist(catalog_id: str) -> dict:
    return {"id": catalog_id, "name": f"Playlist {catalog_id}", "type": "playlist"}


def item_by_catalog_id(box, kind: ItemKind, catalog_id: str) -> dict:
    return next(i for i in box.items(kind) if i["id"] == catalog_id)


@pytest.fixture
def tracks_box(session, box):
    for catalog_id in ("t1", "t2", "t3"):
        ops.add_item(session, box.id, ItemKind.TRACK, track(catalog_id))
    ops.create_sub_section(session, box.id, type="tracks", name="Favourites")
    return ops.get_box_by_id(session, box.id)


def sub_section_id(box) -> str:
    return box.sub_sections[0]["localId"]


def test_create_sub_section_normalizes_type(session, box):
    sub_sections = ops.create_sub_section(session, box.id, type="album", name="Live")

    assert sub_sections[0]["type"] == "albums"
    assert sub_sections[0]["items"] == []
    assert sub_sections[0]["localId"]


def test_create_sub_section_rejects_unknown_type(session, box):
    with pytest.raises(MusicBoxError) as exc_info:
        ops.create_sub_section(session, box.id, type="podcasts", name="Talk")

    assert exc_info.value.code == ErrorCode.VALIDATION_ERROR


def test_add_to_sub_section_increments_counter_and_copies(session, tracks_box):
    item = item_by_catalog_id(tracks_box, ItemKind.TRACK, "t1")

    box = ops.add_item_to_sub_section(
        session,
        tracks_box.id,
        ItemKind.TRACK,
        item["localId"],
        sub_section_id(tracks_box),
        track("t1"),
    )

    assert item_by_catalog_id(box, ItemKind.TRACK, "t1")["subSectionCount"] == 1
    entries = box.sub_sections[0]["items"]
    assert [e["id"] for e in entries] == ["t1"]
    assert entries[0]["localId"] != item["localId"]


def test_counter_returns_to_start_after_add_and_remove(session, tracks_box):
    item = item_by_catalog_id(tracks_box, ItemKind.TRACK, "t2")
    sub_id = sub_section_id(tracks_box)

    ops.add_item_to_sub_section(
        session, tracks_box.id, ItemKind.TRACK, item["localId"], sub_id, track("t2")
    )
    box = ops.remove_item_from_sub_section(
        session, tracks_box.id, ItemKind.TRACK, item["localId"], sub_id, "t2"
    )

    assert item_by_catalog_id(box, ItemKind.TRACK, "t2")["subSectionCount"] == 0
    assert box.sub_sections[0]["items"] == []


def test_counter_goes_negative_without_matching_add(session, tracks_box):
    item = item_by_catalog_id(tracks_box, ItemKind.TRACK, "t3")
    sub_id = sub_section_id(tracks_box)

    for _ in range(2):
        box = ops.remove_item_from_sub_section(
            session, tracks_box.id, ItemKind.TRACK, item["localId"], sub_id, "t3"
        )

    assert item_by_catalog_id(box, ItemKind.TRACK, "t3")["subSectionCount"] == -2


def test_missing_counter_is_treated_as_zero(session, box):
    ops.replace_items(session, box.id, ItemKind.TRACK, [track("t9")])
    ops.create_sub_section(session, box.id, type="tracks", name="Later")
    current = ops.get_box_by_id(session, box.id)
    item = current.tracks[0]
    assert "subSectionCount" not in item

    updated = ops.add_item_to_sub_section(
        session,
        box.id,
        ItemKind.TRACK,
        item["localId"],
        sub_section_id(current),
        track("t9"),
    )

    assert updated.tracks[0]["subSectionCount"] == 1


def test_copy_appended_even_when_counter_matches_nothing(session, tracks_box):
    box = ops.add_item_to_sub_section(
        session,
        tracks_box.id,
        ItemKind.TRACK,
        "no-such-item",
        sub_section_id(tracks_box),
        track("t1"),
    )

    assert len(box.sub_sections[0]["items"]) == 1
    assert all(t["subSectionCount"] == 0 for t in box.tracks)


def test_playlist_copies_are_removed_by_local_id(session, box):
    ops.add_item(session, box.id, ItemKind.PLAYLIST, playlist("p1"))
    ops.create_sub_section(session, box.id, type="playlists", name="Moods")
    current = ops.get_box_by_id(session, box.id)
    item = current.playlists[0]
    sub_id = sub_section_id(current)

    box_after_add = ops.add_item_to_sub_section(
        session, box.id, ItemKind.PLAYLIST, item["localId"], sub_id, playlist("p1")
    )
    copy_local_id = box_after_add.sub_sections[0]["items"][0]["localId"]

    unchanged = ops.remove_item_from_sub_section(
        session, box.id, ItemKind.PLAYLIST, item["localId"], sub_id, "p1"
    )
    assert len(unchanged.sub_sections[0]["items"]) == 1

    removed = ops.remove_item_from_sub_section(
        session, box.id, ItemKind.PLAYLIST, item["localId"], sub_id, copy_local_id
    )
    assert removed.sub_sections[0]["items"] == []


def test_delete_sub_section_clears_back_pointers_in_affected_kind(session, box):
    ops.create_sub_section(session, box.id, type="tracks", name="Doomed")
    sub_id = sub_section_id(ops.get_box_by_id(session, box.id))
    tracks = [{**track(f"t{n}"), "subSection": sub_id} for n in range(3)]
    ops.replace_items(session, box.id, ItemKind.TRACK, tracks)
    ops.replace_items(
        session, box.id, ItemKind.ALBUM, [{"id": "al1", "subSection": sub_id}]
    )

    result = ops.delete_sub_section(session, box.id, sub_id, ItemKind.TRACK)

    assert result.sub_sections == []
    assert all("subSection" not in t for t in result.tracks)
    assert len(result.tracks) == 3
    # Other kinds keep stale pointers
    assert result.albums[0]["subSection"] == sub_id


def test_delete_sub_section_on_missing_box_is_noop(session):
    assert ops.delete_sub_section(session, "a" * 24, "sub", ItemKind.TRACK) is None


def test_rename_sub_section(session, tracks_box):
    sub_sections = ops.rename_sub_section(
        session, tracks_box.id, sub_section_id(tracks_box), "Best of"
    )

    assert sub_sections[0]["name"] == "Best of"


def test_reorder_sub_section_items(session, tracks_box):
    sub_id = sub_section_id(tracks_box)
    for item in tracks_box.tracks:
        ops.add_item_to_sub_section(
            session, tracks_box.id, ItemKind.TRACK, item["localId"], sub_id, track(item["id"])
        )

    sub_sections = ops.reorder_sub_section_items(session, tracks_box.id, sub_id, 2, 0)

    assert [e["id"] for e in sub_sections[0]["items"]] == ["t3", "t1", "t2"]


def test_reorder_missing_sub_section_raises(session, tracks_box):
    with pytest.raises(MusicBoxError) as exc_info:
        ops.reorder_sub_section_items(session, tracks_box.id, "missing", 0, 0)

    assert exc_info.value.code == ErrorCode.SUB_SECTION_NOT_FOUND
    assert exc_info.value.status_code == 404


def test_replace_sub_sections_assigns_missing_local_ids(session, box):
    sub_sections = ops.replace_sub_sections(
        session,
        box.id,
        [{"type": "artists", "name": "One"}, {"localId": "keep", "type": "albums", "name": "Two"}],
    )

    assert sub_sections[0]["localId"]
    assert sub_sections[1]["localId"] == "keep"
