"""
Item collection operations against a real SQLite database.
"""

import pytest
from sqlalchemy.orm import Session

from musicbox.services.box.database import operations as ops
from musicbox.services.box.utils import ErrorCode, ItemKind, MusicBoxError


def artist(catalog_id: str) -> dict:
    return {"id": catalog_id, "name": f"Artist {catalog_id}", "type": "artist"}


def catalog_ids(items: list) -> list:
    return [item["id"] for item in items]


@pytest.fixture
def abc_box(session, box):
    for catalog_id in ("A", "B", "C"):
        ops.add_item(session, box.id, ItemKind.ARTIST, artist(catalog_id))
    return box


def test_add_item_assigns_local_id_and_counter(session, box):
    items = ops.add_item(session, box.id, ItemKind.ARTIST, artist("a1"))

    assert len(items) == 1
    assert items[0]["id"] == "a1"
    assert items[0]["localId"]
    assert items[0]["subSectionCount"] == 0


def test_add_duplicate_is_rejected(session, box):
    ops.add_item(session, box.id, ItemKind.ARTIST, artist("a1"))

    with pytest.raises(MusicBoxError) as exc_info:
        ops.add_item(session, box.id, ItemKind.ARTIST, artist("a1"))

    assert exc_info.value.code == ErrorCode.DUPLICATE_ITEM
    assert exc_info.value.status_code == 409
    assert len(ops.get_box_by_id(session, box.id).artists) == 1


def test_same_catalog_id_allowed_in_other_kind(session, box):
    ops.add_item(session, box.id, ItemKind.ARTIST, artist("x1"))
    albums = ops.add_item(session, box.id, ItemKind.ALBUM, {"id": "x1", "name": "Album"})

    assert catalog_ids(albums) == ["x1"]


def test_add_to_missing_box_is_noop(session):
    assert ops.add_item(session, "0" * 24, ItemKind.TRACK, {"id": "t1"}) is None


def test_add_without_catalog_id_is_validation_error(session, box):
    with pytest.raises(MusicBoxError) as exc_info:
        ops.add_item(session, box.id, ItemKind.TRACK, {"name": "no id"})

    assert exc_info.value.code == ErrorCode.VALIDATION_ERROR


def test_add_keeps_unknown_catalog_fields(session, box):
    payload = {"id": "t1", "name": "Song", "duration_ms": 1000, "disc_number": 2}
    items = ops.add_item(session, box.id, ItemKind.TRACK, payload)

    assert items[0]["disc_number"] == 2
    assert items[0]["duration_ms"] == 1000


def test_reorder_moves_first_to_last(session, abc_box):
    box = ops.reorder_items(session, abc_box.id, ItemKind.ARTIST, 0, 2)

    assert catalog_ids(box.artists) == ["B", "C", "A"]


@pytest.mark.parametrize(
    "source, destination, expected",
    [
        (2, 0, ["C", "A", "B"]),
        (1, 1, ["A", "B", "C"]),
        (0, 1, ["B", "A", "C"]),
        (2, 1, ["A", "C", "B"]),
    ],
)
def test_reorder_is_remove_then_insert(session, abc_box, source, destination, expected):
    box = ops.reorder_items(session, abc_box.id, ItemKind.ARTIST, source, destination)

    assert catalog_ids(box.artists) == expected


@pytest.mark.parametrize("source, destination", [(3, 0), (0, 3), (-1, 0), (0, -1)])
def test_reorder_out_of_range_leaves_box_untouched(session, abc_box, source, destination):
    with pytest.raises(MusicBoxError) as exc_info:
        ops.reorder_items(session, abc_box.id, ItemKind.ARTIST, source, destination)

    assert exc_info.value.code == ErrorCode.VALIDATION_ERROR
    session.expire_all()
    assert catalog_ids(ops.get_box_by_id(session, abc_box.id).artists) == ["A", "B", "C"]


def test_reorder_missing_box_raises_not_found(session):
    with pytest.raises(MusicBoxError) as exc_info:
        ops.reorder_items(session, "f" * 24, ItemKind.ARTIST, 0, 1)

    assert exc_info.value.code == ErrorCode.BOX_NOT_FOUND
    assert exc_info.value.message == "Box not found."


def test_update_item_preserves_position_and_local_id(session, abc_box):
    target = ops.get_box_by_id(session, abc_box.id).artists[1]

    box = ops.update_item(
        session,
        abc_box.id,
        ItemKind.ARTIST,
        target["localId"],
        {"id": "B", "name": "Renamed", "genres": ["jazz"]},
    )

    assert catalog_ids(box.artists) == ["A", "B", "C"]
    assert box.artists[1]["name"] == "Renamed"
    assert box.artists[1]["genres"] == ["jazz"]
    assert box.artists[1]["localId"] == target["localId"]


def test_update_unknown_item_changes_nothing(session, abc_box):
    before = ops.get_box_by_id(session, abc_box.id).artists

    box = ops.update_item(session, abc_box.id, ItemKind.ARTIST, "missing", artist("Z"))

    assert box.artists == before


def test_remove_item_by_local_id(session, abc_box):
    local_id = ops.get_box_by_id(session, abc_box.id).artists[0]["localId"]

    items = ops.remove_item(session, abc_box.id, ItemKind.ARTIST, local_id)

    assert catalog_ids(items) == ["B", "C"]


def test_remove_unknown_item_is_noop(session, abc_box):
    items = ops.remove_item(session, abc_box.id, ItemKind.ARTIST, "missing")

    assert catalog_ids(items) == ["A", "B", "C"]


def test_replace_items_skips_duplicate_check(session, abc_box):
    items = ops.replace_items(
        session, abc_box.id, ItemKind.ARTIST, [artist("Q"), artist("Q")]
    )

    assert catalog_ids(items) == ["Q", "Q"]
    assert all(item["localId"] for item in items)
    assert items[0]["localId"] != items[1]["localId"]


def test_replace_items_keeps_client_local_ids(session, abc_box):
    current = ops.get_box_by_id(session, abc_box.id).artists
    reversed_items = list(reversed(current))

    items = ops.replace_items(session, abc_box.id, ItemKind.ARTIST, reversed_items)

    assert [i["localId"] for i in items] == [i["localId"] for i in reversed_items]


def test_changes_survive_commit(session, engine, box):
    ops.add_item(session, box.id, ItemKind.PLAYLIST, {"id": "p1", "name": "Mix"})
    session.commit()

    with Session(engine) as other:
        stored = ops.get_box_by_id(other, box.id)
        assert catalog_ids(stored.playlists) == ["p1"]
