from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..utils.enums import ItemKind


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# =============================================================================
# CATALOG ITEMS
# =============================================================================


class CatalogItem(BaseModel):
    """
    Catalog payload shared by every item kind.

    Catalog fields keep the upstream's snake_case names and unknown fields are
    kept, since payloads are stored verbatim. The box-local fields use the
    client's camelCase names.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    name: Optional[str] = None
    type: Optional[str] = None
    uri: Optional[str] = None
    external_urls: Optional[dict[str, Any]] = None

    local_id: Optional[str] = Field(default=None, alias="localId")
    sub_section_count: Optional[int] = Field(default=None, alias="subSectionCount")
    sub_section: Optional[str] = Field(default=None, alias="subSection")


class ArtistItem(CatalogItem):
    genres: Optional[list[str]] = None
    images: Optional[list[dict[str, Any]]] = None
    popularity: Optional[int] = None


class AlbumItem(CatalogItem):
    album_type: Optional[str] = None
    artists: Optional[list[dict[str, Any]]] = None
    images: Optional[list[dict[str, Any]]] = None
    release_date: Optional[str] = None
    total_tracks: Optional[int] = None
    tracks: Optional[dict[str, Any]] = None


class TrackItem(CatalogItem):
    album: Optional[dict[str, Any]] = None
    artists: Optional[list[dict[str, Any]]] = None
    duration_ms: Optional[int] = None
    explicit: Optional[bool | str] = None
    popularity: Optional[int] = None
    preview_url: Optional[str] = None
    track_number: Optional[int] = None


class PlaylistItem(CatalogItem):
    description: Optional[str] = None
    images: Optional[list[dict[str, Any]]] = None
    owner: Optional[dict[str, Any]] = None
    tracks: Optional[dict[str, Any]] = None


ITEM_MODELS: dict[ItemKind, type[CatalogItem]] = {
    ItemKind.ARTIST: ArtistItem,
    ItemKind.ALBUM: AlbumItem,
    ItemKind.TRACK: TrackItem,
    ItemKind.PLAYLIST: PlaylistItem,
}


# =============================================================================
# BOX SETTINGS & EMBEDDED DOCUMENTS
# =============================================================================


class SortSpec(CamelModel):
    primary_sorting: str = "custom"
    secondary_sorting: str = "none"
    view: str = "grid"
    ascending_order: bool = True
    display_grouping: bool = False
    display_sub_sections: bool = False


class SectionSorting(CamelModel):
    artists: SortSpec = Field(default_factory=SortSpec)
    albums: SortSpec = Field(default_factory=SortSpec)
    tracks: SortSpec = Field(default_factory=SortSpec)
    playlists: SortSpec = Field(default_factory=SortSpec)


class SectionVisibility(CamelModel):
    artists: bool = True
    albums: bool = True
    tracks: bool = True
    playlists: bool = True


class SubSectionSchema(CamelModel):
    local_id: Optional[str] = None
    type: str
    name: str
    index: int = 0
    items: list[dict[str, Any]] = Field(default_factory=list)


class NoteSchema(CamelModel):
    local_id: Optional[str] = None
    item_id: str
    note_text: str = ""
    sub_section_id: Optional[str] = None


# =============================================================================
# DOCUMENTS
# =============================================================================


class BoxCreate(CamelModel):
    name: str
    is_public: bool = Field(
        default=True, validation_alias=AliasChoices("isPublic", "public", "is_public")
    )
    description: str = ""
    creator_id: str = Field(
        validation_alias=AliasChoices("creatorId", "creator", "creator_id")
    )
    artists: list[dict[str, Any]] = Field(default_factory=list)
    albums: list[dict[str, Any]] = Field(default_factory=list)
    tracks: list[dict[str, Any]] = Field(default_factory=list)
    playlists: list[dict[str, Any]] = Field(default_factory=list)
    section_sorting: SectionSorting = Field(default_factory=SectionSorting)
    section_visibility: SectionVisibility = Field(default_factory=SectionVisibility)
    sub_sections: list[SubSectionSchema] = Field(default_factory=list)
    notes: list[NoteSchema] = Field(default_factory=list)


class BoxSchema(CamelModel):
    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )

    id: str
    name: str
    is_public: bool = True
    description: Optional[str] = None
    creator_id: Optional[str] = None
    artists: list[dict[str, Any]] = Field(default_factory=list)
    albums: list[dict[str, Any]] = Field(default_factory=list)
    tracks: list[dict[str, Any]] = Field(default_factory=list)
    playlists: list[dict[str, Any]] = Field(default_factory=list)
    section_sorting: dict[str, Any] = Field(default_factory=dict)
    section_visibility: dict[str, Any] = Field(default_factory=dict)
    sub_sections: list[dict[str, Any]] = Field(default_factory=list)
    notes: list[dict[str, Any]] = Field(default_factory=list)


class FolderBoxEntry(CamelModel):
    box_id: str
    box_name: str = ""


class FolderCreate(CamelModel):
    name: str
    is_public: bool = Field(
        default=True, validation_alias=AliasChoices("isPublic", "public", "is_public")
    )
    description: str = ""
    creator_id: str = Field(
        validation_alias=AliasChoices("creatorId", "creator", "creator_id")
    )
    boxes: list[FolderBoxEntry] = Field(default_factory=list)


class FolderSchema(CamelModel):
    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )

    id: str
    name: Optional[str] = None
    is_public: bool = True
    description: Optional[str] = None
    creator_id: Optional[str] = None
    boxes: list[dict[str, Any]] = Field(default_factory=list)


class UserCreate(CamelModel):
    display_name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None
    identity_subject: Optional[str] = None
    services: dict[str, Any] = Field(default_factory=dict)


class UserSchema(CamelModel):
    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )

    id: str
    display_name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None
    services: dict[str, Any] = Field(default_factory=dict)
    account: dict[str, Any] = Field(default_factory=dict)
    dashboard_boxes: list[str] = Field(default_factory=list)
    dashboard_folders: list[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None


# =============================================================================
# REQUEST BODIES
# =============================================================================


class ItemPayloadRequest(CamelModel):
    item: dict[str, Any]


class ReplaceItemsRequest(CamelModel):
    updated_items: list[dict[str, Any]]


class ReorderRequest(CamelModel):
    source_index: int
    destination_index: int


class AddToSubSectionRequest(CamelModel):
    sub_section_id: str = Field(
        validation_alias=AliasChoices("subSectionId", "subsectionId", "sub_section_id")
    )
    item_data: dict[str, Any]


class RemoveFromSubSectionRequest(CamelModel):
    sub_section_id: str = Field(
        validation_alias=AliasChoices("subSectionId", "subsectionId", "sub_section_id")
    )
    removal_key: str = Field(
        min_length=1,
        validation_alias=AliasChoices("removalKey", "spotifyId", "removal_key"),
    )


class CreateSubSectionRequest(CamelModel):
    type: str
    name: str
    index: int = 0


class RenameRequest(CamelModel):
    name: str


class SoftDeleteBoxRequest(CamelModel):
    folder_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("folderId", "containingFolderId", "folder_id"),
    )
    containing_folder: bool = False


class BoxInfoRequest(CamelModel):
    name: str
    is_public: bool = Field(
        validation_alias=AliasChoices("isPublic", "publicBool", "is_public")
    )
    description: str = ""


class NoteTextRequest(CamelModel):
    note_text: str


class MoveBoxRequest(CamelModel):
    target_id: str
    box_name: str = ""


class FolderBoxesRequest(CamelModel):
    updated_items: list[FolderBoxEntry]


class IdListRequest(CamelModel):
    ids: list[str] = Field(
        validation_alias=AliasChoices(
            "ids", "updatedBoxIdList", "updatedFolderList", "updatedItems"
        )
    )


class DashboardBoxRequest(CamelModel):
    box_id: str = Field(
        validation_alias=AliasChoices("boxId", "newId", "targetId", "box_id")
    )


class LinkServiceRequest(CamelModel):
    data: dict[str, Any] = Field(
        validation_alias=AliasChoices("data", "serviceData", "spotifyData")
    )
