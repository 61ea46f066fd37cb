"""
Box API Routes

REST routes for boxes, folders and users, mounted at the application root:
/boxes/..., /folders/..., /users/...

- Session comes from request.state.db_session (set by DBSessionMiddleware)
- The identity client comes from request.app.state.identity
- Bodies and responses use the client's camelCase keys
"""

from __future__ import annotations

import json
import logging
from typing import Any, NoReturn, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette import status
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from musicbox.services.box.database import lifecycle
from musicbox.services.box.database import operations as ops
from musicbox.services.box.database.pydantic_schemas import (
    AddToSubSectionRequest,
    BoxInfoRequest,
    BoxSchema,
    CreateSubSectionRequest,
    DashboardBoxRequest,
    FolderBoxEntry,
    FolderBoxesRequest,
    FolderSchema,
    IdListRequest,
    LinkServiceRequest,
    MoveBoxRequest,
    NoteTextRequest,
    RemoveFromSubSectionRequest,
    RenameRequest,
    ReorderRequest,
    ReplaceItemsRequest,
    SoftDeleteBoxRequest,
    UserSchema,
)
from musicbox.services.box.database.schema import Box, Folder, User
from musicbox.services.box.utils import ErrorCode, ItemKind, generate_request_id
from musicbox.services.box.utils.errors import (
    MusicBoxError,
    ERROR_STATUS_MAP,
    storage_failure_error,
    unauthorized_error,
)

logger = logging.getLogger(__name__)


# Session & Identity


def _session(request: Request) -> Session:
    """
    Get database session from request state.

    The session is set by DBSessionMiddleware and committed when the request
    finishes.
    """
    session = getattr(request.state, "db_session", None)
    if session is None:
        _error(ErrorCode.INTERNAL_SERVER_ERROR, "Missing database session")
    return session


async def _current_user(request: Request) -> User:
    """Resolve the bearer token to a user through the identity provider."""
    authorization = request.headers.get("Authorization")
    if not authorization:
        raise unauthorized_error("Missing bearer token")

    identity = request.app.state.identity
    subject = await identity.verify(authorization)

    user = ops.get_user_by_subject(_session(request), subject)
    if user is None:
        raise unauthorized_error("No user for this identity")
    return user


# Error Handling


def _error(
    code: ErrorCode,
    message: str,
    *,
    context_info: Optional[dict] = None,
) -> NoReturn:
    """
    Raise a box service error.

    Error response format:
    {
        "type": "error",
        "status": <http_status>,
        "code": "<error_code>",
        "message": "<error_message>",
        "request_id": "<id>",
        "context_info": {...}  # optional
    }
    """
    raise MusicBoxError(
        code=code,
        message=message,
        status_code=ERROR_STATUS_MAP.get(code, status.HTTP_400_BAD_REQUEST),
        context_info=context_info,
    )


def _json_response(
    data: Any,
    status_code: int = status.HTTP_200_OK,
    request_id: Optional[str] = None,
) -> JSONResponse:
    headers = {
        "X-Request-ID": request_id or generate_request_id(),
        "Cache-Control": "no-cache, no-store",
    }
    return JSONResponse(data, status_code=status_code, headers=headers)


def _error_response(error: MusicBoxError) -> JSONResponse:
    """Create an error response from MusicBoxError."""
    return _json_response(
        error.to_response(),
        status_code=error.status_code,
        request_id=error.request_id,
    )


def _storage_error_response(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Roll back the request session and report a storage failure."""
    logger.exception(f"Storage failure on {request.method} {request.url.path}: {exc}")
    session = getattr(request.state, "db_session", None)
    if session is not None:
        session.rollback()
    return _error_response(storage_failure_error())


# Request Parsing


async def _read_json(request: Request) -> Any:
    body = await request.body()
    if not body:
        return {}
    try:
        return json.loads(body)
    except json.JSONDecodeError:
        _error(ErrorCode.VALIDATION_ERROR, "Request body is not valid JSON")


def _kind(request: Request) -> ItemKind:
    try:
        return ItemKind.from_collection(request.path_params["kind"])
    except ValueError:
        _error(
            ErrorCode.VALIDATION_ERROR,
            f"Unknown item kind '{request.path_params['kind']}'",
        )


def _query_param(request: Request, name: str) -> str:
    value = request.query_params.get(name)
    if not value:
        _error(ErrorCode.VALIDATION_ERROR, f"Missing query parameter '{name}'")
    return value


def _item_payload(body: dict, kind: ItemKind, prefix: str) -> Any:
    """
    Pull the item payload out of a request body.

    Accepts ``{"item": {...}}`` as well as the per-kind keys older clients
    send, e.g. ``{"newArtist": {...}}`` or ``{"updatedPlaylist": {...}}``.
    """
    if not isinstance(body, dict):
        _error(ErrorCode.VALIDATION_ERROR, "Request body must be an object")
    for key in ("item", f"{prefix}{kind.value.capitalize()}"):
        if key in body:
            return body[key]
    _error(ErrorCode.VALIDATION_ERROR, "Missing item payload")


# Serialization


def _box_payload(session: Session, box: Optional[Box]) -> Optional[dict]:
    """Serialize a box with its creator's display name."""
    if box is None:
        return None
    data = BoxSchema.model_validate(box).model_dump(by_alias=True)
    creator = ops.get_user_by_id(session, box.creator_id) if box.creator_id else None
    data["creatorName"] = creator.display_name if creator is not None else None
    return data


def _folder_payload(folder: Optional[Folder]) -> Optional[dict]:
    if folder is None:
        return None
    return FolderSchema.model_validate(folder).model_dump(by_alias=True)


def _user_payload(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return UserSchema.model_validate(user).model_dump(by_alias=True, mode="json")


def _document_payload(document: Optional[Folder | User]) -> Optional[dict]:
    if isinstance(document, Folder):
        return _folder_payload(document)
    return _user_payload(document)


# =============================================================================
# BOX ROUTES
# =============================================================================


async def get_box(request: Request) -> Response:
    """GET /boxes?boxId= - fetch one box unless its user deleted it."""
    try:
        session = _session(request)
        box = ops.get_active_box(session, _query_param(request, "boxId"))
        return _json_response(_box_payload(session, box))
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def get_multiple_boxes(request: Request) -> Response:
    """GET /boxes/multiple?id=..&id=.. - dashboard entries in request order."""
    try:
        ids = request.query_params.getlist("id")
        boxes = ops.get_boxes_by_ids(_session(request), ids)
        return _json_response([box.to_dashboard_dict() for box in boxes])
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def create_box(request: Request) -> Response:
    """POST /boxes - create a box and put it on its owner's dashboard."""
    try:
        body = await _read_json(request)
        box = lifecycle.create_box(_session(request), body)
        return _json_response(box.to_dashboard_dict(), status_code=status.HTTP_201_CREATED)
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def replace_box(request: Request) -> Response:
    """PUT /boxes/{box_id} - replace the whole box document."""
    try:
        session = _session(request)
        body = await _read_json(request)
        box = ops.replace_box(session, request.path_params["box_id"], body)
        return _json_response(_box_payload(session, box))
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def delete_box(request: Request) -> Response:
    """
    PUT /boxes/{box_id}/delete - soft-delete a box.

    Body: {"containingFolder": bool, "folderId": "..."}. With a folder the box
    is detached from that folder, otherwise from the creator's dashboard.
    """
    try:
        body = ops.validate_payload(SoftDeleteBoxRequest, await _read_json(request))
        if body.containing_folder and not body.folder_id:
            _error(ErrorCode.VALIDATION_ERROR, "containingFolder requires folderId")
        document = lifecycle.soft_delete_box(
            _session(request), request.path_params["box_id"], folder_id=body.folder_id
        )
        return _json_response(_document_payload(document))
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def update_section_sorting(request: Request) -> Response:
    """PUT /boxes/{box_id}/sectionSorting"""
    try:
        body = await _read_json(request)
        sorting = ops.update_section_sorting(
            _session(request), request.path_params["box_id"], body
        )
        return _json_response(sorting)
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def update_section_visibility(request: Request) -> Response:
    """PUT /boxes/{box_id}/sectionVisibility"""
    try:
        body = await _read_json(request)
        visibility = ops.update_section_visibility(
            _session(request), request.path_params["box_id"], body
        )
        return _json_response(visibility)
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def update_box_info(request: Request) -> Response:
    """PUT /boxes/{box_id}/boxInfo - name, visibility and description."""
    try:
        session = _session(request)
        body = ops.validate_payload(BoxInfoRequest, await _read_json(request))
        box = ops.update_box_info(
            session,
            request.path_params["box_id"],
            name=body.name,
            is_public=body.is_public,
            description=body.description,
        )
        return _json_response(_box_payload(session, box))
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def add_note(request: Request) -> Response:
    """POST /boxes/{box_id}/notes - body is the note."""
    try:
        body = await _read_json(request)
        notes = ops.add_note(_session(request), request.path_params["box_id"], body)
        return _json_response(notes, status_code=status.HTTP_201_CREATED)
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def update_note(request: Request) -> Response:
    """PUT /boxes/{box_id}/notes/{note_id} - body: {"noteText": "..."}"""
    try:
        body = ops.validate_payload(NoteTextRequest, await _read_json(request))
        notes = ops.update_note(
            _session(request),
            request.path_params["box_id"],
            request.path_params["note_id"],
            body.note_text,
        )
        return _json_response(notes)
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


# =============================================================================
# SUB-SECTION ROUTES
# =============================================================================


async def create_sub_section(request: Request) -> Response:
    """POST /boxes/{box_id}/subsections - body: {"type", "name", "index"}"""
    try:
        body = ops.validate_payload(CreateSubSectionRequest, await _read_json(request))
        sub_sections = ops.create_sub_section(
            _session(request),
            request.path_params["box_id"],
            type=body.type,
            name=body.name,
            index=body.index,
        )
        return _json_response(sub_sections, status_code=status.HTTP_201_CREATED)
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def replace_sub_sections(request: Request) -> Response:
    """PUT /boxes/{box_id}/subsections - body: the new list, or {"subSections": [...]}"""
    try:
        body = await _read_json(request)
        if isinstance(body, dict):
            body = body.get("subSections", body.get("updatedItems"))
        if not isinstance(body, list):
            _error(ErrorCode.VALIDATION_ERROR, "Expected a list of sub-sections")
        sub_sections = ops.replace_sub_sections(
            _session(request), request.path_params["box_id"], body
        )
        return _json_response(sub_sections)
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def rename_sub_section(request: Request) -> Response:
    """PUT /boxes/{box_id}/subsections/{sub_id} - body: {"name": "..."}"""
    try:
        body = ops.validate_payload(RenameRequest, await _read_json(request))
        sub_sections = ops.rename_sub_section(
            _session(request),
            request.path_params["box_id"],
            request.path_params["sub_id"],
            body.name,
        )
        return _json_response(sub_sections)
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def reorder_sub_section(request: Request) -> Response:
    """PUT /boxes/{box_id}/subsections/{sub_id}/reorder"""
    try:
        body = ops.validate_payload(ReorderRequest, await _read_json(request))
        sub_sections = ops.reorder_sub_section_items(
            _session(request),
            request.path_params["box_id"],
            request.path_params["sub_id"],
            body.source_index,
            body.destination_index,
        )
        return _json_response(sub_sections)
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def delete_sub_section(request: Request) -> Response:
    """DELETE /boxes/{box_id}/subsections/{sub_id}?section=<kind>"""
    try:
        session = _session(request)
        try:
            kind = ItemKind.from_collection(_query_param(request, "section"))
        except ValueError as e:
            _error(ErrorCode.VALIDATION_ERROR, str(e))
        box = ops.delete_sub_section(
            session,
            request.path_params["box_id"],
            request.path_params["sub_id"],
            kind,
        )
        return _json_response(_box_payload(session, box))
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


# =============================================================================
# ITEM ROUTES
# =============================================================================


async def add_item(request: Request) -> Response:
    """POST /boxes/{box_id}/{kind} - body: {"item": {...}}"""
    try:
        kind = _kind(request)
        body = await _read_json(request)
        items = ops.add_item(
            _session(request),
            request.path_params["box_id"],
            kind,
            _item_payload(body, kind, "new"),
        )
        return _json_response(items, status_code=status.HTTP_201_CREATED)
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def replace_items(request: Request) -> Response:
    """PUT /boxes/{box_id}/{kind} - body: {"updatedItems": [...]}"""
    try:
        kind = _kind(request)
        body = ops.validate_payload(ReplaceItemsRequest, await _read_json(request))
        items = ops.replace_items(
            _session(request), request.path_params["box_id"], kind, body.updated_items
        )
        return _json_response(items)
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def reorder_items(request: Request) -> Response:
    """PUT /boxes/{box_id}/{kind}/reorder - body: {"sourceIndex", "destinationIndex"}"""
    try:
        kind = _kind(request)
        session = _session(request)
        body = ops.validate_payload(ReorderRequest, await _read_json(request))
        box = ops.reorder_items(
            session,
            request.path_params["box_id"],
            kind,
            body.source_index,
            body.destination_index,
        )
        return _json_response(_box_payload(session, box))
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def update_item(request: Request) -> Response:
    """PUT /boxes/{box_id}/{kind}/{item_id} - replace one item's payload."""
    try:
        kind = _kind(request)
        session = _session(request)
        body = await _read_json(request)
        box = ops.update_item(
            session,
            request.path_params["box_id"],
            kind,
            request.path_params["item_id"],
            _item_payload(body, kind, "updated"),
        )
        return _json_response(_box_payload(session, box))
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def remove_item(request: Request) -> Response:
    """DELETE /boxes/{box_id}/{kind}/{item_id}"""
    try:
        kind = _kind(request)
        items = ops.remove_item(
            _session(request),
            request.path_params["box_id"],
            kind,
            request.path_params["item_id"],
        )
        return _json_response(items)
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def add_item_to_sub_section(request: Request) -> Response:
    """PUT /boxes/{box_id}/{kind}/{item_id}/subsection - body: {"subSectionId", "itemData"}"""
    try:
        kind = _kind(request)
        session = _session(request)
        body = ops.validate_payload(AddToSubSectionRequest, await _read_json(request))
        box = ops.add_item_to_sub_section(
            session,
            request.path_params["box_id"],
            kind,
            request.path_params["item_id"],
            body.sub_section_id,
            body.item_data,
        )
        return _json_response(_box_payload(session, box))
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def remove_item_from_sub_section(request: Request) -> Response:
    """
    PUT /boxes/{box_id}/{kind}/{item_id}/subsection/remove

    Body: {"subSectionId", "removalKey"}. The removal key is matched against
    the copy's catalog id (local id for playlists) and is required.
    """
    try:
        kind = _kind(request)
        session = _session(request)
        item_id = request.path_params["item_id"]
        body = ops.validate_payload(
            RemoveFromSubSectionRequest, await _read_json(request)
        )
        box = ops.remove_item_from_sub_section(
            session,
            request.path_params["box_id"],
            kind,
            item_id,
            body.sub_section_id,
            body.removal_key,
        )
        return _json_response(_box_payload(session, box))
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


# =============================================================================
# FOLDER ROUTES
# =============================================================================


async def get_folder(request: Request) -> Response:
    """GET /folders?folderId="""
    try:
        folder = ops.get_folder_by_id(_session(request), _query_param(request, "folderId"))
        return _json_response(_folder_payload(folder))
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def get_multiple_folders(request: Request) -> Response:
    """GET /folders/multiple?id=..&id=.. - folders in request order."""
    try:
        ids = request.query_params.getlist("id")
        folders = ops.get_folders_by_ids(_session(request), ids)
        return _json_response([_folder_payload(f) for f in folders])
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def create_folder(request: Request) -> Response:
    """POST /folders"""
    try:
        body = await _read_json(request)
        folder = lifecycle.create_folder(_session(request), body)
        return _json_response(_folder_payload(folder), status_code=status.HTTP_201_CREATED)
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def delete_folder(request: Request) -> Response:
    """DELETE /folders/{folder_id} - returns the owner with its boxes restored."""
    try:
        owner = lifecycle.delete_folder(_session(request), request.path_params["folder_id"])
        return _json_response(_user_payload(owner))
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def attach_box(request: Request) -> Response:
    """POST /folders/{folder_id}/boxes - body: {"boxId", "boxName"}"""
    try:
        body = ops.validate_payload(FolderBoxEntry, await _read_json(request))
        folder = lifecycle.attach_box_to_folder(
            _session(request), request.path_params["folder_id"], body.box_id, body.box_name
        )
        return _json_response(_folder_payload(folder), status_code=status.HTTP_201_CREATED)
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def replace_folder_boxes(request: Request) -> Response:
    """PUT /folders/{folder_id}/boxes - body: {"updatedItems": [{"boxId", "boxName"}]}"""
    try:
        body = ops.validate_payload(FolderBoxesRequest, await _read_json(request))
        folder = ops.replace_folder_boxes(
            _session(request),
            request.path_params["folder_id"],
            [entry.model_dump(by_alias=True) for entry in body.updated_items],
        )
        return _json_response(_folder_payload(folder))
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def rename_folder_box(request: Request) -> Response:
    """PUT /folders/{folder_id}/boxes/{box_id} - body: {"name": "..."}"""
    try:
        body = ops.validate_payload(RenameRequest, await _read_json(request))
        folder = ops.rename_folder_box(
            _session(request),
            request.path_params["folder_id"],
            request.path_params["box_id"],
            body.name,
        )
        return _json_response(_folder_payload(folder))
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def detach_box(request: Request) -> Response:
    """DELETE /folders/{folder_id}/boxes/{box_id}"""
    try:
        folder = lifecycle.detach_box_from_folder(
            _session(request),
            request.path_params["folder_id"],
            request.path_params["box_id"],
        )
        return _json_response(_folder_payload(folder))
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def move_box(request: Request) -> Response:
    """PUT /folders/{source_id}/boxes/{box_id}/move - body: {"targetId", "boxName"}"""
    try:
        body = ops.validate_payload(MoveBoxRequest, await _read_json(request))
        source, target = lifecycle.move_box_between_folders(
            _session(request),
            request.path_params["source_id"],
            body.target_id,
            request.path_params["box_id"],
            body.box_name,
        )
        return _json_response(
            {"source": _folder_payload(source), "target": _folder_payload(target)}
        )
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


# =============================================================================
# USER ROUTES
# =============================================================================


async def get_me(request: Request) -> Response:
    """GET /users/me - the user behind the bearer token."""
    try:
        user = await _current_user(request)
        return _json_response({"appUser": _user_payload(user)})
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def check_username(request: Request) -> Response:
    """GET /users/check/{username}"""
    try:
        exists = ops.username_exists(_session(request), request.path_params["username"])
        return _json_response({"usernameExists": exists})
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def create_user(request: Request) -> Response:
    """POST /users"""
    try:
        body = await _read_json(request)
        user = ops.create_user(_session(request), body)
        return _json_response(_user_payload(user), status_code=status.HTTP_201_CREATED)
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def verify_email(request: Request) -> Response:
    """PUT /users/{user_id}/verifyEmail"""
    try:
        user = ops.verify_user_email(_session(request), request.path_params["user_id"])
        return _json_response(_user_payload(user))
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def link_service(request: Request) -> Response:
    """POST /users/{user_id}/services/{name} - body: {"data": {...}}"""
    try:
        body = ops.validate_payload(LinkServiceRequest, await _read_json(request))
        user = ops.link_user_service(
            _session(request),
            request.path_params["user_id"],
            request.path_params["name"],
            body.data,
        )
        return _json_response(_user_payload(user))
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def list_user_boxes(request: Request) -> Response:
    """GET /users/{user_id}/boxes - dashboard entries for the user's visible boxes."""
    try:
        boxes = ops.list_boxes_by_creator(_session(request), request.path_params["user_id"])
        return _json_response([box.to_dashboard_dict() for box in boxes])
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def list_user_folders(request: Request) -> Response:
    """GET /users/{user_id}/folders"""
    try:
        folders = ops.list_folders_by_creator(
            _session(request), request.path_params["user_id"]
        )
        return _json_response([_folder_payload(f) for f in folders])
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def replace_dashboard_boxes(request: Request) -> Response:
    """PUT /users/{user_id}/dashboardBoxes - body: {"updatedBoxIdList": [...]}"""
    try:
        body = ops.validate_payload(IdListRequest, await _read_json(request))
        boxes = ops.replace_dashboard_boxes(
            _session(request), request.path_params["user_id"], body.ids
        )
        return _json_response(boxes)
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def push_dashboard_box(request: Request) -> Response:
    """POST /users/{user_id}/dashboardBoxes - body: {"newId": "..."}"""
    try:
        body = ops.validate_payload(DashboardBoxRequest, await _read_json(request))
        boxes = ops.push_dashboard_box(
            _session(request), request.path_params["user_id"], body.box_id
        )
        return _json_response(boxes)
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def pull_dashboard_box(request: Request) -> Response:
    """DELETE /users/{user_id}/dashboardBoxes - body: {"targetId": "..."}"""
    try:
        body = ops.validate_payload(DashboardBoxRequest, await _read_json(request))
        boxes = ops.pull_dashboard_box(
            _session(request), request.path_params["user_id"], body.box_id
        )
        return _json_response(boxes)
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


async def replace_dashboard_folders(request: Request) -> Response:
    """PUT /users/{user_id}/dashboardFolders - body: {"updatedFolderList": [...]}"""
    try:
        body = ops.validate_payload(IdListRequest, await _read_json(request))
        folders = ops.replace_dashboard_folders(
            _session(request), request.path_params["user_id"], body.ids
        )
        return _json_response(folders)
    except MusicBoxError as e:
        return _error_response(e)
    except SQLAlchemyError as e:
        return _storage_error_response(request, e)


# Literal segments are listed before the parameterized paths they would
# otherwise match.
routes = [
    # Boxes
    Route("/boxes", get_box, methods=["GET"]),
    Route("/boxes", create_box, methods=["POST"]),
    Route("/boxes/multiple", get_multiple_boxes, methods=["GET"]),
    Route("/boxes/{box_id}", replace_box, methods=["PUT"]),
    Route("/boxes/{box_id}/delete", delete_box, methods=["PUT"]),
    Route("/boxes/{box_id}/sectionSorting", update_section_sorting, methods=["PUT"]),
    Route(
        "/boxes/{box_id}/sectionVisibility", update_section_visibility, methods=["PUT"]
    ),
    Route("/boxes/{box_id}/boxInfo", update_box_info, methods=["PUT"]),
    Route("/boxes/{box_id}/notes", add_note, methods=["POST"]),
    Route("/boxes/{box_id}/notes/{note_id}", update_note, methods=["PUT"]),
    # Sub-sections
    Route("/boxes/{box_id}/subsections", create_sub_section, methods=["POST"]),
    Route("/boxes/{box_id}/subsections", replace_sub_sections, methods=["PUT"]),
    Route(
        "/boxes/{box_id}/subsections/{sub_id}/reorder",
        reorder_sub_section,
        methods=["PUT"],
    ),
    Route("/boxes/{box_id}/subsections/{sub_id}", rename_sub_section, methods=["PUT"]),
    Route(
        "/boxes/{box_id}/subsections/{sub_id}", delete_sub_section, methods=["DELETE"]
    ),
    # Items
    Route("/boxes/{box_id}/{kind}", add_item, methods=["POST"]),
    Route("/boxes/{box_id}/{kind}", replace_items, methods=["PUT"]),
    Route("/boxes/{box_id}/{kind}/reorder", reorder_items, methods=["PUT"]),
    Route(
        "/boxes/{box_id}/{kind}/{item_id}/subsection/remove",
        remove_item_from_sub_section,
        methods=["PUT"],
    ),
    Route(
        "/boxes/{box_id}/{kind}/{item_id}/subsection",
        add_item_to_sub_section,
        methods=["PUT"],
    ),
    Route("/boxes/{box_id}/{kind}/{item_id}", update_item, methods=["PUT"]),
    Route("/boxes/{box_id}/{kind}/{item_id}", remove_item, methods=["DELETE"]),
    # Folders
    Route("/folders", get_folder, methods=["GET"]),
    Route("/folders", create_folder, methods=["POST"]),
    Route("/folders/multiple", get_multiple_folders, methods=["GET"]),
    Route("/folders/{folder_id}", delete_folder, methods=["DELETE"]),
    Route("/folders/{folder_id}/boxes", attach_box, methods=["POST"]),
    Route("/folders/{folder_id}/boxes", replace_folder_boxes, methods=["PUT"]),
    Route("/folders/{source_id}/boxes/{box_id}/move", move_box, methods=["PUT"]),
    Route("/folders/{folder_id}/boxes/{box_id}", rename_folder_box, methods=["PUT"]),
    Route("/folders/{folder_id}/boxes/{box_id}", detach_box, methods=["DELETE"]),
    # Users
    Route("/users", create_user, methods=["POST"]),
    Route("/users/me", get_me, methods=["GET"]),
    Route("/users/check/{username}", check_username, methods=["GET"]),
    Route("/users/{user_id}/verifyEmail", verify_email, methods=["PUT"]),
    Route("/users/{user_id}/services/{name}", link_service, methods=["POST"]),
    Route("/users/{user_id}/boxes", list_user_boxes, methods=["GET"]),
    Route("/users/{user_id}/folders", list_user_folders, methods=["GET"]),
    Route("/users/{user_id}/dashboardBoxes", replace_dashboard_boxes, methods=["PUT"]),
    Route("/users/{user_id}/dashboardBoxes", push_dashboard_box, methods=["POST"]),
    Route("/users/{user_id}/dashboardBoxes", pull_dashboard_box, methods=["DELETE"]),
    Route(
        "/users/{user_id}/dashboardFolders", replace_dashboard_folders, methods=["PUT"]
    ),
]
