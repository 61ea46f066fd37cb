"""
Error handling for the box service.

Every failure an operation reports to its caller is a ``MusicBoxError``
carrying an ``ErrorCode``. Routes render it with ``to_response()``:

    {
        "type": "error",
        "status": 409,
        "code": "duplicate_item",
        "message": "Item already in box",
        "request_id": "abc123",
        "context_info": {...}  # optional
    }
"""

from typing import Any

from starlette import status

from .enums import ErrorCode
from .ids import generate_request_id


# Map error codes to HTTP status codes
ERROR_STATUS_MAP: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: status.HTTP_400_BAD_REQUEST,
    ErrorCode.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorCode.BOX_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.SUB_SECTION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.DUPLICATE_ITEM: status.HTTP_409_CONFLICT,
    ErrorCode.STORAGE_FAILURE: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCode.UPSTREAM_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.INTERNAL_SERVER_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class MusicBoxError(Exception):
    """Exception for box service errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status_code: int | None = None,
        context_info: dict[str, Any] | None = None,
        request_id: str | None = None,
    ):
        self.code = code
        self.message = message
        self.status_code = status_code or ERROR_STATUS_MAP.get(
            code, status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        self.context_info = context_info
        self.request_id = request_id or generate_request_id()
        super().__init__(message)

    def to_response(self) -> dict[str, Any]:
        """Convert exception to the error response body."""
        return error_response(
            code=self.code,
            message=self.message,
            status_code=self.status_code,
            context_info=self.context_info,
            request_id=self.request_id,
        )


def error_response(
    code: ErrorCode,
    message: str,
    status_code: int | None = None,
    context_info: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> dict[str, Any]:
    response: dict[str, Any] = {
        "type": "error",
        "status": status_code
        or ERROR_STATUS_MAP.get(code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        "code": code.value,
        "message": message,
        "request_id": request_id or generate_request_id(),
    }

    if context_info:
        response["context_info"] = context_info

    return response


# Convenience functions for common errors
def box_not_found_error(box_id: str) -> MusicBoxError:
    return MusicBoxError(
        code=ErrorCode.BOX_NOT_FOUND,
        message="Box not found.",
        context_info={"boxId": box_id},
    )


def sub_section_not_found_error(box_id: str, sub_section_id: str) -> MusicBoxError:
    return MusicBoxError(
        code=ErrorCode.SUB_SECTION_NOT_FOUND,
        message="Subsection not found.",
        context_info={"boxId": box_id, "subSectionId": sub_section_id},
    )


def duplicate_item_error(kind: str, catalog_id: str) -> MusicBoxError:
    """Create the error for an add whose catalog id is already in the box."""
    return MusicBoxError(
        code=ErrorCode.DUPLICATE_ITEM,
        message="Item already in box",
        context_info={"kind": kind, "id": catalog_id},
    )


def validation_error(
    message: str, errors: list[dict[str, Any]] | None = None
) -> MusicBoxError:
    return MusicBoxError(
        code=ErrorCode.VALIDATION_ERROR,
        message=message,
        context_info={"errors": errors} if errors else None,
    )


def unauthorized_error(message: str = "Unauthorized") -> MusicBoxError:
    return MusicBoxError(code=ErrorCode.UNAUTHORIZED, message=message)


def upstream_unavailable_error(service: str, detail: str) -> MusicBoxError:
    return MusicBoxError(
        code=ErrorCode.UPSTREAM_UNAVAILABLE,
        message=f"{service} unavailable: {detail}",
    )


def storage_failure_error(message: str = "Sorry, something went wrong :/") -> MusicBoxError:
    return MusicBoxError(code=ErrorCode.STORAGE_FAILURE, message=message)
