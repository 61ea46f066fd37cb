# Box Utilities Module
from .enums import ItemKind, ErrorCode
from .ids import (
    generate_object_id,
    generate_box_id,
    generate_folder_id,
    generate_user_id,
    generate_local_id,
    generate_request_id,
)
from .errors import MusicBoxError, error_response, ERROR_STATUS_MAP

__all__ = [
    # Enums
    "ItemKind",
    "ErrorCode",
    # IDs
    "generate_object_id",
    "generate_box_id",
    "generate_folder_id",
    "generate_user_id",
    "generate_local_id",
    "generate_request_id",
    # Errors
    "MusicBoxError",
    "error_response",
    "ERROR_STATUS_MAP",
]
