"""
ID generation for box, folder, user and embedded documents.

Document ids follow the ObjectId layout the web client already expects:
24 lowercase hex characters, the first 8 encoding the creation time in
seconds so ids sort roughly by creation.
"""

import secrets
import time
import uuid


def generate_object_id() -> str:
    """Generate a 24-character hex id (4-byte timestamp + 8 random bytes)."""
    timestamp = int(time.time()) & 0xFFFFFFFF
    return f"{timestamp:08x}{secrets.token_hex(8)}"


def generate_box_id() -> str:
    return generate_object_id()


def generate_folder_id() -> str:
    return generate_object_id()


def generate_user_id() -> str:
    return generate_object_id()


def generate_local_id() -> str:
    """Generate the in-box id for items, sub-sections, copies and notes."""
    return generate_object_id()


def generate_request_id() -> str:
    """Generate a request ID for error responses (alphanumeric)."""
    return uuid.uuid4().hex[:12]
