"""
multipart/related body encoding for Drive uploads.

The Drive upload endpoint expects one JSON metadata part followed by one
base64-encoded media part, framed with a fixed boundary.
"""

import json
from typing import Any, Dict

BOUNDARY = "-------314159265358979323846"
DELIMITER = f"\r\n--{BOUNDARY}\r\n"
CLOSE_DELIMITER = f"\r\n--{BOUNDARY}--"

CONTENT_TYPE_HEADER = f'multipart/related; boundary="{BOUNDARY}"'


def strip_data_uri(payload: str) -> str:
    """Drop a ``data:image/jpeg;base64,`` style prefix if present."""
    if "," in payload:
        return payload.split(",", 1)[1]
    return payload


def encode_multipart_related(
    metadata: Dict[str, Any],
    payload: str,
    content_type: str
) -> str:
    """
    Build a multipart/related upload body.

    Args:
        metadata: Drive file resource (name, parents, mimeType)
        payload: Base64 file content, with or without a data URI prefix
        content_type: MIME type of the media part

    Returns:
        Body string; send it with CONTENT_TYPE_HEADER
    """
    return (
        DELIMITER
        + "Content-Type: application/json\r\n\r\n"
        + json.dumps(metadata, separators=(",", ":"), ensure_ascii=False)
        + DELIMITER
        + f"Content-Type: {content_type}\r\n"
        + "Content-Transfer-Encoding: base64\r\n"
        + "\r\n"
        + strip_data_uri(payload)
        + CLOSE_DELIMITER
    )
