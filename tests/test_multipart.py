"""Multipart/related framing for Drive uploads."""

from plate_sync.core.multipart import (
    BOUNDARY,
    CONTENT_TYPE_HEADER,
    encode_multipart_related,
    strip_data_uri,
)


EXPECTED_PHOTO_1_BODY = (
    "\r\n---------314159265358979323846\r\n"
    "Content-Type: application/json\r\n"
    "\r\n"
    '{"name":"photo_1.jpg","parents":["F1"],"mimeType":"image/jpeg"}'
    "\r\n---------314159265358979323846\r\n"
    "Content-Type: image/jpeg\r\n"
    "Content-Transfer-Encoding: base64\r\n"
    "\r\n"
    "QQ=="
    "\r\n---------314159265358979323846--"
)


def test_encode_matches_pinned_body():
    metadata = {"name": "photo_1.jpg", "parents": ["F1"], "mimeType": "image/jpeg"}
    body = encode_multipart_related(metadata, "QQ==", "image/jpeg")
    assert body == EXPECTED_PHOTO_1_BODY


def test_encode_strips_data_uri_prefix():
    metadata = {"name": "photo_1.jpg", "parents": ["F1"], "mimeType": "image/jpeg"}
    body = encode_multipart_related(metadata, "data:image/jpeg;base64,QQ==", "image/jpeg")
    assert body == EXPECTED_PHOTO_1_BODY


def test_body_ends_with_closing_boundary():
    body = encode_multipart_related({"name": "x"}, "AAAA", "image/png")
    assert body.endswith(f"\r\n--{BOUNDARY}--")
    assert body.count(f"--{BOUNDARY}") == 3
    assert "Content-Type: image/png\r\n" in body


def test_content_type_header_quotes_boundary():
    assert CONTENT_TYPE_HEADER == 'multipart/related; boundary="-------314159265358979323846"'


def test_strip_data_uri_leaves_plain_payload():
    assert strip_data_uri("QUJD") == "QUJD"
    assert strip_data_uri("data:image/jpeg;base64,QUJD") == "QUJD"
