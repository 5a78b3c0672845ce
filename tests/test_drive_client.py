"""Drive folder creation and multipart photo upload."""

import asyncio
from types import SimpleNamespace
from unittest.mock import MagicMock

import httplib2
import httpx
import pytest
from google.auth.exceptions import DefaultCredentialsError, RefreshError
from googleapiclient.errors import HttpError

from plate_sync.config.settings import DriveConfig
from plate_sync.core.drive_client import GoogleDriveClient
from plate_sync.core.errors import AuthorizationDenied, TransportFailure
from plate_sync.core.multipart import CONTENT_TYPE_HEADER, encode_multipart_related
from plate_sync.core.session_manager import AuthorizedToken

TOKEN = AuthorizedToken(access_token="ya29.test")


def make_client(handler=None, service=None):
    session = SimpleNamespace(drive_service=service or MagicMock())
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler)) if handler else None
    return GoogleDriveClient(session, DriveConfig(client_id="c"), http_client=http_client)


def test_upload_sends_multipart_body_with_bearer_token():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"id": "file-1"})

    client = make_client(handler)
    file_id = asyncio.run(client.upload_file("F1", "QQ==", "photo_1.jpg", TOKEN))

    assert file_id == "file-1"
    request = seen[0]
    assert request.method == "POST"
    assert request.url.path == "/upload/drive/v3/files"
    assert request.url.params["uploadType"] == "multipart"
    assert request.headers["Authorization"] == "Bearer ya29.test"
    assert request.headers["Content-Type"] == CONTENT_TYPE_HEADER
    expected = encode_multipart_related(
        {"name": "photo_1.jpg", "parents": ["F1"], "mimeType": "image/jpeg"},
        "QQ==",
        "image/jpeg"
    )
    assert request.content == expected.encode("utf-8")


def test_upload_http_error_raises_transport_failure():
    client = make_client(lambda request: httpx.Response(403, json={"error": {"message": "forbidden"}}))

    with pytest.raises(TransportFailure, match="HTTP 403"):
        asyncio.run(client.upload_file("F1", "QQ==", "photo_1.jpg", TOKEN))


def test_upload_network_error_raises_transport_failure():
    def handler(request):
        raise httpx.ReadTimeout("timed out")

    client = make_client(handler)

    with pytest.raises(TransportFailure):
        asyncio.run(client.upload_file("F1", "QQ==", "photo_1.jpg", TOKEN))


def test_create_folder_uses_folder_mime_type():
    service = MagicMock()
    service.files.return_value.create.return_value.execute.return_value = {"id": "F9"}
    client = make_client(service=service)

    folder_id = asyncio.run(client.create_folder("1234BCD", TOKEN))

    assert folder_id == "F9"
    service.files.return_value.create.assert_called_once_with(
        body={"name": "1234BCD", "mimeType": "application/vnd.google-apps.folder"},
        fields="id"
    )
    execute = service.files.return_value.create.return_value.execute
    assert "http" in execute.call_args.kwargs


def test_create_folder_api_error_raises_transport_failure():
    service = MagicMock()
    service.files.return_value.create.return_value.execute.side_effect = HttpError(
        httplib2.Response({"status": "500"}), b"backend error"
    )
    client = make_client(service=service)

    with pytest.raises(TransportFailure):
        asyncio.run(client.create_folder("1234BCD", TOKEN))


def test_create_folder_without_id_raises_transport_failure():
    service = MagicMock()
    service.files.return_value.create.return_value.execute.return_value = {}
    client = make_client(service=service)

    with pytest.raises(TransportFailure):
        asyncio.run(client.create_folder("1234BCD", TOKEN))


def test_folder_link():
    assert make_client().get_folder_link("F1") == "https://drive.google.com/drive/folders/F1"


def test_create_folder_rejected_token_raises_authorization_denied():
    service = MagicMock()
    service.files.return_value.create.return_value.execute.side_effect = RefreshError(
        "The credentials do not contain the necessary fields need to refresh the access token."
    )
    client = make_client(service=service)

    with pytest.raises(AuthorizationDenied) as info:
        asyncio.run(client.create_folder("1234BCD", TOKEN))
    assert info.value.payload["error"] == "invalid_token"


def test_create_folder_other_auth_error_raises_transport_failure():
    service = MagicMock()
    service.files.return_value.create.return_value.execute.side_effect = DefaultCredentialsError("no creds")
    client = make_client(service=service)

    with pytest.raises(TransportFailure):
        asyncio.run(client.create_folder("1234BCD", TOKEN))
