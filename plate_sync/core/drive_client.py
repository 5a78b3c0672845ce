"""
Google Drive Client for Plate Sync.

Creates per-repair folders and uploads photos with the user's access token.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httplib2
import httpx
from google.auth.exceptions import GoogleAuthError, RefreshError
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.errors import HttpError

from ..config.settings import DriveConfig
from .errors import AuthorizationDenied, TransportFailure
from .multipart import CONTENT_TYPE_HEADER, encode_multipart_related
from .session_manager import AuthorizedToken, DriveSessionManager

logger = logging.getLogger(__name__)


class GoogleDriveClient:
    """
    Drive v3 operations used by a sync.

    Folder creation goes through the session's discovery-based resource
    client; photo uploads are sent as hand-framed multipart/related bodies.
    """

    FOLDER_MIME_TYPE = 'application/vnd.google-apps.folder'

    def __init__(
        self,
        session: DriveSessionManager,
        config: DriveConfig,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize Drive client.

        Args:
            session: Session that owns the Drive resource client
            config: Drive configuration (upload endpoint, timeouts)
            http_client: Optional preconfigured client for uploads
        """
        self.session = session
        self.config = config
        self._client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.config.upload_timeout_seconds)
            self._owns_client = True
        return self._client

    async def close(self):
        """Close the HTTP client if this instance created it."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _authorized_http(self, token: AuthorizedToken) -> Any:
        credentials = Credentials(token=token.access_token)
        return AuthorizedHttp(
            credentials,
            http=httplib2.Http(timeout=self.config.upload_timeout_seconds)
        )

    async def create_folder(self, name: str, token: AuthorizedToken) -> str:
        """
        Create a folder in the user's Drive root.

        A new folder is created on every call; existing folders with the same
        name are not looked up.

        Returns:
            Folder ID
        """
        folder_metadata = {
            'name': name,
            'mimeType': self.FOLDER_MIME_TYPE
        }
        request = self.session.drive_service.files().create(
            body=folder_metadata,
            fields='id'
        )

        loop = asyncio.get_event_loop()
        try:
            folder = await loop.run_in_executor(
                None,
                lambda: request.execute(http=self._authorized_http(token))
            )
        except HttpError as e:
            logger.error(f"Error creating folder {name}: {e}")
            raise TransportFailure(f"Drive folder creation failed: {e}") from e
        except (httplib2.HttpLib2Error, OSError) as e:
            logger.error(f"Network error creating folder {name}: {e}")
            raise TransportFailure(f"Drive folder creation failed: {e}") from e
        except RefreshError as e:
            logger.error(f"Access token rejected creating folder {name}: {e}")
            raise AuthorizationDenied({
                "error": "invalid_token",
                "error_description": str(e)
            }) from e
        except GoogleAuthError as e:
            logger.error(f"Auth error creating folder {name}: {e}")
            raise TransportFailure(f"Drive folder creation failed: {e}") from e

        folder_id = (folder or {}).get('id')
        if not folder_id:
            raise TransportFailure(f"Drive did not return an id for folder {name}")

        logger.info(f"Created folder: {name} -> {folder_id}")
        return folder_id

    def build_upload_metadata(self, folder_id: str, file_name: str, content_type: str) -> Dict[str, Any]:
        return {
            'name': file_name,
            'parents': [folder_id],
            'mimeType': content_type
        }

    async def upload_file(
        self,
        folder_id: str,
        payload: str,
        file_name: str,
        token: AuthorizedToken,
        content_type: str = 'image/jpeg'
    ) -> Optional[str]:
        """
        Upload one base64 photo into a folder.

        Args:
            folder_id: Parent folder ID
            payload: Base64 file content, data URI prefix allowed
            file_name: Name for the Drive file
            token: Access token from the account picker
            content_type: MIME type of the file

        Returns:
            Drive file ID (None if Drive omitted it)
        """
        metadata = self.build_upload_metadata(folder_id, file_name, content_type)
        body = encode_multipart_related(metadata, payload, content_type)

        client = await self._get_client()
        try:
            response = await client.post(
                self.config.upload_endpoint,
                params={'uploadType': 'multipart'},
                headers={
                    'Authorization': f'Bearer {token.access_token}',
                    'Content-Type': CONTENT_TYPE_HEADER
                },
                content=body.encode('utf-8')
            )
        except httpx.HTTPError as e:
            logger.error(f"Failed to upload {file_name}: {e}")
            raise TransportFailure(f"Drive upload failed for {file_name}: {e}") from e

        if response.status_code >= 400:
            logger.error(f"Drive upload error for {file_name}: {response.status_code} {response.text[:200]}")
            raise TransportFailure(
                f"Drive upload failed for {file_name}: HTTP {response.status_code}"
            )

        try:
            return response.json().get('id')
        except ValueError:
            return None

    def get_folder_link(self, folder_id: str) -> str:
        return f"https://drive.google.com/drive/folders/{folder_id}"
