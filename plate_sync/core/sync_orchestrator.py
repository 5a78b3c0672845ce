"""
Sync Orchestrator for Plate Sync.

Replicates one repair record's photos into a new Drive folder named after
the license plate.
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

from ..config.settings import SyncSettings
from .drive_client import GoogleDriveClient
from .errors import PartialSyncFailure, SessionNotReadyError
from .session_manager import AuthorizedToken, DriveSessionManager

logger = logging.getLogger(__name__)

_ILLEGAL_NAME_CHARS = re.compile(r'[<>:"/\\|?*]')

MAX_FOLDER_NAME_LENGTH = 100


def sanitize_folder_name(name: str, max_length: int = MAX_FOLDER_NAME_LENGTH) -> str:
    """
    Make a plate string safe to use as a Drive folder name.

    Illegal characters become underscores, surrounding whitespace is trimmed
    and the result is cut to max_length. Applying it twice changes nothing.
    """
    sanitized = _ILLEGAL_NAME_CHARS.sub('_', name).strip()
    return sanitized[:max_length].strip()


@dataclass
class SyncResult:
    """Outcome of a completed sync."""
    folder_id: str
    folder_name: str
    folder_link: str
    file_ids: List[Optional[str]] = field(default_factory=list)

    @property
    def uploaded(self) -> int:
        return len(self.file_ids)


class PhotoSyncOrchestrator:
    """
    Folder creation plus sequential photo upload for one repair record.

    Workflow:
    1. Sanitize the folder name
    2. Check the Drive session is ready
    3. Obtain an access token (account picker) unless one is supplied
    4. Create the folder
    5. Upload photo_1.jpg .. photo_N.jpg in input order, one at a time
    """

    def __init__(
        self,
        session: DriveSessionManager,
        drive_client: GoogleDriveClient,
        sync_settings: Optional[SyncSettings] = None
    ):
        self.session = session
        self.drive = drive_client
        self.settings = sync_settings or SyncSettings()

    async def sync(
        self,
        folder_name: str,
        photos: Sequence[str],
        token: Optional[AuthorizedToken] = None,
        on_progress: Optional[Callable[[int, int], None]] = None
    ) -> SyncResult:
        """
        Upload photos into a new folder.

        Args:
            folder_name: Raw folder name, normally the plate text
            photos: Base64 JPEG payloads, uploaded in this order
            token: Access token; requested from the session when omitted
            on_progress: Called with (index, total) before each upload

        Returns:
            SyncResult with folder and file ids

        Raises:
            SessionNotReadyError: session has not finished ensure_ready()
            AuthorizationDenied: user declined the account picker
            TransportFailure: folder creation failed
            PartialSyncFailure: an upload failed; later photos were not sent
        """
        if not self.session.is_ready():
            logger.error("Google Drive client not initialized. Check your internet connection or Client ID.")
            raise SessionNotReadyError("Google Drive client not initialized")

        sanitized_name = sanitize_folder_name(folder_name, self.settings.max_folder_name_length)

        if token is None:
            token = await self.session.request_authorization()

        folder_id = await self.drive.create_folder(sanitized_name, token)

        total = len(photos)
        file_ids: List[Optional[str]] = []

        for index, photo in enumerate(photos, start=1):
            logger.info(f"Uploading photo {index}/{total}...")
            if on_progress:
                on_progress(index, total)

            file_name = self.settings.photo_name_template.format(index=index)
            try:
                file_id = await self.drive.upload_file(
                    folder_id,
                    photo,
                    file_name,
                    token,
                    content_type=self.settings.photo_content_type
                )
            except Exception as e:
                logger.error(f"Upload of {file_name} failed, aborting sync of folder {folder_id}: {e}")
                raise PartialSyncFailure(folder_id, len(file_ids), total, e) from e

            file_ids.append(file_id)

        logger.info(f"Synced {total} photos to folder '{sanitized_name}' ({folder_id})")

        return SyncResult(
            folder_id=folder_id,
            folder_name=sanitized_name,
            folder_link=self.drive.get_folder_link(folder_id),
            file_ids=file_ids
        )
