"""
Save flow for repair records: store locally, then replicate photos to Drive.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from .errors import PlateSyncError
from .record_store import RepairRecord, RepairStore
from .sync_orchestrator import PhotoSyncOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class SaveOutcome:
    """Result of a save. ``saved`` is always true once returned."""
    record: RepairRecord
    saved: bool = True
    synced: bool = False
    sync_error: Optional[str] = None
    folder_link: Optional[str] = None


class RepairSaveService:
    """
    Local save first, Drive sync second.

    A sync failure is reported in the outcome and never undoes the local save.
    """

    def __init__(self, store: RepairStore, orchestrator: PhotoSyncOrchestrator):
        self.store = store
        self.orchestrator = orchestrator

    async def save_and_sync(self, record: RepairRecord, sync: bool = True) -> SaveOutcome:
        record_id = self.store.save(record)
        outcome = SaveOutcome(record=record)

        if not sync:
            return outcome

        try:
            result = await self.orchestrator.sync(record.license_plate, record.photos)
        except PlateSyncError as e:
            logger.error(f"Drive sync failed for repair {record_id}: {e}")
            outcome.sync_error = str(e)
            return outcome
        except Exception as e:
            logger.exception(f"Unexpected Drive sync error for repair {record_id}: {e}")
            outcome.sync_error = f"Saved locally but not fully synced: {e}"
            return outcome

        self.store.set_drive_folder_id(record_id, result.folder_id)
        record.drive_folder_id = result.folder_id
        outcome.synced = True
        outcome.folder_link = result.folder_link
        return outcome
