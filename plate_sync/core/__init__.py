"""Core components for Plate Sync."""

from .vision_service import PlateRecognitionService
from .session_manager import DriveSessionManager, AuthorizedToken, SessionPhase
from .drive_client import GoogleDriveClient
from .sync_orchestrator import PhotoSyncOrchestrator, sanitize_folder_name
from .record_store import RepairStore, RepairRecord
from .repair_service import RepairSaveService

__all__ = [
    "PlateRecognitionService",
    "DriveSessionManager",
    "AuthorizedToken",
    "SessionPhase",
    "GoogleDriveClient",
    "PhotoSyncOrchestrator",
    "sanitize_folder_name",
    "RepairStore",
    "RepairRecord",
    "RepairSaveService",
]
