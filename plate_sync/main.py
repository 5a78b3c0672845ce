"""
Plate Sync service entry point.

Wires the recognition, Drive session and record store services into a
FastAPI app. Drive initialization runs at startup; if it fails the app keeps
serving with sync unavailable.
"""

import os
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI

from .api.routes import router
from .config.settings import PipelineConfig, get_pipeline_config
from .core.drive_client import GoogleDriveClient
from .core.errors import SessionInitError
from .core.record_store import RepairStore
from .core.repair_service import RepairSaveService
from .core.session_manager import DriveSessionManager
from .core.sync_orchestrator import PhotoSyncOrchestrator
from .core.vision_service import PlateRecognitionService

logger = logging.getLogger(__name__)


@dataclass
class PlateSyncServices:
    """Everything the routes need, built once per app."""
    config: PipelineConfig
    recognizer: PlateRecognitionService
    session: DriveSessionManager
    drive: GoogleDriveClient
    orchestrator: PhotoSyncOrchestrator
    store: RepairStore
    repairs: RepairSaveService

    async def close(self):
        await self.recognizer.close()
        await self.drive.close()


def build_services(
    config: Optional[PipelineConfig] = None,
    session: Optional[DriveSessionManager] = None
) -> PlateSyncServices:
    config = config or get_pipeline_config()
    session = session or DriveSessionManager(config.drive)
    drive = GoogleDriveClient(session, config.drive)
    orchestrator = PhotoSyncOrchestrator(session, drive, config.sync)
    store = RepairStore(config.db_path)

    return PlateSyncServices(
        config=config,
        recognizer=PlateRecognitionService(config.vision),
        session=session,
        drive=drive,
        orchestrator=orchestrator,
        store=store,
        repairs=RepairSaveService(store, orchestrator),
    )


def create_app(services: Optional[PlateSyncServices] = None) -> FastAPI:
    services = services or build_services()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            await services.session.ensure_ready()
        except SessionInitError as e:
            logger.warning(f"Drive init warning: {e}. Sync is unavailable until /api/plates/drive/init succeeds.")
        yield
        await services.close()

    app = FastAPI(
        title="Plate Sync",
        root_path=os.getenv("FASTAPI_ROOT_PATH", ""),
        lifespan=lifespan
    )
    app.state.services = services
    app.include_router(router)

    @app.get("/health")
    async def health():
        return {
            "status": "healthy",
            "ocr_configured": services.config.vision.has_credential,
            "drive": services.session.status()
        }

    return app


def main():
    import uvicorn

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    uvicorn.run(
        create_app(),
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "8010"))
    )


if __name__ == "__main__":
    main()
