"""
FastAPI routes for Plate Sync.

Plate recognition, local repair records and Drive session control.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from ..core.errors import SessionInitError
from ..core.record_store import MAX_PHOTOS_PER_RECORD, RepairRecord
from ..core.vision_service import PlateText

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/plates", tags=["Plate Sync"])

RECOGNITION_MESSAGES = {
    "plate": "License plate detected",
    "unknown": "No license plate detected. Try again or type it manually.",
    "missing_credential": "Configure the Gemini API key in the environment.",
    "failure": "Error processing the image.",
}


# =============================================================================
# Pydantic Models
# =============================================================================

class RecognizeRequest(BaseModel):
    """Request body for plate recognition."""
    image: str = Field(..., min_length=1, description="Base64 JPEG, data URI prefix allowed")


class RecognizeResponse(BaseModel):
    """Plate recognition outcome."""
    status: str
    plate: Optional[str] = None
    message: str


class RepairIn(BaseModel):
    """Request body for creating or updating a repair record."""
    id: Optional[int] = None
    license_plate: str = Field(..., min_length=1)
    date: str = Field(..., min_length=1, description="Repair date (YYYY-MM-DD)")
    photos: List[str] = Field(default_factory=list, max_length=MAX_PHOTOS_PER_RECORD)
    notes: str = ""
    sync: bool = Field(True, description="Replicate photos to Google Drive after saving")


class RepairOut(BaseModel):
    id: int
    license_plate: str
    date: str
    photos: List[str] = Field(default_factory=list)
    notes: str = ""
    drive_folder_id: Optional[str] = None
    created_at: int
    updated_at: int


class RepairSummary(BaseModel):
    id: int
    license_plate: str
    date: str
    photo_count: int
    notes: str = ""
    drive_folder_id: Optional[str] = None
    updated_at: int


class SaveResponse(BaseModel):
    """Response for a save; sync_error is set when Drive sync did not complete."""
    id: int
    saved: bool
    synced: bool
    sync_error: Optional[str] = None
    folder_link: Optional[str] = None


def _services(request: Request):
    return request.app.state.services


def _to_out(record: RepairRecord) -> RepairOut:
    return RepairOut(
        id=record.id,
        license_plate=record.license_plate,
        date=record.date,
        photos=record.photos,
        notes=record.notes,
        drive_folder_id=record.drive_folder_id,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


# =============================================================================
# Recognition
# =============================================================================

@router.post("/recognize", response_model=RecognizeResponse)
async def recognize_plate(body: RecognizeRequest, request: Request) -> RecognizeResponse:
    """Read the license plate from one photo."""
    result = await _services(request).recognizer.recognize(body.image)
    message = RECOGNITION_MESSAGES[result.kind]
    if result.kind == "failure":
        logger.warning(f"Plate recognition failed: {result.reason}")

    return RecognizeResponse(
        status=result.kind,
        plate=result.text if isinstance(result, PlateText) else None,
        message=message
    )


# =============================================================================
# Repair records
# =============================================================================

@router.get("/repairs", response_model=List[RepairSummary])
async def list_repairs(request: Request) -> List[RepairSummary]:
    records = _services(request).store.list_all()
    return [
        RepairSummary(
            id=r.id,
            license_plate=r.license_plate,
            date=r.date,
            photo_count=len(r.photos),
            notes=r.notes,
            drive_folder_id=r.drive_folder_id,
            updated_at=r.updated_at,
        )
        for r in records
    ]


@router.get("/repairs/{record_id}", response_model=RepairOut)
async def get_repair(record_id: int, request: Request) -> RepairOut:
    record = _services(request).store.get(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Repair not found")
    return _to_out(record)


@router.post("/repairs", response_model=SaveResponse)
async def save_repair(body: RepairIn, request: Request) -> SaveResponse:
    """
    Save a repair record locally, then sync its photos to Drive.

    The local save stands even when the sync fails; the response then
    carries sync_error.
    """
    services = _services(request)
    existing = services.store.get(body.id) if body.id is not None else None
    if body.id is not None and existing is None:
        raise HTTPException(status_code=404, detail="Repair not found")

    record = RepairRecord(
        id=body.id,
        license_plate=body.license_plate,
        date=body.date,
        photos=body.photos,
        notes=body.notes,
        created_at=existing.created_at if existing else None,
    )

    try:
        outcome = await services.repairs.save_and_sync(record, sync=body.sync)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return SaveResponse(
        id=outcome.record.id,
        saved=outcome.saved,
        synced=outcome.synced,
        sync_error=outcome.sync_error,
        folder_link=outcome.folder_link,
    )


@router.delete("/repairs/{record_id}")
async def delete_repair(record_id: int, request: Request) -> Dict[str, Any]:
    if not _services(request).store.delete(record_id):
        raise HTTPException(status_code=404, detail="Repair not found")
    return {"status": "deleted", "id": record_id}


# =============================================================================
# Drive session
# =============================================================================

@router.get("/drive/status")
async def drive_status(request: Request) -> Dict[str, Any]:
    return _services(request).session.status()


@router.post("/drive/init")
async def drive_init(request: Request) -> Dict[str, Any]:
    """Retry Drive client initialization (e.g. after a failed startup)."""
    session = _services(request).session
    try:
        await session.ensure_ready()
    except SessionInitError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return session.status()
