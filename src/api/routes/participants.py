"""
Participant registry admin routes - CRUD, bulk import and live updates
All data access goes through the sync coordinator.
"""

import asyncio
import json
import logging
import os
from typing import AsyncIterator, Dict, List

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sse_starlette.sse import EventSourceResponse

from config.settings import MAX_IMPORT_FILE_SIZE
from models.participant import ImportReport, Participant, ParticipantCreate, ParticipantUpdate
from services.csv_import import import_participants
from services.subscriptions import ConnectionStatus
from services.sync_coordinator import SyncCoordinator
from utils.auth import authenticate_admin, authenticate_admin_stream, get_coordinator
from utils.error_handling import raise_for_result

router = APIRouter()
logger = logging.getLogger(__name__)

ALLOWED_IMPORT_EXTENSIONS = (".csv", ".txt")
KEEPALIVE_SECONDS = 30.0


@router.get("", response_model=List[Participant], dependencies=[Depends(authenticate_admin)])
async def list_participants(coordinator: SyncCoordinator = Depends(get_coordinator)):
    """All participants, newest first"""
    result = await coordinator.get_all()
    raise_for_result(result)
    return result.data


@router.post("", response_model=Participant, status_code=201, dependencies=[Depends(authenticate_admin)])
async def create_participant(
    request: ParticipantCreate,
    coordinator: SyncCoordinator = Depends(get_coordinator)
):
    """Add a participant; a certificate number already in use is a 409"""
    logger.info(f"Adding participant: {request.certificate_number}")
    result = await coordinator.add(request)
    raise_for_result(result)
    return result.first


@router.post("/import", response_model=ImportReport, dependencies=[Depends(authenticate_admin)])
async def import_participants_csv(
    file: UploadFile = File(...),
    coordinator: SyncCoordinator = Depends(get_coordinator)
):
    """Bulk import from CSV; rows are added one by one so partial success is normal"""
    extension = os.path.splitext(file.filename or "")[1].lower()
    if extension not in ALLOWED_IMPORT_EXTENSIONS:
        raise HTTPException(status_code=400, detail="Invalid file type. Please upload a CSV file")

    content = await file.read()
    if len(content) > MAX_IMPORT_FILE_SIZE:
        raise HTTPException(
            status_code=400,
            detail=f"File too large. Maximum size is {MAX_IMPORT_FILE_SIZE // (1024 * 1024)}MB"
        )

    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="File must be UTF-8 encoded text")

    report = await import_participants(coordinator, text)
    if report.success_count == 0 and report.error_count == 0:
        raise HTTPException(status_code=400, detail="No valid data found in file. Please check the format.")

    return report


async def participant_event_stream(
    coordinator: SyncCoordinator,
    keepalive: float = KEEPALIVE_SECONDS
) -> AsyncIterator[Dict[str, str]]:
    """
    Event stream for one dashboard connection.

    Yields a `participants` event with the full registry on connect and after
    every change, and a `status` event with the current connection status
    and every later transition. Listeners are removed when the stream closes.
    """
    registry = coordinator.registry
    queue: asyncio.Queue = asyncio.Queue()

    def on_participants(participants: List[Participant]):
        queue.put_nowait({
            "event": "participants",
            "data": json.dumps([p.model_dump(mode="json") for p in participants]),
        })

    def on_status(status: ConnectionStatus):
        queue.put_nowait({"event": "status", "data": json.dumps({"status": status.value})})

    initial = await coordinator.get_all()
    on_participants(initial.data)
    registry.add_participant_listener(on_participants)
    registry.add_status_listener(on_status)
    try:
        while True:
            try:
                yield await asyncio.wait_for(queue.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                yield {"comment": "keepalive"}
    finally:
        registry.remove_participant_listener(on_participants)
        registry.remove_status_listener(on_status)
        logger.info("Event stream closed, listeners removed")


@router.get("/events", dependencies=[Depends(authenticate_admin_stream)])
async def participant_events(coordinator: SyncCoordinator = Depends(get_coordinator)):
    """Server-sent events for the dashboard"""
    return EventSourceResponse(
        participant_event_stream(coordinator),
        headers={"X-Accel-Buffering": "no", "Cache-Control": "no-cache"}
    )


@router.get("/{participant_id}", response_model=Participant, dependencies=[Depends(authenticate_admin)])
async def get_participant(participant_id: int, coordinator: SyncCoordinator = Depends(get_coordinator)):
    result = await coordinator.find_by_id(participant_id)
    raise_for_result(result)
    if result.first is None:
        raise HTTPException(status_code=404, detail="Participant not found")
    return result.first


@router.put("/{participant_id}", response_model=Participant, dependencies=[Depends(authenticate_admin)])
async def update_participant(
    participant_id: int,
    request: ParticipantUpdate,
    coordinator: SyncCoordinator = Depends(get_coordinator)
):
    """Partial update; omitted fields keep their values"""
    changes = request.changes()
    if not changes:
        raise HTTPException(status_code=400, detail="No fields provided for update")

    logger.info(f"Updating participant {participant_id} with fields: {list(changes.keys())}")
    result = await coordinator.update(participant_id, changes)
    raise_for_result(result)
    return result.first


@router.delete("/{participant_id}", dependencies=[Depends(authenticate_admin)])
async def delete_participant(participant_id: int, coordinator: SyncCoordinator = Depends(get_coordinator)):
    logger.info(f"Deleting participant {participant_id}")
    result = await coordinator.delete(participant_id)
    raise_for_result(result)

    deleted = result.first
    return {
        "message": "Participant deleted successfully",
        "deleted_id": deleted.id,
        "certificate_number": deleted.certificate_number
    }
