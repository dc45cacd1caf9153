from __future__ import annotations

import json
from typing import List, Literal

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from pydantic import ValidationError

from dealership.app.api.deps import get_editor, get_places_client, get_record_store, require_admin
from dealership.app.schemas import VehicleForm, VehicleImageRead, VehicleRead
from dealership.app.services.blob_store import BlobStoreError
from dealership.app.services.inventory_import import ImportFileError, import_inventory
from dealership.app.services.places_client import PlacesClient
from dealership.app.services.record_store import NotFoundError, RecordStore
from dealership.app.services.review_sync import ReviewSyncError, sync_reviews
from dealership.app.services.vehicle_editor import (
    DeleteConfirmationError,
    UploadedPhoto,
    VehicleEditor,
    VehicleValidationError,
)

router = APIRouter(dependencies=[Depends(require_admin)])


async def _read_photos(files: List[UploadFile]) -> List[UploadedPhoto]:
    photos = []
    for upload in files:
        data = await upload.read()
        photos.append(
            UploadedPhoto(
                filename=upload.filename or "photo",
                content_type=upload.content_type or "application/octet-stream",
                data=data,
            )
        )
    return photos


def _vehicle(vehicle) -> dict:
    return VehicleRead.model_validate(vehicle).model_dump(mode="json")


def _images(images) -> list:
    return [VehicleImageRead.model_validate(image).model_dump(mode="json") for image in images]


@router.get("/vehicles")
async def list_all_vehicles(store: RecordStore = Depends(get_record_store)):
    return [_vehicle(vehicle) for vehicle in store.list_vehicles()]


@router.post("/vehicles", status_code=201)
async def create_vehicle(form: VehicleForm, editor: VehicleEditor = Depends(get_editor)):
    vehicle = await editor.create(form)
    return _vehicle(vehicle)


@router.post("/vehicles/with-photos", status_code=201)
async def create_vehicle_with_photos(
    data: str = Form(...),
    files: List[UploadFile] = File(default=[]),
    editor: VehicleEditor = Depends(get_editor),
):
    try:
        form = VehicleForm.model_validate(json.loads(data))
    except (ValueError, ValidationError) as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    photos = await _read_photos(files)
    try:
        vehicle = await editor.create(form, photos)
    except VehicleValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _vehicle(vehicle)


@router.put("/vehicles/{vehicle_id}")
async def update_vehicle(vehicle_id: str, form: VehicleForm, editor: VehicleEditor = Depends(get_editor)):
    try:
        vehicle = await editor.update(vehicle_id, form)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _vehicle(vehicle)


@router.delete("/vehicles/{vehicle_id}", status_code=204)
async def delete_vehicle(vehicle_id: str, confirm: str = "", editor: VehicleEditor = Depends(get_editor)):
    try:
        await editor.delete(vehicle_id, confirm)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except DeleteConfirmationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except BlobStoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.get("/vehicles/{vehicle_id}/photos")
async def list_photos(vehicle_id: str, store: RecordStore = Depends(get_record_store)):
    return _images(store.list_images(vehicle_id))


@router.post("/vehicles/{vehicle_id}/photos", status_code=201)
async def upload_photos(
    vehicle_id: str,
    files: List[UploadFile] = File(...),
    editor: VehicleEditor = Depends(get_editor),
):
    photos = await _read_photos(files)
    try:
        images = await editor.add_photos(vehicle_id, photos)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except VehicleValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _images(images)


@router.delete("/vehicles/{vehicle_id}/photos/{photo_id}", status_code=204)
async def delete_photo(vehicle_id: str, photo_id: str, editor: VehicleEditor = Depends(get_editor)):
    try:
        await editor.delete_photo(vehicle_id, photo_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except BlobStoreError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.post("/vehicles/{vehicle_id}/photos/{photo_id}/move")
async def move_photo(
    vehicle_id: str,
    photo_id: str,
    direction: Literal["up", "down"],
    editor: VehicleEditor = Depends(get_editor),
):
    try:
        images = await editor.move_photo(vehicle_id, photo_id, direction)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _images(images)


@router.post("/import")
async def import_spreadsheet(file: UploadFile = File(...), store: RecordStore = Depends(get_record_store)):
    content = await file.read()
    try:
        summary = import_inventory(store, file.filename or "upload.csv", content)
    except ImportFileError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return summary.as_dict()


@router.post("/reviews/sync")
async def run_review_sync(client: PlacesClient = Depends(get_places_client)):
    try:
        summary = await sync_reviews(client, sync_type="manual")
    except ReviewSyncError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"success": True, "summary": summary}
