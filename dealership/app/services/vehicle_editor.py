from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, Union

from loguru import logger
from pydantic import ValidationError

from dealership.app.core.logs import log_api_error
from dealership.app.core.settings import settings
from dealership.app.db import models
from dealership.app.schemas import VehicleForm
from dealership.app.services.blob_store import BlobStore, BlobStoreError
from dealership.app.services.record_store import NotFoundError, RecordStore

ALLOWED_PHOTO_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
MAX_PHOTO_BYTES = 5 * 1024 * 1024
MAX_FILENAME_LENGTH = 255
MOVE_DIRECTIONS = ("up", "down")


class VehicleValidationError(ValueError):
    """Raised before any I/O when a form or photo is not acceptable."""


class DeleteConfirmationError(PermissionError):
    """Raised when the typed confirmation does not match the vehicle's make."""


@dataclass
class UploadedPhoto:
    filename: str
    content_type: str
    data: bytes


def can_confirm_delete(make: str, typed: str) -> bool:
    """Delete is enabled only when the operator re-types the make exactly."""
    return bool(make) and typed == make


def validate_photo(photo: UploadedPhoto) -> None:
    if photo.content_type not in ALLOWED_PHOTO_TYPES:
        raise VehicleValidationError(
            f"{photo.filename}: invalid file type. Only JPEG, PNG, and WebP images are allowed."
        )
    if len(photo.data) > MAX_PHOTO_BYTES:
        raise VehicleValidationError(f"{photo.filename}: file size too large. Maximum size is 5MB.")
    if len(photo.filename) > MAX_FILENAME_LENGTH:
        raise VehicleValidationError("File name too long. Maximum 255 characters.")


def _as_form(form: Union[VehicleForm, Mapping[str, Any]]) -> VehicleForm:
    if isinstance(form, VehicleForm):
        return form
    try:
        return VehicleForm.model_validate(dict(form))
    except ValidationError as exc:
        raise VehicleValidationError(str(exc)) from exc


class VehicleEditor:
    """Admin create/update/delete of vehicles and their photos."""

    def __init__(self, store: RecordStore, blob_store: BlobStore, concurrency: Optional[int] = None):
        self.store = store
        self.blob_store = blob_store
        self.concurrency = max(1, concurrency or settings.upload_concurrency)

    async def create(
        self,
        form: Union[VehicleForm, Mapping[str, Any]],
        photos: Sequence[UploadedPhoto] = (),
    ) -> models.Vehicle:
        """Insert a vehicle, then attach whichever of ``photos`` upload successfully.

        Image rows are written in batch order with ``display_order`` equal to the
        photo's position in ``photos``; a failed upload leaves a gap.
        """
        vehicle_form = _as_form(form)
        for photo in photos:
            validate_photo(photo)

        vehicle = await asyncio.to_thread(self.store.insert_vehicle, vehicle_form.model_dump())
        logger.info("Created vehicle {} ({} {})", vehicle.id, vehicle.make, vehicle.model)
        if photos:
            await self._attach(vehicle.id, photos, start=0)
        return await asyncio.to_thread(self.store.get_vehicle, vehicle.id)

    async def update(self, vehicle_id: str, form: Union[VehicleForm, Mapping[str, Any]]) -> models.Vehicle:
        vehicle_form = _as_form(form)
        vehicle = await asyncio.to_thread(self.store.update_vehicle, vehicle_id, vehicle_form.model_dump())
        logger.info("Updated vehicle {}", vehicle_id)
        return vehicle

    async def delete(self, vehicle_id: str, confirmation: str) -> None:
        vehicle = await asyncio.to_thread(self.store.get_vehicle, vehicle_id)
        if not can_confirm_delete(vehicle.make, confirmation):
            raise DeleteConfirmationError(f"Type '{vehicle.make}' to confirm deletion")

        paths = [path for path in (self._object_path(image) for image in vehicle.images) if path]
        if paths:
            await self.blob_store.remove(paths)
        await asyncio.to_thread(self.store.delete_vehicle, vehicle_id)
        logger.info("Deleted vehicle {} and {} photos", vehicle_id, len(paths))

    async def add_photos(self, vehicle_id: str, photos: Sequence[UploadedPhoto]) -> List[models.VehicleImage]:
        for photo in photos:
            validate_photo(photo)
        existing = await asyncio.to_thread(self.store.list_images, vehicle_id)
        if not existing:
            # raises NotFoundError for an unknown vehicle
            await asyncio.to_thread(self.store.get_vehicle, vehicle_id)
        start = max((image.display_order for image in existing), default=-1) + 1
        await self._attach(vehicle_id, photos, start=start)
        return await asyncio.to_thread(self.store.list_images, vehicle_id)

    async def delete_photo(self, vehicle_id: str, photo_id: str) -> None:
        image = await self._find_image(vehicle_id, photo_id)
        path = self._object_path(image)
        if path:
            await self.blob_store.remove([path])
        await asyncio.to_thread(self.store.delete_image, photo_id)
        logger.info("Deleted photo {} of vehicle {}", photo_id, vehicle_id)

    async def move_photo(self, vehicle_id: str, photo_id: str, direction: str) -> List[models.VehicleImage]:
        """Swap a photo with its neighbour and renumber the list 0..n-1.

        Rows are rewritten one at a time in list order. Moving the first photo
        up or the last photo down changes nothing.
        """
        if direction not in MOVE_DIRECTIONS:
            raise VehicleValidationError(f"Unsupported direction '{direction}'")
        images = await asyncio.to_thread(self.store.list_images, vehicle_id)
        index = next((i for i, image in enumerate(images) if image.id == photo_id), None)
        if index is None:
            raise NotFoundError(f"Image {photo_id} not found for vehicle {vehicle_id}")

        target = index - 1 if direction == "up" else index + 1
        if target < 0 or target >= len(images):
            return images

        images[index], images[target] = images[target], images[index]
        for order, image in enumerate(images):
            await asyncio.to_thread(self.store.update_image_order, image.id, order)
            image.display_order = order
        return images

    async def _attach(self, vehicle_id: str, photos: Sequence[UploadedPhoto], start: int) -> int:
        semaphore = asyncio.Semaphore(self.concurrency)

        async def upload(photo: UploadedPhoto) -> Optional[str]:
            path = self.blob_store.build_key(vehicle_id, photo.filename)
            async with semaphore:
                try:
                    return await self.blob_store.upload(path, photo.data, photo.content_type)
                except BlobStoreError as exc:
                    log_api_error("POST", "/storage/upload-images", exc, vehicle_id=vehicle_id, file=photo.filename)
                    return None

        paths = await asyncio.gather(*(upload(photo) for photo in photos))

        stored = 0
        for offset, path in enumerate(paths):
            if path is None:
                continue
            await asyncio.to_thread(
                self.store.insert_image,
                vehicle_id,
                self.blob_store.public_url(path),
                start + offset,
                storage_path=path,
            )
            stored += 1
        logger.info("Uploaded {} of {} photos for vehicle {}", stored, len(photos), vehicle_id)
        return stored

    async def _find_image(self, vehicle_id: str, photo_id: str) -> models.VehicleImage:
        for image in await asyncio.to_thread(self.store.list_images, vehicle_id):
            if image.id == photo_id:
                return image
        raise NotFoundError(f"Image {photo_id} not found for vehicle {vehicle_id}")

    def _object_path(self, image: models.VehicleImage) -> Optional[str]:
        return image.storage_path or self.blob_store.path_from_public_url(image.url)
