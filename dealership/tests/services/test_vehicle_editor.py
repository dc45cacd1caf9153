import threading

import pytest

from dealership.app.services.blob_store import BlobStoreError
from dealership.app.services.record_store import NotFoundError, RecordStore
from dealership.app.services.vehicle_editor import (
    DeleteConfirmationError,
    UploadedPhoto,
    VehicleEditor,
    VehicleValidationError,
    can_confirm_delete,
)

FORM = {"make": "Porsche", "model": "911", "build_year": 2015, "price": 74950}


def photo(name="front.jpg", content_type="image/jpeg", size=10):
    return UploadedPhoto(filename=name, content_type=content_type, data=b"x" * size)


class FlakyBlobStore:
    """Wraps a real store and fails uploads for filenames containing 'broken'."""

    def __init__(self, inner):
        self.inner = inner
        self.removed = []

    async def upload(self, path, data, content_type=None):
        if "broken" in path:
            raise BlobStoreError(f"Upload failed for {path}")
        return await self.inner.upload(path, data, content_type)

    async def remove(self, paths):
        paths = list(paths)
        self.removed.extend(paths)
        await self.inner.remove(paths)

    def public_url(self, path):
        return self.inner.public_url(path)

    def path_from_public_url(self, url):
        return self.inner.path_from_public_url(url)

    def build_key(self, vehicle_id, filename=None):
        key = self.inner.build_key(vehicle_id, filename)
        return f"{key}-broken" if filename and "broken" in filename else key


def test_delete_confirmation_is_exact_and_case_sensitive():
    assert can_confirm_delete("Porsche", "Porsche")
    assert not can_confirm_delete("Porsche", "porsche")
    assert not can_confirm_delete("Porsche", "Porsche ")
    assert not can_confirm_delete("", "")


@pytest.mark.asyncio
async def test_create_validates_before_any_write(store, blob_store):
    editor = VehicleEditor(store, blob_store)
    with pytest.raises(VehicleValidationError):
        await editor.create({"make": "Porsche", "model": "", "build_year": 2015, "price": 1})
    with pytest.raises(VehicleValidationError):
        await editor.create(FORM, [photo(content_type="image/gif")])
    assert store.list_vehicles() == []


@pytest.mark.asyncio
async def test_create_orders_photos_by_batch_position(store, blob_store):
    editor = VehicleEditor(store, blob_store, concurrency=2)
    vehicle = await editor.create(FORM, [photo("a.jpg"), photo("b.png", "image/png"), photo("c.webp", "image/webp")])
    assert [image.display_order for image in vehicle.images] == [0, 1, 2]
    assert [image.storage_path.rsplit(".", 1)[1] for image in vehicle.images] == ["jpg", "png", "webp"]
    assert all(blob_store.exists(image.storage_path) for image in vehicle.images)
    assert vehicle.images[0].url.startswith("http://media.test/car-images/")


@pytest.mark.asyncio
async def test_failed_upload_is_skipped(store, blob_store):
    editor = VehicleEditor(store, FlakyBlobStore(blob_store))
    vehicle = await editor.create(FORM, [photo("a.jpg"), photo("broken.jpg"), photo("c.jpg")])
    assert [image.display_order for image in vehicle.images] == [0, 2]


@pytest.mark.asyncio
async def test_add_photos_appends_after_highest_order(store, blob_store):
    editor = VehicleEditor(store, blob_store)
    vehicle = await editor.create(FORM, [photo("a.jpg"), photo("b.jpg")])
    images = await editor.add_photos(vehicle.id, [photo("c.jpg"), photo("d.jpg")])
    assert [image.display_order for image in images] == [0, 1, 2, 3]


@pytest.mark.asyncio
async def test_add_photos_to_unknown_vehicle(store, blob_store):
    with pytest.raises(NotFoundError):
        await VehicleEditor(store, blob_store).add_photos("missing", [photo()])


@pytest.mark.asyncio
async def test_move_photo_swaps_and_renumbers(store, blob_store):
    editor = VehicleEditor(store, blob_store)
    vehicle = await editor.create(FORM, [photo("a.jpg"), photo("b.jpg"), photo("c.jpg")])
    a, b, c = [image.id for image in vehicle.images]

    await editor.move_photo(vehicle.id, c, "up")
    assert [(image.id, image.display_order) for image in store.list_images(vehicle.id)] == [(a, 0), (c, 1), (b, 2)]

    unchanged = await editor.move_photo(vehicle.id, a, "up")
    assert [image.id for image in unchanged] == [a, c, b]
    await editor.move_photo(vehicle.id, b, "down")
    assert [image.id for image in store.list_images(vehicle.id)] == [a, c, b]


@pytest.mark.asyncio
async def test_delete_photo_removes_object_and_row(store, blob_store):
    editor = VehicleEditor(store, blob_store)
    vehicle = await editor.create(FORM, [photo("a.jpg"), photo("b.jpg")])
    first = vehicle.images[0]
    await editor.delete_photo(vehicle.id, first.id)
    assert not blob_store.exists(first.storage_path)
    assert [image.id for image in store.list_images(vehicle.id)] == [vehicle.images[1].id]


@pytest.mark.asyncio
async def test_delete_requires_matching_make(store, blob_store):
    editor = VehicleEditor(store, blob_store)
    vehicle = await editor.create(FORM)
    with pytest.raises(DeleteConfirmationError):
        await editor.delete(vehicle.id, "porsche")
    assert store.get_vehicle(vehicle.id).make == "Porsche"


@pytest.mark.asyncio
async def test_delete_removes_photos_then_record(store, blob_store):
    flaky = FlakyBlobStore(blob_store)
    editor = VehicleEditor(store, flaky)
    vehicle = await editor.create(FORM, [photo("a.jpg"), photo("b.jpg")])
    await editor.delete(vehicle.id, "Porsche")
    assert sorted(flaky.removed) == sorted(image.storage_path for image in vehicle.images)
    with pytest.raises(NotFoundError):
        store.get_vehicle(vehicle.id)
    assert store.list_images(vehicle.id) == []


@pytest.mark.asyncio
async def test_update_rewrites_record(store, blob_store):
    editor = VehicleEditor(store, blob_store)
    vehicle = await editor.create(FORM)
    updated = await editor.update(vehicle.id, {**FORM, "price": 69950, "status": "sold", "reserved": True})
    assert updated.price == 69950
    assert updated.status == "sold"
    assert updated.reserved is False
    assert updated.updated_at is not None


class ThreadRecordingStore(RecordStore):
    """Records which thread each image write runs on."""

    def __init__(self):
        super().__init__()
        self.write_threads = []

    def insert_image(self, *args, **kwargs):
        self.write_threads.append(threading.get_ident())
        return super().insert_image(*args, **kwargs)

    def update_image_order(self, image_id, order):
        self.write_threads.append(threading.get_ident())
        super().update_image_order(image_id, order)


@pytest.mark.asyncio
async def test_database_writes_run_off_the_event_loop(blob_store):
    store = ThreadRecordingStore()
    editor = VehicleEditor(store, blob_store, concurrency=2)
    vehicle = await editor.create(FORM, [photo("a.jpg"), photo("b.jpg")])
    await editor.move_photo(vehicle.id, vehicle.images[1].id, "up")

    loop_thread = threading.get_ident()
    assert len(store.write_threads) == 4
    assert loop_thread not in store.write_threads
