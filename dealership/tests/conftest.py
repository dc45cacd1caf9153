import os
import tempfile
from datetime import datetime, timedelta, timezone

_TMP = tempfile.mkdtemp(prefix="dealership-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_TMP}/test.db"
os.environ["OBJECT_STORE_BACKEND"] = "local"
os.environ["OBJECT_STORE_ROOT"] = f"{_TMP}/car-images"
os.environ["SECRET_KEY"] = "test-secret"
os.environ.pop("GOOGLE_PLACES_API_KEY", None)
os.environ.pop("RESEND_API_KEY", None)

import pytest

from dealership.app.db import models
from dealership.app.db.session import ENGINE, session_scope
from dealership.app.services.blob_store import LocalBlobStore
from dealership.app.services.record_store import RecordStore

models.Base.metadata.create_all(ENGINE)


def _truncate_tables():
    with session_scope() as session:
        for table in reversed(models.Base.metadata.sorted_tables):
            session.execute(table.delete())


@pytest.fixture(autouse=True)
def clean_tables():
    _truncate_tables()
    yield


@pytest.fixture
def store():
    return RecordStore()


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(tmp_path / "car-images", public_base_url="http://media.test/car-images")


@pytest.fixture
def make_vehicle(store):
    """Insert a vehicle; ``age_days`` backdates created_at so ordering is explicit."""
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)

    def _make(age_days=0, **fields):
        values = {"make": "Audi", "model": "A4", "build_year": 2018, "price": 15000, **fields}
        vehicle = store.insert_vehicle(values)
        with session_scope() as session:
            row = session.get(models.Vehicle, vehicle.id)
            row.created_at = base - timedelta(days=age_days)
        return store.get_vehicle(vehicle.id)

    return _make
