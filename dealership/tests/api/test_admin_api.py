import io
import json

import httpx
import pandas as pd
import pytest
from fastapi.testclient import TestClient

from dealership.app.api.deps import get_blob_store, get_places_client
from dealership.app.api.main import app
from dealership.app.db.session import session_scope
from dealership.app.services.places_client import PlacesClient
from dealership.app.services.security import create_access_token, create_user


client = TestClient(app)

JPEG = b"\xff\xd8\xff\xe0" + b"0" * 64

GOLF = {"make": "Volkswagen", "model": "Golf", "build_year": 2019, "price": 17950, "fuel_type": "Benzine"}


class FakeTransport:
    def __init__(self, responses):
        self._responses = list(responses)
        self.calls = []

    async def request(self, method, path, *, params=None, json=None, headers=None, timeout):
        if not self._responses:
            raise AssertionError("No more responses configured")
        self.calls.append({"method": method, "path": path, "params": params})
        return self._responses.pop(0)

    async def close(self):
        return None


def make_response(status_code: int, body: dict) -> httpx.Response:
    request = httpx.Request("GET", "https://maps.googleapis.com")
    return httpx.Response(status_code=status_code, json=body, request=request)


def _headers(is_admin=True):
    with session_scope() as session:
        email = "admin@garage.test" if is_admin else "staff@garage.test"
        user = create_user(session, email, "geheim123", is_admin=is_admin)
        user_id = user.id
    return {"Authorization": f"Bearer {create_access_token(user_id, admin=is_admin)}"}


@pytest.fixture
def admin(blob_store):
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    yield _headers()
    app.dependency_overrides.clear()


def test_admin_routes_require_an_admin_token():
    assert client.get("/admin/vehicles").status_code == 401
    bad = {"Authorization": "Bearer not-a-token"}
    assert client.get("/admin/vehicles", headers=bad).status_code == 401
    assert client.get("/admin/vehicles", headers=_headers(is_admin=False)).status_code == 403


def test_create_update_and_list(admin):
    response = client.post("/admin/vehicles", json=GOLF, headers=admin)
    assert response.status_code == 201
    vehicle = response.json()
    assert vehicle["status"] == "for_sale"

    updated = client.put(
        f"/admin/vehicles/{vehicle['id']}", json={**GOLF, "status": "sold", "reserved": True}, headers=admin
    )
    assert updated.status_code == 200
    assert (updated.json()["status"], updated.json()["reserved"]) == ("sold", False)

    listed = client.get("/admin/vehicles", headers=admin).json()
    assert [row["id"] for row in listed] == [vehicle["id"]]


def test_invalid_form_is_rejected(admin):
    response = client.post("/admin/vehicles", json={**GOLF, "make": "  "}, headers=admin)
    assert response.status_code == 422
    response = client.post("/admin/vehicles", json={**GOLF, "available_soon": True, "reserved": True}, headers=admin)
    assert response.status_code == 422
    assert client.put("/admin/vehicles/missing", json=GOLF, headers=admin).status_code == 404


def test_create_with_photos_and_reorder(admin, blob_store):
    files = [
        ("files", ("front.jpg", JPEG, "image/jpeg")),
        ("files", ("side.png", JPEG, "image/png")),
        ("files", ("back.webp", JPEG, "image/webp")),
    ]
    response = client.post("/admin/vehicles/with-photos", data={"data": json.dumps(GOLF)}, files=files, headers=admin)
    assert response.status_code == 201
    vehicle = response.json()
    images = vehicle["images"]
    assert [image["display_order"] for image in images] == [0, 1, 2]
    assert all(image["url"].startswith("http://media.test/car-images/") for image in images)

    moved = client.post(
        f"/admin/vehicles/{vehicle['id']}/photos/{images[2]['id']}/move",
        params={"direction": "up"},
        headers=admin,
    ).json()
    assert [image["id"] for image in moved] == [images[0]["id"], images[2]["id"], images[1]["id"]]
    assert [image["display_order"] for image in moved] == [0, 1, 2]

    unchanged = client.post(
        f"/admin/vehicles/{vehicle['id']}/photos/{images[0]['id']}/move",
        params={"direction": "up"},
        headers=admin,
    ).json()
    assert [image["id"] for image in unchanged] == [image["id"] for image in moved]


def test_invalid_photo_type_is_rejected_before_insert(admin):
    files = [("files", ("notes.pdf", b"%PDF", "application/pdf"))]
    response = client.post("/admin/vehicles/with-photos", data={"data": json.dumps(GOLF)}, files=files, headers=admin)
    assert response.status_code == 400
    assert client.get("/admin/vehicles", headers=admin).json() == []


def test_add_and_delete_photo(admin, blob_store):
    vehicle = client.post("/admin/vehicles", json=GOLF, headers=admin).json()
    added = client.post(
        f"/admin/vehicles/{vehicle['id']}/photos",
        files=[("files", ("a.jpg", JPEG, "image/jpeg"))],
        headers=admin,
    )
    assert added.status_code == 201
    image = added.json()[0]
    path = blob_store.path_from_public_url(image["url"])
    assert blob_store.exists(path)

    response = client.delete(f"/admin/vehicles/{vehicle['id']}/photos/{image['id']}", headers=admin)
    assert response.status_code == 204
    assert not blob_store.exists(path)
    assert client.get(f"/admin/vehicles/{vehicle['id']}/photos", headers=admin).json() == []


def test_delete_requires_typed_make(admin, blob_store):
    vehicle = client.post("/admin/vehicles", json=GOLF, headers=admin).json()
    client.post(
        f"/admin/vehicles/{vehicle['id']}/photos",
        files=[("files", ("a.jpg", JPEG, "image/jpeg"))],
        headers=admin,
    )
    path = blob_store.path_from_public_url(
        client.get(f"/admin/vehicles/{vehicle['id']}/photos", headers=admin).json()[0]["url"]
    )

    wrong = client.delete(f"/admin/vehicles/{vehicle['id']}", params={"confirm": "volkswagen"}, headers=admin)
    assert wrong.status_code == 400

    response = client.delete(f"/admin/vehicles/{vehicle['id']}", params={"confirm": "Volkswagen"}, headers=admin)
    assert response.status_code == 204
    assert not blob_store.exists(path)
    assert client.get(f"/vehicles/{vehicle['id']}").status_code == 404


def test_import_spreadsheet(admin):
    buffer = io.BytesIO()
    pd.DataFrame([{"Merk": "Mazda", "Model": "MX-5", "Bouwjaar": 2016, "Prijs": 16950}]).to_excel(buffer, index=False)
    response = client.post(
        "/admin/import",
        files={"file": ("voorraad.xlsx", buffer.getvalue(), "application/octet-stream")},
        headers=admin,
    )
    assert response.status_code == 200
    assert response.json()["rows_ingested"] == 1

    empty = client.post("/admin/import", files={"file": ("leeg.csv", b"", "text/csv")}, headers=admin)
    assert empty.status_code == 400


def test_manual_review_sync(admin):
    body = {
        "status": "OK",
        "result": {
            "name": "Garage",
            "rating": 4.6,
            "user_ratings_total": 88,
            "reviews": [
                {"author_name": "Piet", "rating": 5, "text": "Top", "time": 200},
                {"author_name": "Kees", "rating": 3, "text": "Matig", "time": 100},
            ],
        },
    }
    app.dependency_overrides[get_places_client] = lambda: PlacesClient(
        "key", transport=FakeTransport([make_response(200, body)])
    )
    response = client.post("/admin/reviews/sync", headers=admin)
    assert response.status_code == 200
    summary = response.json()["summary"]
    assert summary["new_reviews_added"] == 1
    assert summary["total_place_reviews"] == 88


def test_failed_review_sync_is_bad_gateway(admin):
    app.dependency_overrides[get_places_client] = lambda: PlacesClient(
        "key", transport=FakeTransport([make_response(200, {"status": "OVER_QUERY_LIMIT"})])
    )
    response = client.post("/admin/reviews/sync", headers=admin)
    assert response.status_code == 502
    assert "OVER_QUERY_LIMIT" in response.json()["detail"]
