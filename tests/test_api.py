"""HTTP layer: auth, public and admin routes, error mapping."""

import asyncio

from conftest import JPEG_HEADER

JPEG = JPEG_HEADER + b"\x00" * 2048


def _create_event(client, name="Wedding", date="2025-01-15"):
    r = client.post("/api/admin/events", data={"name": name, "date": date})
    assert r.status_code == 201, r.text
    return r.json()


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "running"
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_login_rejects_bad_credentials(client):
    r = client.post("/api/auth/login", json={"username": "admin", "password": "wrong"})
    assert r.status_code == 401
    assert r.json()["code"] == "unauthorized"


def test_admin_routes_require_session(client):
    assert client.get("/api/admin/events").status_code == 401
    r = client.get("/api/admin/events", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401


def test_bearer_token_works_without_cookie(client):
    token = client.post("/api/auth/login", json={"username": "admin", "password": "admin123"}).json()["access_token"]
    client.cookies.clear()
    r = client.get("/api/admin/events", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 200


def test_logout_clears_session(admin_client):
    admin_client.post("/api/auth/logout")
    assert admin_client.get("/api/admin/events").status_code == 401


def test_create_upload_and_browse(admin_client):
    event = _create_event(admin_client)
    assert event["id"].startswith("evento-")
    assert event["thumbnail"] == "/placeholder.jpg"

    r = admin_client.post(
        f"/api/admin/events/{event['id']}/photos",
        files=[("files", ("beach day.jpg", JPEG, "image/jpeg"))],
    )
    assert r.status_code == 201, r.text
    photo = r.json()["photos"][0]
    assert photo["filename"].endswith("-beach_day.jpg")

    events = admin_client.get("/api/events").json()
    assert [e["id"] for e in events] == [event["id"]]
    assert events[0]["photo_count"] == 1

    photos = admin_client.get(f"/api/events/{event['id']}/photos").json()
    assert [p["id"] for p in photos] == [photo["id"]]

    image = admin_client.get(photo["url"])
    assert image.status_code == 200
    assert image.headers["content-type"] == "image/jpeg"
    assert image.content == JPEG


def test_validation_errors_are_400(admin_client):
    r = admin_client.post("/api/admin/events", data={"name": "Wedding", "date": "someday"})
    assert r.status_code == 400
    assert r.json()["code"] == "validation_error"

    event = _create_event(admin_client)
    r = admin_client.post(
        f"/api/admin/events/{event['id']}/photos",
        files=[("files", ("notes.txt", b"hello", "text/plain"))],
    )
    assert r.status_code == 400


def test_hidden_event_is_not_public(admin_client):
    event = _create_event(admin_client)
    r = admin_client.put(f"/api/admin/events/{event['id']}", json={"visible": False})
    assert r.status_code == 200
    assert r.json()["visible"] is False

    assert admin_client.get("/api/events").json() == []
    assert admin_client.get(f"/api/events/{event['id']}").status_code == 404
    assert admin_client.get(f"/api/admin/events/{event['id']}").status_code == 200


def test_delete_event_then_not_found(admin_client):
    event = _create_event(admin_client)
    r = admin_client.delete(f"/api/admin/events/{event['id']}")
    assert r.status_code == 200
    assert r.json()["source"] == "relational"

    r = admin_client.delete(f"/api/admin/events/{event['id']}")
    assert r.status_code == 404
    assert r.json()["code"] == "not_found"


def test_delete_photo(admin_client):
    event = _create_event(admin_client)
    photo = admin_client.post(
        f"/api/admin/events/{event['id']}/photos",
        files=[("files", ("a.jpg", JPEG, "image/jpeg"))],
    ).json()["photos"][0]

    r = admin_client.delete(f"/api/admin/events/{event['id']}/photos/{photo['id']}")
    assert r.status_code == 200
    assert admin_client.get(photo["url"]).status_code == 404


def test_missing_image_is_404(client):
    assert client.get("/api/images/nowhere/none.jpg").status_code == 404


def test_hidden_legacy_event_stays_hidden(client, services):
    record = {"id": "old_party", "name": "Festa Antiga", "date": "2020-01-01", "visible": False}
    asyncio.run(services.metadata.save([record]))
    asyncio.run(services.objects.put_object("old_party/1.jpg", JPEG, "image/jpeg"))

    assert client.get("/api/events").json() == []
    assert client.get("/api/events/old_party").status_code == 404


def test_legacy_metadata_record_not_served_by_image_proxy(client, services):
    asyncio.run(services.metadata.save([{"id": "old", "name": "Old", "visible": False}]))

    assert client.get("/api/images/events/metadata.json").status_code == 404
    assert client.get("/api/images/events/./metadata.json").status_code == 404
