import io
import os

from fastapi.testclient import TestClient

from campusconnect.photos import PhotoStore


def _upload(client, user_id, content=b"\x89PNG fake", name="me.png"):
    return client.post(
        "/upload",
        data={"userId": user_id},
        files={"file": (name, io.BytesIO(content), "image/png")},
    )


def test_upload_and_fetch_photo(client: TestClient, register_user, settings):
    user_id = register_user(first_name="Joe")
    r = _upload(client, user_id)
    assert r.status_code == 200
    assert r.json()["fileUrl"] == f"/file/{user_id}"

    photo_url = client.get(f"/profiles/user/{user_id}").json()["profile"]["photoUrl"]
    assert photo_url.startswith("Joe-") and photo_url.endswith(".png")
    assert os.path.isfile(os.path.join(settings.upload_dir, photo_url))

    r = client.get(f"/file/{user_id}")
    assert r.status_code == 200
    assert r.content == b"\x89PNG fake"


def test_new_upload_replaces_old_file(client: TestClient, register_user, settings):
    user_id = register_user()
    _upload(client, user_id, content=b"one")
    first = client.get(f"/profiles/user/{user_id}").json()["profile"]["photoUrl"]
    _upload(client, user_id, content=b"two", name="me.jpg")

    assert client.get(f"/file/{user_id}").content == b"two"
    assert not os.path.exists(os.path.join(settings.upload_dir, first))


def test_upload_without_file(client: TestClient, register_user):
    user_id = register_user()
    r = client.post("/upload", data={"userId": user_id})
    assert r.status_code == 400


def test_upload_without_user_id(client: TestClient):
    r = client.post("/upload", files={"file": ("me.png", io.BytesIO(b"x"), "image/png")})
    assert r.status_code == 400


def test_upload_unknown_user(client: TestClient):
    assert _upload(client, "0" * 32).status_code == 404


def test_upload_too_large(client: TestClient, register_user, settings):
    user_id = register_user()
    r = _upload(client, user_id, content=b"x" * (settings.max_upload_bytes + 1))
    assert r.status_code == 400
    assert os.listdir(settings.upload_dir) == []


def test_photo_not_found(client: TestClient, register_user):
    user_id = register_user()
    assert client.get(f"/file/{user_id}").status_code == 404
    assert client.get("/file/" + "0" * 32).status_code == 404


def test_photo_removed_with_account(client: TestClient, register_user, settings):
    user_id = register_user()
    _upload(client, user_id)
    client.delete(f"/delete/user/{user_id}")
    assert os.listdir(settings.upload_dir) == []


def test_unexpected_failure_keeps_error_shape(app, settings, monkeypatch):
    def broken_save(self, stream, original_name, owner_name):
        raise OSError("disk full")

    monkeypatch.setattr(PhotoStore, "save", broken_save)
    with TestClient(app, raise_server_exceptions=False) as c:
        user_id = c.post(
            "/register/user",
            json={"firstName": "Joe", "lastName": "Doe", "email": "disk@x.com", "password": "pw", "sexe": "m"},
        ).json()["userId"]
        r = _upload(c, user_id)

    assert r.status_code == 500
    assert r.json() == {"message": "Internal server error", "error": "internal"}
    assert not os.path.exists(settings.upload_dir) or os.listdir(settings.upload_dir) == []
