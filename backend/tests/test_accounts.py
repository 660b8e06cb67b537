from fastapi.testclient import TestClient

from campusconnect.accounts import merge_interests
from campusconnect.models import Account, Message, Profile, Relationship


def test_update_user_email(client: TestClient, register_user):
    user_id = register_user(email="old@x.com", password="pw")
    r = client.put(f"/user/{user_id}", json={"email": "new@x.com"})
    assert r.status_code == 200

    assert client.post("/login/user", json={"email": "new@x.com", "password": "pw"}).status_code == 200
    assert client.post("/login/user", json={"email": "old@x.com", "password": "pw"}).status_code == 404


def test_update_user_password(client: TestClient, register_user):
    user_id = register_user(email="a@x.com", password="pw")
    assert client.put(f"/user/{user_id}", json={"password": "pw2"}).status_code == 200
    assert client.post("/login/user", json={"email": "a@x.com", "password": "pw"}).status_code == 401
    assert client.post("/login/user", json={"email": "a@x.com", "password": "pw2"}).status_code == 200


def test_update_user_email_taken(client: TestClient, register_user):
    register_user(email="taken@x.com")
    user_id = register_user(email="mine@x.com")
    r = client.put(f"/user/{user_id}", json={"email": "taken@x.com"})
    assert r.status_code == 400


def test_update_unknown_user(client: TestClient):
    r = client.put("/user/" + "0" * 32, json={"email": "x@x.com"})
    assert r.status_code == 404


def test_get_profile(client: TestClient, register_user):
    user_id = register_user(first_name="Ines")
    r = client.get(f"/profiles/user/{user_id}")
    assert r.status_code == 200
    profile = r.json()["profile"]
    assert profile["userId"] == user_id
    assert profile["firstName"] == "Ines"
    assert profile["isTutor"] is False


def test_get_profile_not_found(client: TestClient):
    assert client.get("/profiles/user/" + "f" * 32).status_code == 404
    assert client.get("/profiles/user/not-an-id").status_code == 404


def test_update_profile_merges_interests(client: TestClient, register_user):
    user_id = register_user()
    r = client.put(f"/profiles/user/{user_id}", json={"bio": "hello", "interests": ["chess", "go"]})
    assert r.status_code == 200
    assert r.json()["profile"]["interests"] == ["chess", "go"]

    r = client.put(f"/profiles/user/{user_id}", json={"interests": ["go", "jazz"], "isTutor": True})
    profile = r.json()["profile"]
    assert profile["interests"] == ["chess", "go", "jazz"]
    assert profile["bio"] == "hello"
    assert profile["isTutor"] is True


def test_update_profile_without_interests_keeps_them(client: TestClient, register_user):
    user_id = register_user()
    client.put(f"/profiles/user/{user_id}", json={"interests": ["chess"]})
    r = client.put(f"/profiles/user/{user_id}", json={"campus": "Nord"})
    profile = r.json()["profile"]
    assert profile["interests"] == ["chess"]
    assert profile["campus"] == "Nord"


def test_update_profile_not_found(client: TestClient):
    r = client.put("/profiles/user/" + "0" * 32, json={"bio": "x"})
    assert r.status_code == 404


def test_list_profiles(client: TestClient, register_user):
    a = register_user(first_name="A")
    b = register_user(first_name="B")
    r = client.get("/profiles/users")
    assert r.status_code == 200
    assert [p["userId"] for p in r.json()["profiles"]] == [a, b]


def test_delete_user_cascades(client: TestClient, register_user, db_session):
    a = register_user()
    b = register_user()
    c = register_user()
    client.post("/friends/user", json={"senderId": a, "receiverId": b})
    client.post("/friends/user", json={"senderId": c, "receiverId": a})
    client.post("/friends/user", json={"senderId": b, "receiverId": c})
    client.post("/send", json={"senderId": a, "receiverId": b, "content": "hi"})
    client.post("/send", json={"senderId": c, "receiverId": a, "content": "yo"})
    client.post("/send", json={"senderId": b, "receiverId": c, "content": "stays"})

    r = client.delete(f"/delete/user/{a}")
    assert r.status_code == 200
    body = r.json()
    assert body["deletedRelationships"] == 2
    assert body["deletedMessages"] == 2

    assert client.get(f"/profiles/user/{a}").status_code == 404
    assert db_session.get(Account, a) is None
    assert db_session.query(Profile).filter_by(user_id=a).count() == 0
    assert db_session.query(Relationship).count() == 1
    assert [m.content for m in db_session.query(Message).all()] == ["stays"]

    # second attempt
    assert client.delete(f"/delete/user/{a}").status_code == 404


def test_merge_interests():
    assert merge_interests(["a", "b"], ["b", "c", "c"]) == ["a", "b", "c"]
    assert merge_interests([], [" x ", ""]) == ["x"]
    assert merge_interests(None, ["a"]) == ["a"]
