import pytest
from fastapi.testclient import TestClient

from campusconnect.auth import (
    create_access_token,
    decode_access_token,
    get_password_hash,
    verify_password,
)
from campusconnect.errors import Conflict
from campusconnect.models import Account, Profile


def test_register_creates_account_and_profile(client: TestClient, db_session):
    response = client.post(
        "/register/user",
        json={
            "firstName": "Joe",
            "lastName": "Doe",
            "email": "joe@x.com",
            "password": "pw",
            "sexe": "male",
        },
    )
    assert response.status_code == 201
    user_id = response.json()["userId"]
    assert user_id

    profile = db_session.query(Profile).filter_by(user_id=user_id).first()
    assert profile, "Profile was not created"
    assert profile.first_name == "Joe"
    assert profile.last_name == "Doe"
    assert profile.interests == []

    account = db_session.get(Account, user_id)
    assert account.password_hash != "pw"
    assert verify_password("pw", account.password_hash)


def test_register_duplicate_email(client: TestClient, register_user):
    register_user(email="joe@x.com")
    response = client.post(
        "/register/user",
        json={
            "firstName": "Joe2",
            "lastName": "Doe2",
            "email": "JOE@x.com",
            "password": "joe1235",
            "sexe": "male",
        },
    )
    assert response.status_code == 400
    assert response.json()["error"] == "conflict"


def test_register_race_on_email_is_a_conflict(app, register_user, db_session):
    register_user(email="joe@x.com")
    service = app.state.context.accounts(db_session)
    # a concurrent registration slipped in between the check and the insert
    service._email_taken = lambda email: False

    with pytest.raises(Conflict):
        service.register("Joe", "Twin", "joe@x.com", "joe1235", "male")

    assert db_session.query(Account).filter_by(email="joe@x.com").count() == 1
    assert db_session.query(Profile).filter_by(first_name="Twin").count() == 0


def test_register_missing_fields(client: TestClient):
    # no sexe
    response = client.post(
        "/register/user",
        json={"firstName": "Joe", "lastName": "Doe", "email": "joe@x.com", "password": "pw"},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_input"

    # blank first name
    response2 = client.post(
        "/register/user",
        json={"firstName": " ", "lastName": "Doe", "email": "joe@x.com", "password": "pw", "sexe": "m"},
    )
    assert response2.status_code == 400


def test_login_happy_path(client: TestClient, register_user, settings):
    user_id = register_user(first_name="Alice", email="alice@x.com", password="secret123")

    response = client.post("/login/user", json={"email": "alice@x.com", "password": "secret123"})
    assert response.status_code == 200
    body = response.json()
    assert body["profile"]["userId"] == user_id
    assert body["profile"]["firstName"] == "Alice"
    assert body["tokenType"] == "bearer"
    assert decode_access_token(body["accessToken"], settings.secret_key, settings.algorithm) == user_id


def test_login_bad_password(client: TestClient, register_user):
    register_user(email="alice@x.com", password="secret123")
    response = client.post("/login/user", json={"email": "alice@x.com", "password": "wrongpw"})
    assert response.status_code == 401


def test_login_unknown_user(client: TestClient):
    response = client.post("/login/user", json={"email": "bob@x.com", "password": "doesntmatter"})
    assert response.status_code == 404


def test_login_missing_fields(client: TestClient):
    response = client.post("/login/user", json={"email": "alice@x.com"})
    assert response.status_code == 400


def test_token_round_trip():
    token = create_access_token({"sub": "abc"}, "k", "HS256", 5)
    assert decode_access_token(token, "k", "HS256") == "abc"
    assert decode_access_token(token, "other-key", "HS256") is None
    assert decode_access_token("not-a-token", "k", "HS256") is None


def test_expired_token_is_rejected():
    token = create_access_token({"sub": "abc"}, "k", "HS256", -1)
    assert decode_access_token(token, "k", "HS256") is None


def test_password_hash_verify():
    hashed = get_password_hash("secret123")
    assert verify_password("secret123", hashed), "Hash/verify failed in test"
    assert not verify_password("nope", hashed)
