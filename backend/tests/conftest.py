import itertools

import pytest
from fastapi.testclient import TestClient

# 1) Import the app factory and the settings it takes
from campusconnect.auth import pwd_context
from campusconnect.config import Settings
from campusconnect.main import create_app


class RecordingNotifier:
    """Stands in for the socket.io notifier and remembers every publish."""

    def __init__(self):
        self.events = []

    async def publish(self, targets, event, payload):
        self.events.append((set(targets), event, payload))

    def named(self, event):
        return [(targets, payload) for targets, name, payload in self.events if name == event]


# 2) Cheap hashes, the tests register a lot of users
@pytest.fixture(scope="session", autouse=True)
def fast_password_hashing():
    pwd_context.update(bcrypt__rounds=4)
    yield


# 3) Each test gets its own in-memory database and upload dir
@pytest.fixture()
def settings(tmp_path):
    return Settings(
        database_url="sqlite://",
        secret_key="test-secret",
        upload_dir=str(tmp_path / "uploads"),
        max_upload_bytes=1024,
        search_service_url=None,
    )


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def app(settings, notifier):
    return create_app(settings, notifier=notifier)


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


# 4) Provide a raw SQLAlchemy session on the same database
@pytest.fixture()
def db_session(app):
    session = app.state.context.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def register_user(client):
    counter = itertools.count(1)

    def _register(first_name="Joe", last_name="Doe", email=None, password="joe1235", sexe="male"):
        email = email or f"user{next(counter)}@campus.test"
        resp = client.post(
            "/register/user",
            json={
                "firstName": first_name,
                "lastName": last_name,
                "email": email,
                "password": password,
                "sexe": sexe,
            },
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["userId"]

    return _register
