from fastapi.testclient import TestClient


def test_read_root(client: TestClient):
    r = client.get("/")
    assert r.status_code == 200
    assert r.json() == {"message": "CampusConnect API"}


def test_health(client: TestClient):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}
