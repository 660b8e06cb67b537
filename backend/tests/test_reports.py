from fastapi.testclient import TestClient


def test_create_report(client: TestClient, register_user):
    a = register_user()
    b = register_user()
    r = client.post("/signalement", json={"reporterId": a, "reportedId": b, "reason": "spam"})
    assert r.status_code == 201
    report = r.json()["report"]
    assert report["reporterId"] == a
    assert report["reportedId"] == b
    assert report["reason"] == "spam"

    reports = client.get("/signalements").json()["reports"]
    assert [x["id"] for x in reports] == [report["id"]]


def test_create_report_missing_fields(client: TestClient, register_user):
    a = register_user()
    assert client.post("/signalement", json={"reporterId": a, "reason": "spam"}).status_code == 400
    assert client.post("/signalement", json={"reporterId": a, "reportedId": a, "reason": ""}).status_code == 400


def test_reports_outlive_accounts(client: TestClient, register_user):
    a = register_user()
    b = register_user()
    client.post("/signalement", json={"reporterId": a, "reportedId": b, "reason": "rude"})
    client.delete(f"/delete/user/{b}")
    assert len(client.get("/signalements").json()["reports"]) == 1
