from tests.conftest import CLUB_ADMIN_EMAIL, PASSWORD, login


def test_healthz(client):
    resp = client.get("/healthz", headers={"X-Request-ID": "abc123"})
    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "ok"
    assert body["env"] == "testing"
    assert body["request_id"] == "abc123"
    assert resp.headers["X-Request-ID"] == "abc123"


def test_version(client):
    body = client.get("/version").get_json()
    assert body["public_base_url"] == "https://sponsor.example.org"
    assert "version" in body


def test_diag_templates(client):
    body = client.get("/_diag/templates").get_json()
    assert body["ok"] is True
    assert body["mode"] == "A"
    assert body["exists"] is True
    assert {"key", "html", "tenant_id"} <= set(body["columns"])
    assert set(body["expected"]) == {"A", "B"}
    assert body["dialect"] == "sqlite"


def test_unknown_api_route_is_json(client):
    resp = client.get("/api/nothing-here")
    assert resp.status_code == 404
    assert resp.get_json()["ok"] is False
    assert resp.get_json()["error"]["code"] == 404


def test_login_flow(client, club_admin, tenant):
    resp = client.get("/api/auth/me")
    assert resp.status_code == 401
    error = resp.get_json()["error"]
    assert error["code"] == 401
    assert error["request_id"]

    resp = client.post("/api/auth/login", json={"email": CLUB_ADMIN_EMAIL})
    assert resp.status_code == 422
    assert resp.get_json()["error"]["errors"] == {"password": "Required."}

    resp = client.post("/api/auth/login", json={"email": CLUB_ADMIN_EMAIL, "password": "wrong-pass"})
    assert resp.status_code == 401
    assert resp.get_json()["error"]["message"] == "Invalid email or password."

    body = login(client, CLUB_ADMIN_EMAIL.upper(), PASSWORD).get_json()
    assert body["user"]["role"] == "club_admin"
    assert body["context"]["tenant"]["name"] == "FC Lyon Nord"
    assert body["context"]["is_masquerading"] is False

    me = client.get("/api/auth/me").get_json()
    assert me["user"]["email"] == CLUB_ADMIN_EMAIL

    assert client.post("/api/auth/logout").get_json()["ok"] is True
    assert client.get("/api/auth/me").status_code == 401
