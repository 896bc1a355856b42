import pytest
from sqlalchemy import text

from clubsponsor.extensions import db
from clubsponsor.models import EmailTemplateVersion
from clubsponsor.services.mailer import render_email
from clubsponsor.services.templates_flex import (
    EMPTY_TENANT_WARNING,
    TemplateInput,
    delete_tenant_templates,
    detect_mode,
    get_template_flex,
    list_versions,
    load_templates_flex,
    push_global_templates,
    resolve_template,
    rollback_to_version,
    save_template_flex,
)
from tests.conftest import SUPER_ADMIN_EMAIL, login

LEGACY_DDL = (
    "CREATE TABLE email_templates ("
    " id INTEGER PRIMARY KEY AUTOINCREMENT,"
    " tenant_id INTEGER,"
    " type VARCHAR(64) NOT NULL,"
    " subject VARCHAR(255) NOT NULL DEFAULT '',"
    " html_body TEXT NOT NULL DEFAULT '',"
    " updated_at DATETIME)"
)


def _save(key, subject, html="<p>x</p>", tenant_id=None, id=None):
    res = save_template_flex(TemplateInput(key=key, subject=subject, html=html, tenant_id=tenant_id, id=id))
    assert res.ok, res.to_dict()
    return res


@pytest.fixture
def legacy_table(app):
    db.session.execute(text("DROP TABLE email_templates"))
    db.session.execute(text(LEGACY_DDL))
    db.session.commit()


def test_mode_a_insert_and_load(tenant):
    res = _save("invitation", "Global subject")
    assert res.to_dict() == {"ok": True, "id": res.id, "mode": "A", "action": "insert"}
    _save("invitation", "Club subject", tenant_id=tenant.id)

    loaded = load_templates_flex(tenant.id)
    assert loaded.ok
    assert loaded.mode == "A"
    assert [r["scope"] for r in loaded.rows] == ["global", "tenant"]
    assert "email_templates" in loaded.last_sql

    assert [r["subject"] for r in load_templates_flex(None).rows] == ["Global subject"]
    assert detect_mode() == "A"


def test_invalid_tenant_loads_globals_with_warning(tenant):
    _save("invitation", "Global subject")
    _save("invitation", "Club subject", tenant_id=tenant.id)
    for bad in ("", "abc", 0, -3, True):
        loaded = load_templates_flex(bad)
        assert loaded.warnings == [EMPTY_TENANT_WARNING]
        assert [r["scope"] for r in loaded.rows] == ["global"]
    assert load_templates_flex(str(tenant.id)).warnings == []


def test_resolve_prefers_tenant_override(tenant, other_tenant):
    _save("invitation", "Global subject")
    _save("invitation", "Club subject", tenant_id=tenant.id)
    assert resolve_template(tenant.id, "invitation")["subject"] == "Club subject"
    assert resolve_template(other_tenant.id, "invitation")["subject"] == "Global subject"
    assert resolve_template(tenant.id, "unknown") is None


def test_render_uses_stored_template(tenant):
    _save("test", "Hello {{club_name}}", html="<p>Dear {{sponsor_name}}</p>", tenant_id=tenant.id)
    rendered = render_email("test", tenant, {"club_name": "FC Lyon Nord", "sponsor_name": "Paul"})
    assert rendered.subject == "Hello FC Lyon Nord"
    assert rendered.source == "tenant"
    assert rendered.html.startswith("<p>Dear Paul</p>")
    assert rendered.text.startswith("Dear Paul")


def test_update_snapshots_versions_and_rollback(app):
    res = _save("reminder", "v1", html="<p>one</p>")
    _save("reminder", "v2", html="<p>two</p>", id=res.id)
    _save("reminder", "v3", html="<p>three</p>", id=res.id)

    versions = list_versions(res.id)
    assert [(v.version_number, v.subject) for v in versions] == [(2, "v2"), (1, "v1")]

    first = next(v for v in versions if v.version_number == 1)
    back = rollback_to_version(res.id, first.id)
    assert back.ok and back.action == "update"
    row, mode = get_template_flex(res.id)
    assert (row["subject"], row["html"], mode) == ("v1", "<p>one</p>", "A")
    assert EmailTemplateVersion.query.filter_by(template_id=res.id).count() == 3


def test_update_missing_row(app):
    res = save_template_flex(TemplateInput(id=999, key="x", subject="y", html=""))
    assert res.ok is False
    assert res.to_dict()["status"] == 404
    assert res.to_dict()["message"] == "no row updated"


def test_duplicate_key_is_a_conflict(tenant):
    _save("invitation", "a", tenant_id=tenant.id)
    res = save_template_flex(TemplateInput(key="invitation", subject="b", html="", tenant_id=tenant.id))
    assert res.ok is False
    assert res.error.status == 409


def test_push_global_templates(tenant, other_tenant):
    _save("invitation", "Global invitation")
    _save("reminder", "Global reminder")
    _save("invitation", "Club invitation", tenant_id=tenant.id)

    counts = push_global_templates("safe")
    assert counts == {"tenants": 2, "created": 3, "updated": 0, "skipped": 1, "failed": 0}
    assert resolve_template(tenant.id, "invitation")["subject"] == "Club invitation"
    assert resolve_template(other_tenant.id, "reminder")["scope"] == "tenant"

    counts = push_global_templates("force", tenant_ids=[tenant.id])
    assert counts == {"tenants": 1, "created": 0, "updated": 2, "skipped": 0, "failed": 0}
    assert resolve_template(tenant.id, "invitation")["subject"] == "Global invitation"


def test_push_rejects_unknown_mode(app):
    from clubsponsor.services.errors import ServiceError

    with pytest.raises(ServiceError):
        push_global_templates("merge")


def test_mode_b_legacy_table(legacy_table, tenant):
    res = _save("invitation", "Legacy global", html="<p>old</p>")
    assert res.mode == "B"
    _save("invitation", "Legacy club", tenant_id=tenant.id)
    _save("invitation", "Legacy global v2", html="<p>new</p>", id=res.id)

    loaded = load_templates_flex(tenant.id)
    assert loaded.mode == "B"
    assert {r["key"] for r in loaded.rows} == {"invitation"}
    assert resolve_template(tenant.id, "invitation")["subject"] == "Legacy club"

    row, mode = get_template_flex(res.id)
    assert mode == "B"
    assert row["html"] == "<p>new</p>"
    assert row["updated_at"] is not None
    assert [v.subject for v in list_versions(res.id)] == ["Legacy global"]
    assert detect_mode() == "B"

    assert delete_tenant_templates(tenant.id) == 1
    assert resolve_template(tenant.id, "invitation")["subject"] == "Legacy global v2"


def test_templates_api_for_club(club_client, tenant):
    glob = _save("invitation", "Global subject")

    resp = club_client.get("/api/templates/")
    assert resp.status_code == 200
    assert resp.get_json()["mode"] == "A"

    resp = club_client.put(f"/api/templates/{glob.id}", json={"key": "invitation", "subject": "Hacked"})
    assert resp.status_code == 403

    resp = club_client.post("/api/templates/", json={"key": "invitation", "subject": "Ours {{club_name}}",
                                                     "html": "<p>{{campaign_title}}</p>"})
    assert resp.status_code == 201
    tpl_id = resp.get_json()["id"]

    shown = club_client.get(f"/api/templates/{tpl_id}").get_json()["template"]
    assert shown["tenant_id"] == tenant.id
    assert shown["placeholders"] == ["club_name", "campaign_title"]

    resp = club_client.put(f"/api/templates/{tpl_id}", json={"key": "invitation", "subject": "Ours v2"})
    assert resp.status_code == 200
    versions = club_client.get(f"/api/templates/{tpl_id}/versions").get_json()["versions"]
    assert [v["subject"] for v in versions] == ["Ours {{club_name}}"]

    resp = club_client.post(f"/api/templates/{tpl_id}/versions/{versions[0]['id']}/rollback")
    assert resp.status_code == 200
    assert club_client.get(f"/api/templates/{tpl_id}").get_json()["template"]["subject"] == "Ours {{club_name}}"

    assert club_client.post("/api/templates/", json={"html": "<p/>"}).status_code == 422


def test_templates_of_other_club_are_forbidden(club_client, other_tenant):
    foreign = _save("invitation", "Theirs", tenant_id=other_tenant.id)
    assert club_client.get(f"/api/templates/{foreign.id}").status_code == 403


def test_super_admin_edits_globals(client, super_admin):
    login(client, SUPER_ADMIN_EMAIL)
    resp = client.post("/api/templates/", json={"key": "welcome", "subject": "Welcome!"})
    assert resp.status_code == 201
    row, _ = get_template_flex(resp.get_json()["id"])
    assert row["tenant_id"] is None


def test_super_admin_as_tenant_writes_club_copy(client, super_admin, tenant):
    login(client, SUPER_ADMIN_EMAIL)
    resp = client.post(f"/api/templates/?as_tenant={tenant.id}", json={"key": "invitation", "subject": "Club copy"})
    assert resp.status_code == 201
    row, _ = get_template_flex(resp.get_json()["id"])
    assert row["tenant_id"] == tenant.id
    assert resolve_template(tenant.id, "invitation")["scope"] == "tenant"
    assert load_templates_flex(None).rows == []

    resp = client.put(f"/api/templates/{row['id']}?as_tenant={tenant.id}",
                      json={"key": "invitation", "subject": "Club copy v2"})
    assert resp.status_code == 200
    assert get_template_flex(row["id"])[0]["subject"] == "Club copy v2"


def test_preview_and_placeholders(club_client):
    resp = club_client.post("/api/templates/preview", json={
        "subject": "{{club_name}} x {{sponsor_name}}",
        "html": "<p>{{campaign_title}}</p>",
        "values": {"sponsor_name": "Zoe"},
    })
    preview = resp.get_json()["preview"]
    assert preview["subject"] == "FC Lyon Nord x Zoe"
    assert preview["html"].startswith("<p>LED Screens 2025</p><br/><p>Le bureau du FC Lyon Nord</p><hr/><small>")
    assert "Data protection" in preview["text"]

    body = club_client.get("/api/templates/placeholders").get_json()
    assert "invite_link" in body["placeholders"]
    assert body["examples"]["club_name"] == "FC Example"
