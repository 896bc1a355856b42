from clubsponsor.extensions import db
from clubsponsor.models import AppUser, EmailEvent, EmailLog, EmailTemplate, EmailTemplateVersion, Invitation, Tenant
from clubsponsor.routes.api_auth_utils import READ_ONLY_MESSAGE
from clubsponsor.services.email_events import add_invitation_event
from clubsponsor.services.templates_flex import TemplateInput, load_templates_flex, save_template_flex
from tests.conftest import CLUB_ADMIN_EMAIL, login

NEW_TENANT = {
    "name": "Olympique Caluire",
    "email_contact": "Contact@Olympique-Caluire.fr",
    "admin_email": "president@olympique-caluire.fr",
    "admin_password": "caluire69",
    "admin_name": "Nadia Benali",
}


def test_console_requires_super_admin(client, club_admin):
    assert client.get("/admin/dashboard").status_code == 401
    login(client, CLUB_ADMIN_EMAIL)
    resp = client.get("/admin/tenants")
    assert resp.status_code == 403
    assert resp.get_json()["error"]["message"] == "Super-admin access required."


def test_create_tenant_sends_welcome_mail(admin_client, super_admin, outbox):
    resp = admin_client.post("/admin/tenants", json=NEW_TENANT)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["tenant"]["name"] == "Olympique Caluire"
    assert body["tenant"]["email_contact"] == "contact@olympique-caluire.fr"
    assert body["admin"]["role"] == "club_admin"
    assert body["admin"]["tenant_id"] == body["tenant"]["id"]

    assert len(outbox) == 1
    assert outbox[0].subject == "Welcome to ClubSponsor, Olympique Caluire"
    assert outbox[0].recipients == ["president@olympique-caluire.fr"]

    entry = EmailLog.query.one()
    assert (entry.template_key, entry.status, entry.user_id) == ("welcome", "sent", super_admin.id)

    resp = admin_client.post("/admin/tenants", json=dict(NEW_TENANT, name="Other"))
    assert resp.status_code == 409
    assert "admin_email" in resp.get_json()["error"]["errors"]
    assert Tenant.query.count() == 1


def test_create_tenant_validation(admin_client):
    resp = admin_client.post("/admin/tenants", json=dict(NEW_TENANT, admin_password="123", email_contact="nope"))
    assert resp.status_code == 422
    errors = resp.get_json()["error"]["errors"]
    assert set(errors) >= {"admin_password", "email_contact"}


def test_list_tenants_search_and_pages(admin_client, app):
    app.config["TENANTS_PER_PAGE"] = 2
    for name in ("US Bron", "FC Vaulx", "AS Bron Terraillon"):
        db.session.add(Tenant(name=name, email_contact=f"contact@{name.split()[-1].lower()}.fr"))
    db.session.commit()

    body = admin_client.get("/admin/tenants?page=2").get_json()
    assert (body["total"], body["page"], body["per_page"], body["pages"]) == (3, 2, 2, 2)
    assert len(body["rows"]) == 1

    body = admin_client.get("/admin/tenants?q=bron").get_json()
    assert sorted(r["name"] for r in body["rows"]) == ["AS Bron Terraillon", "US Bron"]
    assert body["rows"][0]["campaigns_count"] == 0


def test_update_toggle_delete(admin_client, tenant, club_admin, campaign):
    resp = admin_client.put(f"/admin/tenants/{tenant.id}",
                            json={"name": "FC Lyon Nord 69", "email_contact": "bureau@fc-lyon-nord.fr"})
    assert resp.get_json()["tenant"]["name"] == "FC Lyon Nord 69"

    assert admin_client.post(f"/admin/tenants/{tenant.id}/toggle").get_json()["tenant"]["status"] == "inactive"
    assert admin_client.post(f"/admin/tenants/{tenant.id}/toggle").get_json()["tenant"]["status"] == "active"

    dashboard = admin_client.get("/admin/dashboard").get_json()
    assert (dashboard["tenants"], dashboard["active_tenants"], dashboard["campaigns"]) == (1, 1, 1)

    assert admin_client.delete(f"/admin/tenants/{tenant.id}").status_code == 200
    assert db.session.get(Tenant, tenant.id) is None
    assert AppUser.query.filter_by(email=CLUB_ADMIN_EMAIL).first() is None
    assert admin_client.get(f"/admin/tenants/{tenant.id}").status_code == 404


def test_delete_tenant_leaves_no_email_rows_behind(admin_client, tenant, campaign, sponsors):
    first = save_template_flex(TemplateInput(key="invitation", subject="v1", html="<p>v1</p>", tenant_id=tenant.id))
    save_template_flex(TemplateInput(id=first.id, key="invitation", subject="v2", html="<p>v2</p>"))
    assert EmailTemplateVersion.query.filter_by(template_id=first.id).count() == 1

    invitation = Invitation.issue(campaign, sponsors[0], expiry_days=30)
    db.session.add(invitation)
    db.session.flush()
    add_invitation_event(invitation, "opened")
    db.session.add(EmailLog(to_email="tresorier@fc-lyon-nord.fr", status="sent", tenant_id=tenant.id))
    db.session.commit()
    old_id = tenant.id

    assert admin_client.delete(f"/admin/tenants/{old_id}").status_code == 200
    assert EmailTemplate.query.filter_by(tenant_id=old_id).count() == 0
    assert EmailTemplateVersion.query.filter_by(template_id=first.id).count() == 0
    assert EmailEvent.query.count() == 0
    assert [log.tenant_id for log in EmailLog.query.all()] == [None]

    reborn = Tenant(name="AS Caluire")
    db.session.add(reborn)
    db.session.commit()
    assert [r for r in load_templates_flex(reborn.id).rows if r["scope"] == "tenant"] == []


def test_super_admin_needs_a_club_for_club_routes(admin_client, tenant):
    resp = admin_client.get("/api/club/dashboard")
    assert resp.status_code == 403
    assert resp.get_json()["error"]["message"] == "No club selected."


def test_masquerade(admin_client, tenant, campaign):
    resp = admin_client.post(f"/admin/tenants/{tenant.id}/masquerade")
    assert resp.get_json()["is_masquerading"] is True

    context = admin_client.get("/api/club/context").get_json()
    assert context["effective_tenant_id"] == tenant.id
    assert context["is_masquerading"] is True
    assert len(admin_client.get("/api/club/dashboard").get_json()["campaigns"]) == 1

    assert admin_client.delete("/admin/masquerade").get_json()["is_masquerading"] is False
    assert admin_client.get("/api/club/context").status_code == 403

    assert admin_client.post("/admin/tenants/999/masquerade").status_code == 404


def test_as_tenant_query_starts_masquerade(admin_client, tenant):
    resp = admin_client.get(f"/api/club/settings?as_tenant={tenant.id}")
    assert resp.get_json()["club"]["name"] == "FC Lyon Nord"
    assert admin_client.get("/api/club/context").get_json()["is_masquerading"] is True


def test_suspended_club_is_read_only(club_client, tenant, campaign):
    tenant.status = "inactive"
    db.session.commit()

    assert club_client.get("/api/club/settings").status_code == 200
    resp = club_client.put("/api/club/settings", json={"name": "Renamed", "email_contact": "a@fc-lyon-nord.fr"})
    assert resp.status_code == 403
    assert resp.get_json()["error"]["message"] == READ_ONLY_MESSAGE
    assert club_client.post("/api/campaigns/", json={"title": "Blocked"}).status_code == 403
    assert club_client.get("/api/club/context").get_json()["read_only"] is True


def test_club_settings(club_client, tenant):
    resp = club_client.put("/api/club/settings", json={
        "name": "FC Lyon Nord",
        "email_contact": "bureau@fc-lyon-nord.fr",
        "phone": "+33 4 78 00 00 00",
        "primary_color": "#1e40af",
        "email_domain": "FC-Lyon-Nord.fr",
    })
    assert resp.status_code == 200
    club = resp.get_json()["club"]
    assert club["email_domain"] == "fc-lyon-nord.fr"
    assert club["email_domain_verified"] is False
    assert club["primary_color"] == "#1e40af"

    resp = club_client.put("/api/club/settings", json={"name": ""})
    assert resp.status_code == 422
    assert set(resp.get_json()["error"]["errors"]) >= {"name", "email_contact"}


def test_club_legal(club_client, tenant):
    legal = club_client.get("/api/club/legal").get_json()
    assert legal["legal"]["email_signature_html"] == "<p>Le bureau du FC Lyon Nord</p>"

    resp = club_client.put("/api/club/legal", json={"cgu_content_md": "# Terms", "rgpd_content_md": "",
                                                   "opt_out_default": "true"})
    body = resp.get_json()
    assert body["legal"]["cgu_content_md"] == "# Terms"
    assert body["legal"]["rgpd_content_md"] is None
    assert body["opt_out_default"] is True


def test_club_test_email(club_client, tenant, outbox):
    resp = club_client.post("/api/club/test-email", json={})
    body = resp.get_json()
    assert body["sent"] is True
    assert body["log"]["to_email"] == CLUB_ADMIN_EMAIL
    assert outbox[0].subject == "[Test] FC Lyon Nord"
    assert "Le bureau du FC Lyon Nord" in outbox[0].html

    assert club_client.post("/api/club/test-email", json={"to": "nobody"}).status_code == 422


def test_admin_test_email_and_logs(admin_client, tenant, outbox):
    resp = admin_client.post("/admin/email/test", json={"to": "qa@clubsponsor.fr", "tenant_id": tenant.id})
    assert resp.get_json()["sent"] is True
    assert resp.get_json()["log"]["tenant_id"] == tenant.id

    admin_client.post("/admin/email/test", json={"to": "ops@clubsponsor.fr"})
    assert [m.subject for m in outbox] == ["[Test] FC Lyon Nord", "[Test] FC Example"]

    body = admin_client.get("/admin/email/logs").get_json()
    assert body["total"] == 2
    assert body["page"] == 1
    labels = {r["to_email"]: r["tenant_label"] for r in body["rows"]}
    assert labels == {"qa@clubsponsor.fr": "FC Lyon Nord", "ops@clubsponsor.fr": "—"}
    assert body["rows"][0]["user_label"] == "root@clubsponsor.fr"

    filtered = admin_client.get("/admin/email/logs?q=qa@").get_json()
    assert [r["to_email"] for r in filtered["rows"]] == ["qa@clubsponsor.fr"]
    assert admin_client.get("/admin/email/logs?status=failed").get_json()["total"] == 0


def test_admin_push_templates(admin_client, tenant, other_tenant):
    admin_client.post("/api/templates/", json={"key": "invitation", "subject": "Global"})
    body = admin_client.post("/admin/templates/push", json={"mode": "safe"}).get_json()
    assert (body["tenants"], body["created"]) == (2, 2)
    assert admin_client.post("/admin/templates/push", json={"mode": "merge"}).status_code == 400


def test_admin_rejects_malformed_ids(admin_client, tenant, outbox):
    resp = admin_client.post("/admin/email/test", json={"to": "qa@clubsponsor.fr", "tenant_id": "abc"})
    assert resp.status_code == 422
    assert resp.get_json()["error"]["errors"] == {"tenant_id": "Must be an integer."}
    assert outbox == []

    resp = admin_client.post("/admin/templates/push", json={"mode": "safe", "tenant_ids": [tenant.id, "x"]})
    assert resp.status_code == 422

    body = admin_client.get("/admin/email/logs?page_size=abc&tenant_id=x&page=zz").get_json()
    assert body["ok"] is True
    assert (body["total"], body["page"]) == (0, 1)
