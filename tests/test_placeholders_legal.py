from types import SimpleNamespace

from clubsponsor.services.email_legal import (
    append_legal,
    extract_rgpd_excerpt,
    html_to_text,
    inject_signature_and_rgpd,
    markdown_to_html,
)
from clubsponsor.services.placeholders import (
    apply_placeholders,
    confirmation_values,
    invitation_values,
    reminder_values,
    used_placeholders,
)


def _tenant(**kw):
    base = {"name": "FC Test", "email_contact": "club@fc-test.fr", "phone": None,
            "email_signature_html": None, "rgpd_content_md": None}
    base.update(kw)
    return SimpleNamespace(**base)


def test_apply_placeholders_blanks_unknown_keys():
    out = apply_placeholders("Hi {{sponsor_name}}, {{missing}}! {{club_name}}", {"sponsor_name": "Paul", "club_name": None})
    assert out == "Hi Paul, ! "


def test_apply_placeholders_leaves_malformed_tokens():
    assert apply_placeholders("{{ spaced }} {single}", {"spaced": "x"}) == "{{ spaced }} {single}"


def test_used_placeholders_distinct_in_order():
    text = "{{club_name}} {{campaign_title}} {{club_name}} {{invite_link}}"
    assert used_placeholders(text) == ["club_name", "campaign_title", "invite_link"]
    assert used_placeholders(None) == []


def test_invitation_values(campaign, sponsors, tenant):
    values = invitation_values(tenant, campaign, sponsors[0], "https://x/respond/abc")
    assert values["club_name"] == "FC Lyon Nord"
    assert values["campaign_title"] == "LED screens 2027"
    assert values["sponsor_name"] == "Paul Petit"
    assert values["amount_hint"] == "2 500"
    assert values["campaign_objective"] == "10 000"
    assert values["screen_type"] == "Outdoor LED"
    assert values["footfall"] == "1200"
    assert "deadline" not in values
    assert values["club_contact_name"] == ""
    assert values["club_contact_email"] == "contact@fc-lyon-nord.fr"


def test_reminder_values_add_the_deadline(campaign, sponsors, tenant):
    values = reminder_values(tenant, campaign, sponsors[0], "https://x/respond/abc")
    assert values["deadline"] == campaign.deadline.strftime("%d/%m/%Y")
    assert values["sponsor_name"] == "Paul Petit"

    campaign.deadline = None
    assert reminder_values(tenant, campaign, sponsors[0], "")["deadline"] == ""


def test_confirmation_values_hide_amount_unless_yes(campaign, tenant):
    maybe = SimpleNamespace(sponsor_name="Lea", sponsor_company=None, status="maybe", amount_euros=0.0)
    yes = SimpleNamespace(sponsor_name="Lea", sponsor_company="Garage", status="yes", amount_euros=1500.0)
    assert confirmation_values(tenant, campaign, maybe)["pledge_amount"] == ""
    assert confirmation_values(tenant, campaign, maybe)["response_status"] == "Maybe"
    assert confirmation_values(tenant, campaign, yes)["pledge_amount"] == "1 500"


def test_html_to_text():
    html = "<style>p{color:red}</style><p>Hello<br/>there</p><p>Bye</p><script>x()</script>"
    assert html_to_text(html) == "Hello\nthere\n\nBye"
    assert html_to_text(None) == ""


def test_html_to_text_collapses_blank_lines():
    assert html_to_text("<p>a</p><p></p><p></p><p>b</p>") == "a\n\nb"


def test_append_legal_escapes_rgpd():
    tenant = _tenant(email_signature_html="<b>Sig</b>", rgpd_content_md="Line <1>\nLine 2")
    assert append_legal("<p>Body</p>", tenant) == (
        "<p>Body</p><br/><b>Sig</b><hr/><small>Line &lt;1&gt;<br/>Line 2</small>"
    )
    assert append_legal("<p>Body</p>", None) == "<p>Body</p>"
    assert append_legal("<p>Body</p>", _tenant()) == "<p>Body</p><br/>"


def test_inject_signature_and_rgpd():
    tenant = _tenant(email_signature_html="<p>The   <b>board</b></p>", rgpd_content_md="# Data\nWe keep it safe.")
    html, text = inject_signature_and_rgpd("<p>Hi</p>", "Hi", tenant)
    assert "<p>The   <b>board</b></p>" in html
    assert "Data protection</h4>" in html
    assert "We keep it safe." in html
    assert text == "Hi\n\n---\nThe board\n\n--- Data protection ---\n# Data\nWe keep it safe."


def test_inject_without_legal_content_is_identity():
    assert inject_signature_and_rgpd("<p>Hi</p>", "Hi", _tenant()) == ("<p>Hi</p>", "Hi")


def test_markdown_to_html_subset():
    out = markdown_to_html("# Title\n- item <x>\n\ntext")
    lines = out.split("\n")
    assert lines[0].startswith("<h1") and "Title</h1>" in lines[0]
    assert "item &lt;x&gt;</li>" in lines[1]
    assert lines[2] == "<br />"
    assert lines[3].startswith("<p") and "text</p>" in lines[3]
    assert markdown_to_html("") == ""


def test_extract_rgpd_excerpt():
    assert extract_rgpd_excerpt("# Heading\n\n  First real line  \nSecond") == "First real line"
    assert extract_rgpd_excerpt(None) == ""
    assert extract_rgpd_excerpt("# Only headings\n## More") == ""
    long = "x" * 250
    excerpt = extract_rgpd_excerpt(long)
    assert len(excerpt) == 200
    assert excerpt.endswith("...")
