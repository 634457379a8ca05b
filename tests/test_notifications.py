"""
Notification tests - template rendering, the inbox service, the dispatcher
and the /api/v1/notifications endpoints.
"""

import pytest

from hours_workflow.models import db
from hours_workflow.models.notification import EmailLog, Notification
from hours_workflow.services.declaration_service import DeclarationService
from hours_workflow.services.declaration_store import DeclarationStore
from hours_workflow.services.email_service import EmailService
from hours_workflow.services.notification import (
    TEMPLATES,
    NotificationDispatcher,
    NotificationService,
    render,
)
from hours_workflow.services.workflow_engine import (
    NotificationIntent,
    RecipientSelector,
    WORKFLOW_TRANSITIONS,
)

BASE = "/api/v1/notifications"


def _notify(email, title="Hello", **kw):
    notif = NotificationService.create(recipient_email=email, title=title, **kw)
    db.session.commit()
    return notif


# ═════════════════════════════════════════════════════════════════════════════
# Templates
# ═════════════════════════════════════════════════════════════════════════════


class TestTemplates:
    def test_every_engine_template_exists(self):
        for rule in WORKFLOW_TRANSITIONS.values():
            assert rule.approve_template in TEMPLATES
            assert rule.reject_template in TEMPLATES
            if rule.next_reviewer_template:
                assert rule.next_reviewer_template in TEMPLATES
        for template_id in ("declaration_submitted", "pending_verification", "pending_director_validation"):
            assert template_id in TEMPLATES

    def test_render_fills_context(self):
        subject, body, kind = render("declaration_rejected_by_director", {
            "user_name": "Amina Diallo", "course": "SQL Lab", "date": "02/03/2026",
            "rejection_reason": "duplicate",
        })
        assert subject == "Teaching-hours declaration rejected"
        assert "Amina Diallo" in body
        assert "Reason: duplicate" in body
        assert kind == "error"

    def test_missing_keys_are_left_as_placeholders(self):
        _, body, _ = render("pending_verification", {})
        assert "{user_name}" in body

    def test_unknown_template(self):
        with pytest.raises(KeyError):
            render("no_such_template", {})


# ═════════════════════════════════════════════════════════════════════════════
# Inbox service
# ═════════════════════════════════════════════════════════════════════════════


class TestNotificationService:
    def test_list_newest_first_and_unread_filter(self):
        first = _notify("a@example.edu", "first")
        _notify("a@example.edu", "second")
        _notify("b@example.edu", "other")
        NotificationService.mark_read(first.id, "a@example.edu")

        items, total = NotificationService.list_for_recipient("a@example.edu")
        assert total == 2
        assert [n.title for n in items] == ["second", "first"]

        items, total = NotificationService.list_for_recipient("a@example.edu", unread_only=True)
        assert [n.title for n in items] == ["second"]
        assert NotificationService.unread_count("a@example.edu") == 1

    def test_mark_read_of_someone_else_is_refused(self):
        notif = _notify("a@example.edu")
        assert NotificationService.mark_read(notif.id, "b@example.edu") is None
        assert db.session.get(Notification, notif.id).is_read is False

    def test_mark_all_read(self):
        _notify("a@example.edu")
        _notify("a@example.edu")
        assert NotificationService.mark_all_read("a@example.edu") == 2
        assert NotificationService.unread_count("a@example.edu") == 0

    def test_delete(self):
        notif = _notify("a@example.edu")
        assert NotificationService.delete(notif.id, "b@example.edu") is False
        assert NotificationService.delete(notif.id, "a@example.edu") is True
        assert Notification.query.count() == 0


# ═════════════════════════════════════════════════════════════════════════════
# Dispatcher
# ═════════════════════════════════════════════════════════════════════════════


class _FailingEmail:
    calls = 0
    error = OSError("connection refused")

    @classmethod
    def send(cls, **kwargs):
        cls.calls += 1
        if cls.calls == 1:
            raise cls.error
        return EmailService.send(**kwargs)


class TestDispatcher:
    @pytest.fixture()
    def declaration(self, teacher, make_payload, org, monkeypatch, app):
        monkeypatch.setitem(app.config, "NOTIFICATIONS_ENABLED", False)
        decl = DeclarationService().create_declaration(teacher.to_actor(), make_payload(org.cs))
        monkeypatch.setitem(app.config, "NOTIFICATIONS_ENABLED", True)
        return decl

    def test_context_resolves_names(self, declaration):
        ctx = NotificationDispatcher(DeclarationStore()).build_context(declaration, {})
        assert ctx["user_name"] == "Amina Diallo"
        assert ctx["course"] == "CS Element"
        assert ctx["department"] == "Computer Science"
        assert ctx["date"] == "02/03/2026"
        assert ctx["hours"] == "3.5"

    @pytest.mark.parametrize("error", [
        OSError("connection refused"),
        TypeError("bad context"),
        AttributeError("missing attribute"),
    ])
    def test_one_failing_intent_does_not_block_the_next(self, declaration, teacher, registrar,
                                                        monkeypatch, error):
        monkeypatch.setattr(_FailingEmail, "error", error)
        _FailingEmail.calls = 0
        dispatcher = NotificationDispatcher(DeclarationStore(), email_service=_FailingEmail)
        intents = [
            NotificationIntent(RecipientSelector.author(teacher.id), "declaration_submitted"),
            NotificationIntent(RecipientSelector.role("registrar"), "pending_verification"),
        ]
        delivered = dispatcher.dispatch(intents, declaration)
        assert delivered == 1
        assert [n.recipient_email for n in Notification.query.all()] == [registrar.email]

    def test_unknown_template_is_logged_not_raised(self, declaration, teacher):
        dispatcher = NotificationDispatcher(DeclarationStore())
        intents = [NotificationIntent(RecipientSelector.author(teacher.id), "no_such_template")]
        assert dispatcher.dispatch(intents, declaration) == 0
        assert Notification.query.count() == 0

    def test_no_recipient_is_not_an_error(self, declaration):
        dispatcher = NotificationDispatcher(DeclarationStore())
        intents = [NotificationIntent(RecipientSelector.department_heads(declaration.department_id),
                                      "pending_department_approval")]
        assert dispatcher.dispatch(intents, declaration) == 0

    def test_email_log_in_dev_mode(self, declaration, teacher):
        NotificationDispatcher(DeclarationStore()).dispatch(
            [NotificationIntent(RecipientSelector.author(teacher.id), "declaration_submitted")],
            declaration,
        )
        log = EmailLog.query.one()
        assert log.status == "sent"
        assert log.recipient_email == teacher.email
        assert log.template_name == "declaration_submitted"
        assert log.declaration_id == declaration.id


# ═════════════════════════════════════════════════════════════════════════════
# API
# ═════════════════════════════════════════════════════════════════════════════


class TestNotificationAPI:
    @pytest.fixture()
    def inbox(self, client, auth, teacher, registrar, make_payload, org):
        """Teacher submits → teacher and registrar each get one notification."""
        res = client.post("/api/v1/declarations", json=make_payload(org.cs), headers=auth(teacher))
        assert res.status_code == 201
        return res.get_json()

    def test_list(self, client, auth, inbox, registrar):
        res = client.get(BASE, headers=auth(registrar))
        body = res.get_json()
        assert body["total"] == 1
        assert body["unread_count"] == 1
        assert body["items"][0]["template_id"] == "pending_verification"
        assert body["items"][0]["declaration_id"] == inbox["id"]

    def test_unread_count_and_mark_read(self, client, auth, inbox, teacher):
        items = client.get(BASE, headers=auth(teacher)).get_json()["items"]
        nid = items[0]["id"]
        res = client.post(f"{BASE}/{nid}/read", headers=auth(teacher))
        assert res.status_code == 200
        assert res.get_json()["is_read"] is True
        assert client.get(f"{BASE}/unread-count", headers=auth(teacher)).get_json() == {"unread_count": 0}

    def test_cannot_touch_someone_elses_notification(self, client, auth, inbox, teacher, registrar):
        nid = client.get(BASE, headers=auth(teacher)).get_json()["items"][0]["id"]
        assert client.post(f"{BASE}/{nid}/read", headers=auth(registrar)).status_code == 404
        assert client.delete(f"{BASE}/{nid}", headers=auth(registrar)).status_code == 404

    def test_read_all_and_delete(self, client, auth, inbox, teacher):
        res = client.post(f"{BASE}/read-all", headers=auth(teacher))
        assert res.get_json() == {"marked_read": 1}
        nid = client.get(BASE, headers=auth(teacher)).get_json()["items"][0]["id"]
        assert client.delete(f"{BASE}/{nid}", headers=auth(teacher)).status_code == 200
        assert client.get(BASE, headers=auth(teacher)).get_json()["total"] == 0
