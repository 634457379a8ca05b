"""
Notification Service - templates, in-app inbox and intent dispatch.

The workflow engine only returns NotificationIntent values. The
NotificationDispatcher turns them into in-app Notification rows plus an
email per recipient, strictly after the declaration write has committed.
Delivery is best-effort: any failure is logged and swallowed so it can
never undo or block a status change.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from hours_workflow.models import db
from hours_workflow.models.notification import Notification
from hours_workflow.models.org import CourseElement, Department
from hours_workflow.services.email_service import EmailService

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Templates
# ═══════════════════════════════════════════════════════════════════════════

_SIGNATURE = "\n\nRegards,\nThe teaching-hours team"

TEMPLATES: dict[str, dict[str, str]] = {
    "declaration_submitted": {
        "subject": "Teaching-hours declaration submitted",
        "type": "info",
        "body": (
            "Hello {user_name},\n\n"
            "Your declaration for {course} on {date} has been submitted.\n\n"
            "{next_step}" + _SIGNATURE
        ),
    },
    "declaration_verified": {
        "subject": "Teaching-hours declaration verified",
        "type": "success",
        "body": (
            "Hello {user_name},\n\n"
            "Your declaration for {course} on {date} has been verified by the registrar.\n\n"
            "It is now awaiting approval by the head of the {department} department." + _SIGNATURE
        ),
    },
    "declaration_department_approved": {
        "subject": "Teaching-hours declaration approved by the department",
        "type": "success",
        "body": (
            "Hello {user_name},\n\n"
            "Your declaration for {course} on {date} has been approved by the head of the "
            "{department} department.\n\n"
            "It is now awaiting final validation by the director of studies." + _SIGNATURE
        ),
    },
    "declaration_director_validated": {
        "subject": "Teaching-hours declaration validated",
        "type": "success",
        "body": (
            "Hello {user_name},\n\n"
            "Your declaration for {course} on {date} has been validated by the director of studies.\n\n"
            "Payment will follow the usual procedure." + _SIGNATURE
        ),
    },
    "declaration_rejected_by_registrar": {
        "subject": "Teaching-hours declaration rejected",
        "type": "error",
        "body": (
            "Hello {user_name},\n\n"
            "Your declaration for {course} on {date} has been rejected by the registrar.\n\n"
            "Reason: {rejection_reason}\n\n"
            "You can edit and resubmit it, or delete it, from your personal space." + _SIGNATURE
        ),
    },
    "declaration_rejected_by_department_head": {
        "subject": "Teaching-hours declaration rejected",
        "type": "error",
        "body": (
            "Hello {user_name},\n\n"
            "Your declaration for {course} on {date} has been rejected by the head of the "
            "{department} department.\n\n"
            "Reason: {rejection_reason}\n\n"
            "You can edit and resubmit it, or delete it, from your personal space." + _SIGNATURE
        ),
    },
    "declaration_rejected_by_director": {
        "subject": "Teaching-hours declaration rejected",
        "type": "error",
        "body": (
            "Hello {user_name},\n\n"
            "Your declaration for {course} on {date} has been rejected by the director of studies.\n\n"
            "Reason: {rejection_reason}\n\n"
            "You can edit and resubmit it, or delete it, from your personal space." + _SIGNATURE
        ),
    },
    "pending_verification": {
        "subject": "New declaration to verify",
        "type": "info",
        "body": (
            "Hello,\n\n"
            "{user_name} submitted a declaration for {course} on {date} ({hours} h).\n\n"
            "It is awaiting verification by the registrar." + _SIGNATURE
        ),
    },
    "pending_department_approval": {
        "subject": "Declaration awaiting your approval",
        "type": "info",
        "body": (
            "Hello,\n\n"
            "A declaration has been verified and is awaiting your approval.\n\n"
            "Teacher: {user_name}\nCourse: {course}\nDate: {date}\nHours: {hours}" + _SIGNATURE
        ),
    },
    "pending_director_validation": {
        "subject": "Declaration awaiting final validation",
        "type": "info",
        "body": (
            "Hello,\n\n"
            "A declaration is awaiting your final validation.\n\n"
            "Teacher: {user_name}\nCourse: {course}\nDate: {date}\nHours: {hours}" + _SIGNATURE
        ),
    },
}

_NEXT_STEP_REGULAR = "It is now awaiting verification by the registrar."
_NEXT_STEP_FAST_TRACK = "As a department head declaring for your own department, it goes straight to the director of studies."


class _SafeDict(dict):
    """Dict that returns {key} for missing keys instead of raising."""

    def __missing__(self, key):
        return f"{{{key}}}"


def render(template_id: str, context: dict) -> tuple[str, str, str]:
    """Return ``(subject, body, type)`` for a template.

    Raises:
        KeyError: unknown template id.
    """
    template = TEMPLATES[template_id]
    safe = _SafeDict(context)
    return (
        template["subject"].format_map(safe),
        template["body"].format_map(safe),
        template.get("type", "info"),
    )


def _format_date(value) -> str:
    if isinstance(value, (date, datetime)):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, str) and value:
        try:
            return date.fromisoformat(value).strftime("%d/%m/%Y")
        except ValueError:
            return value
    return ""


# ═══════════════════════════════════════════════════════════════════════════
#  In-app inbox
# ═══════════════════════════════════════════════════════════════════════════


class NotificationService:
    """Stateless service class for inbox operations."""

    @staticmethod
    def create(*, recipient_email, title, message="", type="info",
               recipient_id=None, declaration_id=None, template_id=None):
        """Add a notification to the session (caller commits)."""
        notif = Notification(
            recipient_id=recipient_id,
            recipient_email=recipient_email,
            title=title,
            message=message,
            type=type,
            declaration_id=declaration_id,
            template_id=template_id,
        )
        db.session.add(notif)
        db.session.flush()
        return notif

    @staticmethod
    def list_for_recipient(recipient_email, unread_only=False, limit=50, offset=0):
        """Retrieve notifications for a recipient, newest first."""
        q = Notification.query.filter_by(recipient_email=recipient_email)
        if unread_only:
            q = q.filter_by(is_read=False)
        total = q.count()
        items = (
            q.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset(offset).limit(limit).all()
        )
        return items, total

    @staticmethod
    def unread_count(recipient_email):
        return Notification.query.filter_by(recipient_email=recipient_email, is_read=False).count()

    @staticmethod
    def mark_read(notification_id, recipient_email):
        """Mark one of the recipient's notifications as read. Returns None if not theirs."""
        notif = db.session.get(Notification, notification_id)
        if not notif or notif.recipient_email != recipient_email:
            return None
        notif.mark_read()
        db.session.commit()
        return notif

    @staticmethod
    def mark_all_read(recipient_email):
        now = datetime.now(timezone.utc)
        count = (
            Notification.query
            .filter_by(recipient_email=recipient_email, is_read=False)
            .update({"is_read": True, "read_at": now}, synchronize_session="fetch")
        )
        db.session.commit()
        return count

    @staticmethod
    def delete(notification_id, recipient_email) -> bool:
        notif = db.session.get(Notification, notification_id)
        if not notif or notif.recipient_email != recipient_email:
            return False
        db.session.delete(notif)
        db.session.commit()
        return True


# ═══════════════════════════════════════════════════════════════════════════
#  Dispatch
# ═══════════════════════════════════════════════════════════════════════════


class NotificationDispatcher:
    """Executes notification intents against the inbox and the email channel.

    Each intent is delivered in its own commit so one bad recipient set
    cannot cost the others their messages.
    """

    def __init__(self, store, email_service=EmailService):
        self.store = store
        self.email_service = email_service

    def build_context(self, declaration, payload: dict) -> dict:
        author = self.store.get_profile(declaration.author_id)
        department = self.store.get_org(Department, declaration.department_id)
        course = self.store.get_org(CourseElement, declaration.course_element_id)
        context = {
            "user_name": author.full_name if author else "",
            "course": course.name if course else "",
            "department": department.name if department else "",
            "date": _format_date(declaration.date),
            "hours": f"{float(declaration.hours or 0):g}",
            "rejection_reason": payload.get("rejection_reason") or declaration.rejection_reason or "Not specified",
            "next_step": _NEXT_STEP_FAST_TRACK if payload.get("fast_tracked") else _NEXT_STEP_REGULAR,
        }
        return context

    def dispatch(self, intents, declaration) -> int:
        """Deliver every intent; return how many messages were recorded.

        Never raises for delivery problems.
        """
        delivered = 0
        for intent in intents:
            try:
                delivered += self._deliver(intent, declaration)
                db.session.commit()
            except Exception:
                db.session.rollback()
                logger.exception(
                    "Notification dispatch failed",
                    extra={
                        "declaration_id": getattr(declaration, "id", None),
                        "template_id": intent.template_id,
                    },
                )
        return delivered

    def _deliver(self, intent, declaration) -> int:
        recipients = self.store.find_recipients(intent.recipient)
        if not recipients:
            logger.info(
                "No recipient for notification",
                extra={"declaration_id": declaration.id, "template_id": intent.template_id},
            )
            return 0
        context = self.build_context(declaration, intent.payload)
        subject, body, kind = render(intent.template_id, context)
        for profile in recipients:
            notif = NotificationService.create(
                recipient_id=profile.id,
                recipient_email=profile.email,
                title=subject,
                message=body,
                type=kind,
                declaration_id=declaration.id,
                template_id=intent.template_id,
            )
            self.email_service.send(
                to_email=profile.email,
                to_name=profile.full_name,
                subject=subject,
                body=body,
                template_name=intent.template_id,
                notification_id=notif.id,
                declaration_id=declaration.id,
            )
            logger.debug(
                "Notification recorded",
                extra={"declaration_id": declaration.id, "template_id": intent.template_id,
                       "recipient": profile.email},
            )
        return len(recipients)
