"""
Email channel for workflow notifications.

Each message becomes one EmailLog row (queued → sent | failed). Without
MAIL_SERVER the row is marked sent and the message only goes to the log,
which is what development and the test suite run on. The caller owns the
commit.
"""

from __future__ import annotations

import logging
import smtplib
from datetime import datetime, timezone
from email.mime.text import MIMEText
from email.utils import formataddr

from flask import current_app

from hours_workflow.models import db
from hours_workflow.models.notification import EmailLog

logger = logging.getLogger(__name__)

SMTP_TIMEOUT_SECONDS = 30


class EmailService:
    """Plain-text email sender with an audit row per message."""

    @staticmethod
    def is_configured() -> bool:
        return bool(current_app.config.get("MAIL_SERVER"))

    @classmethod
    def send(
        cls,
        *,
        to_email: str,
        to_name: str | None = None,
        subject: str,
        body: str,
        template_name: str | None = None,
        notification_id: int | None = None,
        declaration_id: str | None = None,
    ) -> EmailLog:
        """Send one message; SMTP failures end up on the log row, not raised."""
        entry = EmailLog(
            recipient_email=to_email,
            recipient_name=to_name,
            subject=subject,
            template_name=template_name,
            status="queued",
            notification_id=notification_id,
            declaration_id=declaration_id,
        )
        db.session.add(entry)
        db.session.flush()

        if not cls.is_configured():
            cls._mark_sent(entry)
            logger.info(
                "Email not sent (no MAIL_SERVER): to=%s template=%s",
                to_email, template_name,
                extra={"declaration_id": declaration_id, "template_id": template_name},
            )
            return entry

        try:
            cls._deliver(cls._build_message(to_email, to_name, subject, body))
        except (smtplib.SMTPException, OSError) as exc:
            entry.status = "failed"
            entry.error_message = str(exc)[:1000]
            logger.error(
                "Email delivery failed: to=%s error=%s", to_email, exc,
                extra={"declaration_id": declaration_id, "template_id": template_name},
            )
        else:
            cls._mark_sent(entry)
            logger.info("Email sent: to=%s template=%s", to_email, template_name,
                        extra={"declaration_id": declaration_id, "template_id": template_name})
        return entry

    @staticmethod
    def _mark_sent(entry: EmailLog) -> None:
        entry.status = "sent"
        entry.sent_at = datetime.now(timezone.utc)

    @staticmethod
    def _build_message(to_email: str, to_name: str | None, subject: str, body: str) -> MIMEText:
        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = current_app.config.get("MAIL_DEFAULT_SENDER")
        msg["To"] = formataddr((to_name, to_email)) if to_name else to_email
        return msg

    @staticmethod
    def _deliver(msg: MIMEText) -> None:
        cfg = current_app.config
        with smtplib.SMTP(cfg["MAIL_SERVER"], cfg.get("MAIL_PORT", 587), timeout=SMTP_TIMEOUT_SECONDS) as smtp:
            if cfg.get("MAIL_USE_TLS", True):
                smtp.starttls()
            if cfg.get("MAIL_USERNAME") and cfg.get("MAIL_PASSWORD"):
                smtp.login(cfg["MAIL_USERNAME"], cfg["MAIL_PASSWORD"])
            smtp.send_message(msg)
