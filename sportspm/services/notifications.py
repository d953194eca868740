"""Email notifications sent after project mutations."""
import logging
import smtplib
from email.mime.text import MIMEText
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from jinja2 import Environment, FileSystemLoader, select_autoescape

from sportspm.core.config import Settings, settings

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "email"


class EmailNotificationService:
    """
    Render notification emails from Jinja2 templates and send them over SMTP.

    Notifications are best effort. A failed send is logged and reported to
    the caller as ``(False, error)``; it never raises, so the write that
    triggered it is unaffected.
    """

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or settings
        self.jinja_env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            autoescape=select_autoescape(enabled_extensions=("html",)),
            trim_blocks=True,
            lstrip_blocks=True,
        )

    @property
    def enabled(self) -> bool:
        return self.config.emails_configured

    def render(self, template_name: str, context: Dict) -> Tuple[str, str]:
        """Render a template into (subject, body). The first line is the subject."""
        text = self.jinja_env.get_template(template_name).render(**context)
        subject, _, body = text.partition("\n")
        return subject.strip(), body.strip() + "\n"

    def send_email(self, recipients: List[str], subject: str, body: str) -> Tuple[bool, Optional[str]]:
        recipients = [r for r in recipients if r]
        if not recipients:
            return False, "no recipients"

        sender = self.config.EMAILS_FROM or self.config.SMTP_USER
        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = sender
        msg["To"] = ", ".join(recipients)

        try:
            with smtplib.SMTP(
                self.config.SMTP_HOST, self.config.SMTP_PORT, timeout=self.config.SMTP_TIMEOUT
            ) as server:
                if self.config.SMTP_USE_TLS:
                    server.starttls()
                if self.config.SMTP_USER and self.config.SMTP_PASSWORD:
                    server.login(self.config.SMTP_USER, self.config.SMTP_PASSWORD)
                server.sendmail(sender, recipients, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Email send failed. subject=%r recipients=%s error=%s", subject, len(recipients), e)
            return False, str(e)

        logger.info("Email sent. subject=%r recipients=%s", subject, len(recipients))
        return True, None

    def notify(self, template_name: str, recipients: List[str], context: Dict) -> Tuple[bool, Optional[str]]:
        """Render and send one notification. Intended to run as a background task."""
        if not self.enabled:
            logger.debug("Email notifications disabled. template=%s", template_name)
            return False, "disabled"
        try:
            subject, body = self.render(template_name, context)
        except Exception as e:
            logger.exception("Email template render failed. template=%s", template_name)
            return False, str(e)
        return self.send_email(recipients, subject, body)


_service: Optional[EmailNotificationService] = None


def get_notification_service() -> EmailNotificationService:
    global _service
    if _service is None:
        _service = EmailNotificationService()
    return _service
