"""Transactional mail delivery over SMTP."""

import asyncio
import smtplib
import ssl
from email.mime.text import MIMEText
from typing import Any

import structlog
from liquid import Environment

from gatekeep.config import Config
from gatekeep.core.modules.mail.templates import TEMPLATES, MailTemplate

logger = structlog.get_logger(__name__)


def redact_email(email: str) -> str:
    """Redact an email address for logging."""
    if "@" not in email:
        return "redacted"
    local, domain = email.split("@", 1)
    return f"{local[:2]}***@{domain}"


class MailService:
    """Renders a mail template and sends it.

    When no SMTP host is configured the mail is logged instead of sent.
    Delivery failures propagate so that the surrounding transaction is aborted.
    """

    def __init__(self, config: Config) -> None:
        self._config = config
        self._env = Environment()

    @property
    def is_configured(self) -> bool:
        return bool(self._config.smtp_host and self._config.mail_sender)

    def render(self, template_name: MailTemplate, params: dict[str, Any]) -> str:
        template = self._env.from_string(TEMPLATES[template_name])
        return template.render(app_name=self._config.app_name, **params)

    async def send_mail(self, to: str, subject: str, template_name: MailTemplate, params: dict[str, Any]) -> None:
        html_body = self.render(template_name, params)
        if not self.is_configured:
            logger.info("mail_dev_mode", to=redact_email(to), subject=subject, template=template_name)
            return

        await asyncio.to_thread(self._send, to, subject, html_body)
        logger.info("mail_sent", to=redact_email(to), subject=subject, template=template_name)

    def _send(self, to: str, subject: str, html_body: str) -> None:
        config = self._config
        message = MIMEText(html_body, "html", "utf-8")
        message["Subject"] = subject
        message["From"] = f"{config.app_name} <{config.mail_sender}>"
        message["To"] = to

        context = ssl.create_default_context()
        if config.smtp_starttls:
            with smtplib.SMTP(config.smtp_host, config.smtp_port, timeout=30) as server:
                server.starttls(context=context)
                if config.smtp_user and config.smtp_password:
                    server.login(config.smtp_user, config.smtp_password)
                server.sendmail(config.mail_sender, [to], message.as_string())
        else:
            with smtplib.SMTP_SSL(config.smtp_host, config.smtp_port, context=context, timeout=30) as server:
                if config.smtp_user and config.smtp_password:
                    server.login(config.smtp_user, config.smtp_password)
                server.sendmail(config.mail_sender, [to], message.as_string())
