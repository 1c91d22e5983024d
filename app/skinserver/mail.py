from __future__ import annotations

import logging
from abc import ABC, abstractmethod
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr

logger = logging.getLogger(__name__)


class MailError(RuntimeError):
    pass


class Mailer(ABC):
    @abstractmethod
    def send(self, to: str, subject: str, body: str) -> None:
        """Deliver a plain-text mail; transport failures propagate."""


@dataclass(frozen=True)
class SmtpMailer(Mailer):
    host: str
    port: int
    username: str
    password: str
    encryption: str  # "tls", "ssl" or ""
    from_address: str
    from_name: str
    timeout: int = 10

    def _message(self, to: str, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = formataddr((self.from_name, self.from_address)) if self.from_name else self.from_address
        msg["To"] = to
        msg.set_content(body)
        return msg

    def send(self, to: str, subject: str, body: str) -> None:
        if not self.from_address:
            raise MailError("Mail sender not configured (MAIL_FROM_ADDRESS missing).")
        msg = self._message(to, subject, body)
        context = ssl.create_default_context()
        if self.encryption == "ssl":
            with smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=self.timeout) as server:
                self._deliver(server, msg)
        else:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.encryption == "tls":
                    server.starttls(context=context)
                self._deliver(server, msg)
        logger.info("Mail sent to=%s subject=%r", to, subject)

    def _deliver(self, server: smtplib.SMTP, msg: EmailMessage) -> None:
        if self.username:
            server.login(self.username, self.password)
        server.send_message(msg)


def mail_enabled(config: dict) -> bool:
    return bool((config.get("MAIL_DRIVER") or "").strip())


def mailer_from_config(config: dict) -> Mailer | None:
    driver = (config.get("MAIL_DRIVER") or "").strip().lower()
    if not driver:
        return None
    if driver != "smtp":
        raise MailError(f"Unsupported MAIL_DRIVER: {driver!r}")
    return SmtpMailer(
        host=(config.get("MAIL_HOST") or "localhost").strip(),
        port=int(config.get("MAIL_PORT") or 587),
        username=(config.get("MAIL_USERNAME") or "").strip(),
        password=config.get("MAIL_PASSWORD") or "",
        encryption=(config.get("MAIL_ENCRYPTION") or "").strip().lower(),
        from_address=(config.get("MAIL_FROM_ADDRESS") or "").strip(),
        from_name=(config.get("MAIL_FROM_NAME") or "").strip(),
        timeout=int(config.get("MAIL_TIMEOUT") or 10),
    )


def get_mailer(app) -> Mailer:
    """
    Mailer registered on the app; built lazily from config so tests and
    admins can swap ``app.extensions["mailer"]``.
    """
    mailer = app.extensions.get("mailer")
    if mailer is None:
        mailer = mailer_from_config(app.config)
        if mailer is None:
            raise MailError("Mail is not configured.")
        app.extensions["mailer"] = mailer
    return mailer
