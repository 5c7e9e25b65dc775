"""SMTP transport for notification emails."""

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List

from ccas_api.settings import Settings


def build_message(sender: str, to: List[str], cc: List[str], subject: str, body: str) -> MIMEMultipart:
    msg = MIMEMultipart()
    msg["From"] = sender
    msg["To"] = ", ".join(to)
    if cc:
        msg["Cc"] = ", ".join(cc)
    msg["Subject"] = subject
    msg.attach(MIMEText(body, "plain", "utf-8"))
    return msg


def send_email(settings: Settings, to: List[str], cc: List[str], subject: str, body: str) -> None:
    """
    Send one email synchronously.

    Blocking; callers on the event loop run it with asyncio.to_thread.

    Raises:
        smtplib.SMTPException: the server rejected the message or credentials
        OSError: the server could not be reached
    """
    msg = build_message(settings.notification_from_email, to, cc, subject, body)

    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.smtp_timeout_seconds) as server:
        if settings.smtp_use_tls:
            server.starttls()
        if settings.smtp_username and settings.smtp_password:
            server.login(settings.smtp_username, settings.smtp_password)
        server.sendmail(settings.notification_from_email, [*to, *cc], msg.as_string())
