import html
import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

import requests

from config import EmailSettings, NotificationSettings
from models.sync_result import SyncResult

logger = logging.getLogger(__name__)

SLACK_TIMEOUT_SECONDS = 10
SMTP_TIMEOUT_SECONDS = 10
SMTP_SSL_PORT = 465


def _email_ready(email: Optional[EmailSettings]) -> bool:
    return email is not None and all([email.smtp_server, email.username, email.password, email.recipients])


class Notifications:
    """
    Reports sync outcomes to Slack and by email.

    Both channels are optional. Delivery problems are logged and never
    reach the caller: a failed notification must not look like a failed sync.
    """

    def __init__(self, settings: Optional[NotificationSettings] = None):
        self.settings = settings or NotificationSettings()
        email = self.settings.email
        if email is not None and not _email_ready(email):
            logger.warning("Email notifications need smtp_server, username, password and recipients. Disabled.")

    @property
    def slack_enabled(self) -> bool:
        return bool(self.settings.slack_webhook_url)

    @property
    def email_enabled(self) -> bool:
        return _email_ready(self.settings.email)

    def send_slack_message(self, text: str, details: Optional[str] = None, ok: bool = True):
        if not self.slack_enabled:
            return
        payload = {"text": text}
        if details:
            payload["attachments"] = [{"color": "good" if ok else "danger", "text": f"```{details}```"}]
        try:
            response = requests.post(self.settings.slack_webhook_url, json=payload, timeout=SLACK_TIMEOUT_SECONDS)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Slack notification failed: {e}")
        else:
            logger.debug("Slack notification sent.")

    def send_email(self, subject: str, plain_body: str, html_body: Optional[str] = None):
        if not self.email_enabled:
            return
        email = self.settings.email

        msg = EmailMessage()
        msg["From"] = email.sender_email or email.username
        msg["To"] = ", ".join(email.recipients)
        msg["Subject"] = subject
        msg.set_content(plain_body)
        if html_body:
            msg.add_alternative(html_body, subtype="html")

        try:
            if email.smtp_port == SMTP_SSL_PORT:
                server = smtplib.SMTP_SSL(email.smtp_server, email.smtp_port, timeout=SMTP_TIMEOUT_SECONDS)
            else:
                server = smtplib.SMTP(email.smtp_server, email.smtp_port, timeout=SMTP_TIMEOUT_SECONDS)
            with server:
                if email.smtp_port != SMTP_SSL_PORT and email.use_tls:
                    server.starttls()
                server.login(email.username, email.password)
                server.send_message(msg)
        except smtplib.SMTPException as e:
            logger.error(f"Email notification failed: {e}")
        except OSError as e:
            logger.error(f"Could not reach SMTP server {email.smtp_server}:{email.smtp_port}: {e}")
        else:
            logger.debug(f"Email notification sent to {email.recipients}.")

    def notify_sync_event(self, repo: str, branch: str, result: SyncResult):
        outcome = "Succeeded" if result.success else "Failed"
        summary = f"Sync {outcome}: {repo} ({branch})"
        report = result.report()

        self.send_slack_message(summary, report, ok=result.success)
        self.send_email(
            f"[pullhook] {summary}",
            f"{summary}\n\n{report}",
            (
                f"<h3>{html.escape(summary)}</h3>"
                f"<p>Command <code>{html.escape(result.command)}</code> exited with "
                f"{result.exit_code} after {html.escape(result.duration)}.</p>"
                f"<pre>{html.escape(result.output)}</pre>"
            ),
        )
