# mailer.py
"""
Completion email for a finished plan.

Uses plain SMTP. With no SMTP_HOST configured the mailer is disabled: it logs
what it would have sent and reports the message as not delivered.
"""

import html
import logging
import smtplib
from datetime import date
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

logger = logging.getLogger(__name__)

PLAN_SUBJECT = "Your Marathon Training Plan"


def render_plan_email(plan: str, race_date: date) -> str:
    """HTML body for the plan email. The plan text is shown preformatted."""
    race_day = f"{race_date:%B} {race_date.day}, {race_date.year}"
    return f"""
<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">
  <h1 style="color: #2563eb;">{PLAN_SUBJECT}</h1>
  <p>Here's your personalized training plan for your marathon on {race_day}.</p>
  <div style="background: #f3f4f6; padding: 20px; border-radius: 8px; white-space: pre-wrap; font-family: monospace;">{html.escape(plan)}</div>
  <p style="margin-top: 20px; color: #4b5563;">
    Good luck with your training! Remember to listen to your body and adjust the plan as needed.
  </p>
</div>
""".strip()


class PlanMailer:
    def __init__(
        self,
        host: Optional[str],
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        from_email: str = "plans@localhost",
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.timeout = timeout

    @classmethod
    def from_config(cls, config) -> "PlanMailer":
        return cls(
            host=config.get("SMTP_HOST"),
            port=config.get("SMTP_PORT", 587),
            username=config.get("SMTP_USERNAME"),
            password=config.get("SMTP_PASSWORD"),
            from_email=config.get("EMAIL_FROM", "plans@localhost"),
        )

    @property
    def enabled(self) -> bool:
        return bool(self.host)

    def send(self, to_address: str, subject: str, html_body: str) -> bool:
        """Send one HTML email. Returns True if the SMTP server accepted it."""
        if not self.enabled:
            logger.info("Email disabled, would send %r to %s", subject, to_address)
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to_address
        msg.attach(MIMEText(html_body, "html"))

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.username and self.password:
                    server.starttls()
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Error sending email to %s: %s", to_address, e)
            return False

        logger.info("Email %r sent to %s", subject, to_address)
        return True

    def send_plan(self, to_address: str, plan: str, race_date: date) -> bool:
        return self.send(to_address, PLAN_SUBJECT, render_plan_email(plan, race_date))
