"""Email notification service"""
import smtplib
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional
from taskflow.config import Settings
from taskflow.utils.monitoring import StructuredLogger

SMTP_TIMEOUT_SECONDS = 30

_TEMPLATE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background-color: #f9fafb; border-radius: 8px; padding: 24px; border-left: 4px solid {accent};">
        <h2 style="margin-top: 0;">Hi {name},</h2>
        {content}
        <p style="font-size: 14px; color: #6b7280; margin-top: 24px;">{footer}</p>
    </div>
</body>
</html>
"""

_FOOTER = "This is an automated notification from TaskFlow."


def render_html(user_name: str, content: str, accent: str = "#3b82f6") -> str:
    """Wrap already-escaped HTML ``content`` in the notification layout"""
    return _TEMPLATE.format(accent=accent, name=escape(user_name), content=content, footer=_FOOTER)


class EmailService:
    """Sends reminder and overdue-item emails over SMTP.

    Delivery failures are logged and reported as ``False``, never raised.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    @property
    def sender(self) -> str:
        return self.settings.EMAIL_FROM or self.settings.SMTP_USER

    def build_message(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = self.sender
        message["To"] = to_email
        # Preferred alternative goes last
        if text_body:
            message.attach(MIMEText(text_body, "plain"))
        message.attach(MIMEText(html_body, "html"))
        return message

    def send_email(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None
    ) -> bool:
        """
        Send one email

        Args:
            to_email: Recipient email address
            subject: Email subject
            html_body: HTML email body
            text_body: Plain text alternative (optional)

        Returns:
            True if the SMTP server accepted the message
        """
        if not self.settings.EMAIL_ENABLED:
            StructuredLogger.log_event(
                "email_skipped",
                "Email delivery is disabled",
                metadata={"to_email": to_email, "subject": subject},
                level="DEBUG",
            )
            return False

        if not (self.settings.SMTP_USER and self.settings.SMTP_PASSWORD):
            StructuredLogger.log_event(
                "email_config_missing",
                "SMTP_USER and SMTP_PASSWORD must be set to send email",
                metadata={"to_email": to_email},
                level="WARNING",
            )
            return False

        message = self.build_message(to_email, subject, html_body, text_body)
        try:
            with smtplib.SMTP(self.settings.SMTP_HOST, self.settings.SMTP_PORT, timeout=SMTP_TIMEOUT_SECONDS) as smtp:
                smtp.starttls()
                smtp.login(self.settings.SMTP_USER, self.settings.SMTP_PASSWORD)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            StructuredLogger.log_error(
                e,
                context={"function": "send_email", "to_email": to_email, "subject": subject},
            )
            return False

        StructuredLogger.log_event(
            "email_sent",
            f"Email sent to {to_email}",
            metadata={"to_email": to_email, "subject": subject},
        )
        return True

    def send_reminder_email(
        self,
        user_email: str,
        user_name: str,
        title: str,
        description: Optional[str],
        remind_at: datetime,
    ) -> bool:
        """Email for a reminder that just fired"""
        when = remind_at.strftime("%Y-%m-%d %H:%M UTC")

        content = f'<p style="font-size: 16px;">This is your reminder for <strong>{escape(title)}</strong> ({when}).</p>'
        text_body = f"Hi {user_name},\n\nThis is your reminder for {title} ({when})."
        if description:
            content += f'\n<p style="font-size: 14px;">{escape(description)}</p>'
            text_body += f"\n\n{description}"

        return self.send_email(
            user_email,
            f"⏰ Reminder: {title}",
            render_html(user_name, content),
            f"{text_body}\n\n{_FOOTER}",
        )

    def send_item_overdue_email(
        self,
        user_email: str,
        user_name: str,
        title: str,
        due_date: datetime,
    ) -> bool:
        """Email for an unfinished item past its due date"""
        due = due_date.strftime("%Y-%m-%d %H:%M UTC")
        content = (
            f'<p style="font-size: 16px;"><strong>{escape(title)}</strong> was due on '
            f"<strong>{due}</strong> and is not finished yet.</p>"
        )
        return self.send_email(
            user_email,
            f"⚠️ Overdue: {title}",
            render_html(user_name, content, accent="#dc2626"),
            f"Hi {user_name},\n\n{title} was due on {due} and is not finished yet.\n\n{_FOOTER}",
        )
