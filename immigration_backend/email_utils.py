"""
Email Utilities
===============

Email sending for account flows and case updates.
Supports both SMTP and mock mode for development.
"""

import os
import smtplib
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from html import escape
from typing import Optional

logger = logging.getLogger(__name__)


def get_email_config():
    """Get email configuration from environment variables."""
    return {
        "smtp_host": os.environ.get("SMTP_HOST", ""),
        "smtp_port": int(os.environ.get("SMTP_PORT", "587")),
        "smtp_user": os.environ.get("SMTP_USER", ""),
        "smtp_password": os.environ.get("SMTP_PASSWORD", ""),
        "smtp_from": os.environ.get("SMTP_FROM", "noreply@immigration.local"),
        "smtp_use_tls": os.environ.get("SMTP_USE_TLS", "true").lower() == "true",
        "app_url": os.environ.get("APP_URL", "http://localhost:3000"),
    }


def is_email_configured() -> bool:
    """Check if SMTP is properly configured."""
    config = get_email_config()
    return bool(config["smtp_host"] and config["smtp_user"] and config["smtp_password"])


def send_email(
    to_email: str,
    subject: str,
    html_body: str,
    text_body: Optional[str] = None
) -> bool:
    """
    Send an email.

    Returns True if sent successfully, False otherwise.
    In development mode (SMTP not configured), logs the email instead.
    """
    config = get_email_config()

    if not is_email_configured():
        logger.info(f"[DEV MODE] Email would be sent to {to_email}: {subject}")
        logger.debug(f"[DEV MODE] Email body: {text_body or html_body[:200]}")
        return True

    try:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = config["smtp_from"]
        msg["To"] = to_email

        if text_body:
            msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        with smtplib.SMTP(config["smtp_host"], config["smtp_port"]) as server:
            if config["smtp_use_tls"]:
                server.starttls()
            server.login(config["smtp_user"], config["smtp_password"])
            server.sendmail(config["smtp_from"], to_email, msg.as_string())

        logger.info(f"Email sent successfully to {to_email}")
        return True

    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


def _render(title: str, greeting: str, paragraphs, link: Optional[str] = None, button: Optional[str] = None) -> str:
    body = "".join(f"<p>{escape(p)}</p>" for p in paragraphs)
    action = ""
    if link:
        action = (
            f'<p><a href="{escape(link)}" style="display:inline-block;background:#1d4ed8;color:#fff;'
            f'padding:12px 24px;border-radius:6px;text-decoration:none">{escape(button or link)}</a></p>'
            f'<p style="font-size:12px;color:#666;word-break:break-all">{escape(link)}</p>'
        )
    return (
        "<!DOCTYPE html><html><body style=\"font-family:Arial,sans-serif\">"
        f"<h2>{escape(title)}</h2><p>{escape(greeting)}</p>{body}{action}"
        "<p style=\"font-size:12px;color:#666\">This message was sent automatically. Please do not reply.</p>"
        "</body></html>"
    )


def _greeting(user_name: Optional[str]) -> str:
    return f"Hello {user_name}," if user_name else "Hello,"


def send_password_reset_email(to_email: str, reset_token: str, user_name: Optional[str] = None) -> bool:
    """
    Send a password reset email.

    Args:
        to_email: Recipient email address
        reset_token: The raw password reset token
        user_name: Optional user name for personalization
    """
    app_url = get_email_config()["app_url"].rstrip("/")
    reset_link = f"{app_url}/reset-password?token={reset_token}"
    greeting = _greeting(user_name)
    lines = [
        "We received a request to reset your password.",
        "This link is valid for one hour. If you did not ask for a reset, ignore this message.",
    ]

    return send_email(
        to_email=to_email,
        subject="Reset your password",
        html_body=_render("Password reset", greeting, lines, reset_link, "Reset password"),
        text_body=f"{greeting}\n\n{lines[0]}\n\n{reset_link}\n\n{lines[1]}\n",
    )


def send_verification_email(to_email: str, verification_token: str, user_name: Optional[str] = None) -> bool:
    """Send the email-address verification link (valid 24 hours)."""
    app_url = get_email_config()["app_url"].rstrip("/")
    verify_link = f"{app_url}/verify-email?token={verification_token}"
    greeting = _greeting(user_name)
    lines = [
        "Please confirm your email address to activate your account.",
        "This link is valid for 24 hours.",
    ]

    return send_email(
        to_email=to_email,
        subject="Verify your email address",
        html_body=_render("Verify your email", greeting, lines, verify_link, "Verify email"),
        text_body=f"{greeting}\n\n{lines[0]}\n\n{verify_link}\n\n{lines[1]}\n",
    )


def send_case_status_email(
    to_email: str,
    user_name: Optional[str],
    reference_number: str,
    status: str,
    note: Optional[str] = None,
    case_url: Optional[str] = None,
) -> bool:
    """Tell a client their case moved to a new status."""
    readable = status.replace("_", " ").title()
    greeting = _greeting(user_name)
    lines = [f"The status of your case {reference_number} is now: {readable}."]
    if note:
        lines.append(f"Note from your advisor: {note}")

    text_body = f"{greeting}\n\n" + "\n\n".join(lines)
    if case_url:
        text_body += f"\n\n{case_url}"

    return send_email(
        to_email=to_email,
        subject=f"Case {reference_number}: {readable}",
        html_body=_render("Case update", greeting, lines, case_url, "View case"),
        text_body=text_body + "\n",
    )
