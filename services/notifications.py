"""SMTP email notifications for volunteers, admins and citizens."""

import logging
import os
import smtplib
import time
from dataclasses import dataclass
from email.message import EmailMessage
from html import escape

logger = logging.getLogger(__name__)

SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_USE_TLS = os.getenv("SMTP_USE_TLS", "true").lower() == "true"
MAIL_FROM = os.getenv("MAIL_FROM", SMTP_USERNAME or "no-reply@cleanstreet.com")

EMAIL_MAX_ATTEMPTS = int(os.getenv("EMAIL_MAX_ATTEMPTS", "3"))
EMAIL_RETRY_SECONDS = float(os.getenv("EMAIL_RETRY_SECONDS", "2"))

CITIZEN_APP_URL = os.getenv("CITIZEN_APP_URL", "http://localhost:3000")
ADMIN_APP_URL = os.getenv("ADMIN_APP_URL", "http://localhost:3001")


class EmailDeliveryError(Exception):
    """Raised when email dispatch fails."""


@dataclass
class OutgoingEmail:
    to: str
    subject: str
    html: str
    sender_name: str = "CleanStreet"


def is_configured() -> bool:
    return bool(SMTP_HOST and SMTP_USERNAME)


def send_email(email: OutgoingEmail) -> bool:
    """Send one email. Returns False when SMTP is not configured."""
    if not is_configured():
        logger.warning(
            "Email service not configured - skipping %r to %s", email.subject, email.to
        )
        return False

    message = EmailMessage()
    message["Subject"] = email.subject
    message["From"] = f"{email.sender_name} <{MAIL_FROM}>"
    message["To"] = email.to
    message.set_content("This message requires an HTML capable email client.")
    message.add_alternative(email.html, subtype="html")

    try:
        with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=30) as smtp:
            if SMTP_USE_TLS:
                smtp.starttls()
            smtp.login(SMTP_USERNAME, SMTP_PASSWORD)
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as exc:
        raise EmailDeliveryError(f"Could not send email to {email.to}: {exc}") from exc

    logger.info("Email %r sent to %s", email.subject, email.to)
    return True


def deliver_with_retry(email: OutgoingEmail) -> bool:
    """Best-effort delivery used from background tasks; never raises."""
    for attempt in range(1, EMAIL_MAX_ATTEMPTS + 1):
        try:
            return send_email(email)
        except EmailDeliveryError as exc:
            logger.warning(
                "Email attempt %s/%s failed: %s", attempt, EMAIL_MAX_ATTEMPTS, exc
            )
            if attempt < EMAIL_MAX_ATTEMPTS:
                time.sleep(EMAIL_RETRY_SECONDS * attempt)

    logger.error("Giving up on email %r to %s", email.subject, email.to)
    return False


def _layout(title: str, body: str, accent: str = "#10b981") -> str:
    return f"""<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
      <div style="background-color: {accent}; color: white; padding: 20px; text-align: center;">
        <h1>{title}</h1>
      </div>
      <div style="background-color: #f9fafb; padding: 30px; border: 1px solid #e5e7eb;">
        {body}
      </div>
      <p style="text-align: center; color: #6b7280; font-size: 12px;">CleanStreet</p>
    </div>
  </body>
</html>"""


def _button(url: str, label: str, accent: str = "#10b981") -> str:
    return (
        f'<p style="text-align: center;"><a href="{escape(url)}" '
        f'style="display: inline-block; padding: 12px 30px; background-color: {accent}; '
        f'color: white; text-decoration: none;">{label}</a></p>'
    )


def assignment_email(
    volunteer_name: str,
    volunteer_email: str,
    title: str,
    description: str,
    address: str,
    priority: str,
    reported_on: str,
) -> OutgoingEmail:
    body = f"""
        <p>Hello <strong>{escape(volunteer_name)}</strong>,</p>
        <p>A new complaint has been assigned to you by the admin team.</p>
        <div style="background: white; padding: 20px; border-left: 4px solid #10b981;">
          <h3>Complaint Details</h3>
          <p><strong>Title:</strong> {escape(title)}</p>
          <p><strong>Description:</strong> {escape(description)}</p>
          <p><strong>Location:</strong> {escape(address)}</p>
          <p><strong>Priority:</strong> {escape(priority.upper())}</p>
          <p><strong>Status:</strong> Assigned</p>
          <p><strong>Reported on:</strong> {escape(reported_on)}</p>
        </div>
        <p>Please log in to your volunteer dashboard to view full details and update the status:</p>
        {_button(f"{ADMIN_APP_URL}/volunteer/login", "Go to Dashboard")}
    """
    return OutgoingEmail(
        to=volunteer_email,
        subject="New Complaint Assigned to You",
        html=_layout("New Assignment", body),
        sender_name="CleanStreet Admin",
    )


def approval_email(volunteer_name: str, volunteer_email: str) -> OutgoingEmail:
    body = f"""
        <p>Hello <strong>{escape(volunteer_name)}</strong>,</p>
        <p>Congratulations! Your volunteer application has been approved by the admin.</p>
        <p>You can now log in to your volunteer dashboard and start helping to keep our streets clean.</p>
        {_button(f"{ADMIN_APP_URL}/volunteer/login", "Login Now")}
    """
    return OutgoingEmail(
        to=volunteer_email,
        subject="Your Volunteer Application has been Approved",
        html=_layout("Application Approved", body),
        sender_name="CleanStreet Admin",
    )


def password_reset_email(
    name: str, email: str, reset_url: str, expires_in: str, account: str
) -> OutgoingEmail:
    accent = "#3b82f6" if account == "admin" else "#10b981"
    body = f"""
        <p>Hello <strong>{escape(name or email)}</strong>,</p>
        <p>You have requested to reset your {escape(account)} account password.</p>
        {_button(reset_url, "Reset Password", accent)}
        <p>Or copy and paste this link in your browser:</p>
        <p style="word-break: break-all;">{escape(reset_url)}</p>
        <p><strong>This link will expire in {escape(expires_in)}.</strong></p>
        <p>If you did not request this, please ignore this email.</p>
    """
    return OutgoingEmail(
        to=email,
        subject="Password Reset Request",
        html=_layout("Password Reset Request", body, accent),
    )
