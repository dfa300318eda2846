# Overview: Service-layer operations for notifications; gateway selection, delivery policy and message text.

"""
Notification Gateway

The workflow tells business owners about events (application received,
inspection scheduled, approval, rejection, revocation). It never depends on
the answer: a gateway only has send(to, subject, body).

DELIVERY POLICY:
- send_best_effort(): used after a state change has committed. Failures and
  timeouts are logged and dropped (fail open).
- send_required(): used by application submission only. Failures raise
  DependencyFailureError so the submission is rolled back (fail closed).
"""

from __future__ import annotations

import smtplib
from email.message import EmailMessage
from typing import Protocol

from flask import current_app

from ..errors import DependencyFailureError


EXTENSION_KEY = "halalcert.notification_gateway"
SIGNATURE = "Regards,\nHalal Certification Authority"


class NotificationGateway(Protocol):
    def send(self, to_address: str, subject: str, body: str) -> None:
        ...


class LogNotificationGateway:
    """Development gateway: writes the message to the app logger instead of sending it."""

    def __init__(self, logger):
        self.logger = logger

    def send(self, to_address: str, subject: str, body: str) -> None:
        self.logger.info("Email to %s: %s\n%s", to_address, subject, body)


class SmtpNotificationGateway:
    """Delivers plain-text email over SMTP with a bounded socket timeout."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        *,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, to_address: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to_address
        message["Subject"] = subject
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(message)


def build_gateway(config) -> NotificationGateway:
    backend = config.get("NOTIFICATION_BACKEND", "log")
    if backend == "smtp":
        return SmtpNotificationGateway(
            config["MAIL_SERVER"],
            config["MAIL_PORT"],
            config["MAIL_SENDER"],
            username=config.get("MAIL_USERNAME"),
            password=config.get("MAIL_PASSWORD"),
            use_tls=config.get("MAIL_USE_TLS", True),
            timeout=config.get("NOTIFICATION_TIMEOUT_SECONDS", 10.0),
        )
    if backend == "log":
        return LogNotificationGateway(current_app.logger)
    raise ValueError(f"Unknown NOTIFICATION_BACKEND '{backend}'")


def get_gateway() -> NotificationGateway:
    gateway = current_app.extensions.get(EXTENSION_KEY)
    if gateway is None:
        gateway = build_gateway(current_app.config)
        current_app.extensions[EXTENSION_KEY] = gateway
    return gateway


def send_required(to_address: str, subject: str, body: str) -> None:
    try:
        get_gateway().send(to_address, subject, body)
    except Exception as exc:
        current_app.logger.exception("Failed to send required notification to %s", to_address)
        raise DependencyFailureError(
            "notification", "Could not send confirmation email", fail_open=False
        ) from exc


def send_best_effort(to_address: str | None, subject: str, body: str) -> bool:
    """Returns False when the message was dropped."""
    if not to_address:
        return False
    try:
        get_gateway().send(to_address, subject, body)
    except Exception:
        current_app.logger.warning(
            "Notification to %s dropped (%s)", to_address, subject, exc_info=True
        )
        return False
    return True


# =============================================================================
# MESSAGE TEXT
# =============================================================================

def application_received(store, application) -> tuple[str, str]:
    return (
        "Halal Certification Application Received",
        f"Dear {store.owner_name},\n\n"
        f"Thank you for applying for Halal Certification. Your application has been "
        f"received and is under review. Your application ID is {application.id}.\n\n"
        f"We will contact you shortly regarding the next steps.\n\n{SIGNATURE}",
    )


def application_under_review(store) -> tuple[str, str]:
    return (
        "Halal Certification Application Update",
        f"Dear {store.owner_name},\n\n"
        f"Your application for Halal Certification is now under review. An inspector "
        f"will contact you to schedule a site visit.\n\n{SIGNATURE}",
    )


def application_approved(store, certificate) -> tuple[str, str]:
    return (
        "Halal Certification Approved",
        f"Dear {store.owner_name},\n\n"
        f"Congratulations! Your application for Halal Certification has been approved.\n\n"
        f"Your certificate details:\n"
        f"- Certificate Number: {certificate.certificate_number}\n"
        f"- Valid Until: {certificate.expires_at:%d %B %Y}\n"
        f"- Verification URL: {certificate.verification_url}\n\n{SIGNATURE}",
    )


def application_rejected(store, notes: str | None) -> tuple[str, str]:
    return (
        "Halal Certification Application Update",
        f"Dear {store.owner_name},\n\n"
        f"We regret to inform you that your application for Halal Certification has been rejected.\n\n"
        f"Reason: {notes or 'Did not meet certification requirements'}\n\n"
        f"You may reapply after addressing the issues mentioned above.\n\n{SIGNATURE}",
    )


def inspection_scheduled(store, inspection) -> tuple[str, str]:
    return (
        "Halal Certification Inspection Scheduled",
        f"Dear {store.owner_name},\n\n"
        f"An inspection for your Halal Certification application has been scheduled "
        f"for {inspection.visit_date:%A %d %B %Y}.\n\n"
        f"Please ensure that you or an authorized representative is present during the "
        f"inspection.\n\n{SIGNATURE}",
    )


def certificate_revoked(store, certificate, reason: str | None) -> tuple[str, str]:
    return (
        "Halal Certification Revoked",
        f"Dear {store.owner_name},\n\n"
        f"We regret to inform you that your Halal Certificate ({certificate.certificate_number}) "
        f"has been revoked.\n\n"
        f"Reason: {reason or 'Non-compliance with certification standards'}\n\n"
        f"If you have any questions, please contact us.\n\n{SIGNATURE}",
    )


def feedback_moderated(feedback) -> tuple[str, str]:
    if feedback.status == "approved":
        subject = "Your Feedback has been Published"
        outcome = "Your feedback has been reviewed and is now published on our website."
    else:
        subject = "Your Feedback has been Reviewed"
        outcome = "After reviewing your feedback, we have decided not to publish it at this time."
    return (
        subject,
        f"Dear {feedback.author_name or 'User'},\n\n"
        f"Thank you for your feedback about one of our certified businesses.\n\n"
        f"{outcome}\n\n{SIGNATURE}",
    )
