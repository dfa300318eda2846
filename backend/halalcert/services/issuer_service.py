# Overview: Service-layer operations for certificate issuance; number allocation, validity window and verification payload.

"""
Certificate Issuer

issue(store, application, issuer_id) builds and inserts one Certificate.
It writes nothing but the certificate row; auditing and notifications
belong to the caller (the application lifecycle).

NUMBERING:
- Format HAL-<year>-<NNNN>, NNNN in 1000..9999 drawn at random.
- The unique constraint on certificate_number is the real guard. A
  collision rolls back a SAVEPOINT and a new number is drawn, up to
  CERTIFICATE_NUMBER_MAX_ATTEMPTS times, then issuance fails closed.
"""

from __future__ import annotations

import secrets
from datetime import timedelta

from flask import current_app

from ..errors import CertificateIssuanceError
from ..extensions import db
from ..models import Application, Certificate, Store
from ..models.certificates import CERTIFICATE_ACTIVE
from ..time_utils import utcnow
from .concurrency import insert_with_retry


NUMBER_PREFIX = "HAL"


def generate_certificate_number(year: int) -> str:
    return f"{NUMBER_PREFIX}-{year}-{1000 + secrets.randbelow(9000)}"


def verification_url(certificate_number: str) -> str:
    base_url = current_app.config["CERTIFICATE_BASE_URL"].rstrip("/")
    return f"{base_url}/verify/{certificate_number}"


def _number_taken(certificate_number: str) -> bool:
    return db.session.query(
        db.session.query(Certificate.id).filter_by(certificate_number=certificate_number).exists()
    ).scalar()


def issue(store: Store, application: Application, issuer_id: int | None) -> Certificate:
    """
    Create the active certificate for an approved application.

    Runs inside the caller's transaction; raises CertificateIssuanceError
    when no free number was found so the caller's transition rolls back.
    """
    issued_at = utcnow()
    expires_at = issued_at + timedelta(days=current_app.config["CERTIFICATE_VALIDITY_DAYS"])
    max_attempts = current_app.config["CERTIFICATE_NUMBER_MAX_ATTEMPTS"]

    already_valid = (
        db.session.query(Certificate)
        .filter(
            Certificate.store_id == store.id,
            Certificate.status == CERTIFICATE_ACTIVE,
            Certificate.expires_at > issued_at,
        )
        .first()
    )
    if already_valid is not None:
        current_app.logger.warning(
            "Store %s already holds active certificate %s; issuing another for application %s",
            store.id, already_valid.certificate_number, application.id,
        )

    def build(attempt: int) -> Certificate | None:
        number = generate_certificate_number(issued_at.year)
        if _number_taken(number):
            current_app.logger.info("Certificate number %s taken (attempt %d)", number, attempt + 1)
            return None
        return Certificate(
            certificate_number=number,
            store_id=store.id,
            application_id=application.id,
            status=CERTIFICATE_ACTIVE,
            issued_by_user_id=issuer_id,
            issued_at=issued_at,
            expires_at=expires_at,
            verification_url=verification_url(number),
        )

    certificate = insert_with_retry(build, attempts=max_attempts)
    if certificate is None:
        current_app.logger.error(
            "Could not allocate a certificate number for application %s after %d attempts",
            application.id, max_attempts,
        )
        raise CertificateIssuanceError("Could not allocate a unique certificate number")

    current_app.logger.info(
        "Issued certificate %s for store %s (application %s)",
        certificate.certificate_number, store.id, application.id,
    )
    return certificate
