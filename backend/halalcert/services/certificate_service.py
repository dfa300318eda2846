# Overview: Service-layer operations for the certificate registry; public verification, search, revocation and expiry sweep.

"""
Certificate Registry & Verifier

READS NEVER WRITE: expiry is derived on every read (now > expires_at).
The stored status only becomes "expired" through expire_overdue(), which
is an administrative sweep (CLI), never a side effect of a lookup.

valid = status == active and not expired.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app

from ..errors import CertificateAlreadyRevokedError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Certificate, Store
from ..models.certificates import (
    CERTIFICATE_ACTIVE,
    CERTIFICATE_EXPIRED,
    CERTIFICATE_REVOKED,
    CERTIFICATE_STATUSES,
)
from ..time_utils import to_utc_z, utcnow
from ..validation import validate_notes
from . import audit_service, notification_service
from .actor import Actor, SYSTEM
from .concurrency import lock_for_update, unit_of_work


MIN_SEARCH_LENGTH = 3
MAX_PAGE_SIZE = 100


@dataclass
class Verification:
    certificate: Certificate
    store: Store
    verified_at: datetime

    @property
    def valid(self) -> bool:
        return self.certificate.is_valid(self.verified_at)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "certificate": self.certificate.to_summary(self.verified_at),
            "store": self.store.to_summary(),
            "verification_date": to_utc_z(self.verified_at),
        }


def normalize_number(certificate_number: str) -> str:
    return (certificate_number or "").strip().upper()


def get_by_number(certificate_number: str) -> Certificate:
    certificate = (
        db.session.query(Certificate)
        .filter_by(certificate_number=normalize_number(certificate_number))
        .first()
    )
    if certificate is None:
        raise NotFoundError("Certificate not found")
    return certificate


def get_certificate(certificate_id: int) -> Certificate:
    certificate = db.session.get(Certificate, certificate_id)
    if certificate is None:
        raise NotFoundError(f"Certificate {certificate_id} not found")
    return certificate


def verify(certificate_number: str, *, now: datetime | None = None) -> Verification:
    """Public verification by number. Raises NotFoundError for unknown numbers."""
    certificate = get_by_number(certificate_number)
    return Verification(certificate=certificate, store=certificate.store, verified_at=now or utcnow())


def search(query: str) -> Certificate | None:
    """
    Best single match: an exact certificate number first, otherwise the most
    recently issued certificate of a store whose name, address or city
    contains the query.
    """
    text = (query or "").strip()
    if len(text) < MIN_SEARCH_LENGTH:
        raise ValidationError(f"Search query must be at least {MIN_SEARCH_LENGTH} characters")

    exact = (
        db.session.query(Certificate)
        .filter_by(certificate_number=normalize_number(text))
        .first()
    )
    if exact is not None:
        return exact

    pattern = f"%{text}%"
    return (
        db.session.query(Certificate)
        .join(Store, Certificate.store_id == Store.id)
        .filter(
            db.or_(
                Store.name.ilike(pattern),
                Store.address.ilike(pattern),
                Store.city.ilike(pattern),
            )
        )
        .order_by(Certificate.issued_at.desc(), Certificate.id.desc())
        .first()
    )


def list_certificates(
    *,
    status: str | None = None,
    text: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Certificate], int]:
    """Admin listing, newest first. Returns (rows, total)."""
    if status is not None and status not in CERTIFICATE_STATUSES:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(sorted(CERTIFICATE_STATUSES))}")
    if limit < 1 or offset < 0:
        raise ValidationError("limit must be positive and offset non-negative")
    limit = min(limit, MAX_PAGE_SIZE)

    query = db.session.query(Certificate).join(Store, Certificate.store_id == Store.id)
    if status:
        query = query.filter(Certificate.status == status)
    if text:
        pattern = f"%{text.strip()}%"
        query = query.filter(
            db.or_(Certificate.certificate_number.ilike(pattern), Store.name.ilike(pattern))
        )

    total = query.count()
    rows = query.order_by(Certificate.issued_at.desc(), Certificate.id.desc()).offset(offset).limit(limit).all()
    return rows, total


def revoke(certificate_id: int, reason: str | None, *, actor: Actor) -> Certificate:
    """
    Revoke a certificate. One way: a revoked certificate never becomes active again.

    Raises:
        NotFoundError, CertificateAlreadyRevokedError (status and audit trail untouched)
    """
    reason = validate_notes(reason)

    with unit_of_work():
        certificate = lock_for_update(db.session.query(Certificate).filter_by(id=certificate_id)).first()
        if certificate is None:
            raise NotFoundError(f"Certificate {certificate_id} not found")
        if certificate.status == CERTIFICATE_REVOKED:
            raise CertificateAlreadyRevokedError(
                f"Certificate {certificate.certificate_number} is already revoked"
            )

        previous_status = certificate.status
        certificate.status = CERTIFICATE_REVOKED
        certificate.revoked_at = utcnow()
        certificate.revoked_by_user_id = actor.user_id
        certificate.revocation_reason = reason

        audit_service.record(
            audit_service.CERTIFICATE_REVOKED,
            audit_service.ENTITY_CERTIFICATE,
            certificate.id,
            actor=actor,
            details={
                "certificate_number": certificate.certificate_number,
                "previous_status": previous_status,
                "reason": reason,
            },
        )

    current_app.logger.info("Certificate %s revoked by user %s", certificate.certificate_number, actor.user_id)

    store = certificate.store
    subject, body = notification_service.certificate_revoked(store, certificate, reason)
    notification_service.send_best_effort(store.owner_email, subject, body)
    return certificate


def expire_overdue(*, now: datetime | None = None, actor: Actor = SYSTEM) -> list[Certificate]:
    """
    Administrative sweep: persist "expired" on active certificates past their expiry.

    Returns the certificates that were flipped.
    """
    now = now or utcnow()
    with unit_of_work():
        overdue = (
            lock_for_update(
                db.session.query(Certificate).filter(
                    Certificate.status == CERTIFICATE_ACTIVE,
                    Certificate.expires_at < now,
                )
            )
            .order_by(Certificate.id.asc())
            .all()
        )
        for certificate in overdue:
            certificate.status = CERTIFICATE_EXPIRED
            audit_service.record(
                audit_service.CERTIFICATE_EXPIRED,
                audit_service.ENTITY_CERTIFICATE,
                certificate.id,
                actor=actor,
                details={
                    "certificate_number": certificate.certificate_number,
                    "expires_at": to_utc_z(certificate.expires_at),
                },
            )

    current_app.logger.info("Expiry sweep marked %d certificate(s) expired", len(overdue))
    return overdue
