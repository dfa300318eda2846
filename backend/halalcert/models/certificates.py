from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..time_utils import to_utc_z, utcnow, days_until


CERTIFICATE_ACTIVE = "active"
CERTIFICATE_EXPIRED = "expired"
CERTIFICATE_REVOKED = "revoked"

CERTIFICATE_STATUSES = {CERTIFICATE_ACTIVE, CERTIFICATE_EXPIRED, CERTIFICATE_REVOKED}


class Certificate(db.Model):
    """
    Halal certificate issued when an Application is approved.

    RULES:
    - certificate_number is globally unique and never changes
    - expiry is derived on read (now > expires_at); the stored status only
      becomes "expired" through the administrative sweep
    - revoked is final
    - at most one active certificate per store is expected, not enforced
    """
    __tablename__ = "certificates"
    __table_args__ = (
        db.UniqueConstraint("certificate_number", name="uq_certificates_number"),
        db.Index("ix_certificates_store_issued", "store_id", "issued_at"),
        db.Index("ix_certificates_status_expires", "status", "expires_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # HAL-<year>-<4 digits>
    certificate_number = db.Column(db.String(32), nullable=False)

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    application_id = db.Column(db.Integer, db.ForeignKey("applications.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=CERTIFICATE_ACTIVE, index=True)

    issued_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    issued_at = db.Column(db.DateTime(timezone=True), nullable=False)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    # String encoded into the QR image; rendering happens elsewhere
    verification_url = db.Column(db.String(512), nullable=False)

    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    revocation_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store", backref=db.backref("certificates", lazy=True))
    application = db.relationship("Application", backref=db.backref("certificates", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def is_expired(self, now: datetime | None = None) -> bool:
        return (now or utcnow()) > self.expires_at

    def is_valid(self, now: datetime | None = None) -> bool:
        return self.status == CERTIFICATE_ACTIVE and not self.is_expired(now)

    def days_until_expiry(self, now: datetime | None = None) -> int:
        if self.is_expired(now):
            return 0
        return days_until(self.expires_at, now)

    def to_summary(self, now: datetime | None = None) -> dict:
        now = now or utcnow()
        return {
            "certificate_number": self.certificate_number,
            "status": self.status,
            "issued_date": to_utc_z(self.issued_at),
            "expiry_date": to_utc_z(self.expires_at),
            "is_expired": self.is_expired(now),
            "days_until_expiry": self.days_until_expiry(now),
            "verification_url": self.verification_url,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            **self.to_summary(),
            "store_id": self.store_id,
            "application_id": self.application_id,
            "issued_by_user_id": self.issued_by_user_id,
            "revoked_at": to_utc_z(self.revoked_at) if self.revoked_at else None,
            "revoked_by_user_id": self.revoked_by_user_id,
            "revocation_reason": self.revocation_reason,
        }
