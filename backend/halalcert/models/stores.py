from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Store(db.Model):
    """
    A business applying for (or holding) Halal certification.

    IDENTITY: one Store per owner email. A second application from the same
    owner reuses the existing row. Stores are never deleted.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("owner_email", name="uq_stores_owner_email"),
        db.Index("ix_stores_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(200), nullable=False)
    address = db.Column(db.String(500), nullable=False)
    city = db.Column(db.String(100), nullable=False)
    state = db.Column(db.String(50), nullable=False)
    postcode = db.Column(db.String(10), nullable=False)
    business_type = db.Column(db.String(32), nullable=False)

    # Australian Business Number, 11 digits
    abn = db.Column(db.String(11), nullable=False)
    established = db.Column(db.String(4), nullable=True)

    owner_name = db.Column(db.String(100), nullable=False)
    owner_email = db.Column(db.String(255), nullable=False)  # normalized lower-case
    owner_phone = db.Column(db.String(20), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def full_address(self) -> str:
        return f"{self.address}, {self.city}, {self.state} {self.postcode}"

    def to_summary(self) -> dict:
        """Public view: no owner contact details."""
        return {
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "postcode": self.postcode,
            "business_type": self.business_type,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            **self.to_summary(),
            "abn": self.abn,
            "established": self.established,
            "owner_name": self.owner_name,
            "owner_email": self.owner_email,
            "owner_phone": self.owner_phone,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }
