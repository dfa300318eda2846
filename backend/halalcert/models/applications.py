from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


APPLICATION_PENDING = "pending"
APPLICATION_UNDER_REVIEW = "under_review"
APPLICATION_APPROVED = "approved"
APPLICATION_REJECTED = "rejected"

APPLICATION_STATUSES = {
    APPLICATION_PENDING,
    APPLICATION_UNDER_REVIEW,
    APPLICATION_APPROVED,
    APPLICATION_REJECTED,
}


class Application(db.Model):
    """
    One certification request for a Store.

    LIFECYCLE:
    1. pending: submitted by the business owner
    2. under_review: an inspection has been scheduled / review started
    3. approved: inspection passed (or admin override), certificate issued
    4. rejected: inspection failed (or admin override)

    approved and rejected are terminal. Reapplying creates a new row.
    Status changes only go through application_service.
    """
    __tablename__ = "applications"
    __table_args__ = (
        db.Index("ix_applications_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=APPLICATION_PENDING, index=True)

    # Declared operations
    products = db.Column(db.JSON, nullable=False)    # ["Tea", ...] in declared order
    suppliers = db.Column(db.JSON, nullable=False)   # [{"name", "material", "certified"}]
    employee_count = db.Column(db.String(16), nullable=False)
    operating_hours = db.Column(db.String(200), nullable=False)

    # Evidence store references (opaque ids)
    business_license_ref = db.Column(db.String(64), nullable=True)
    floor_plan_ref = db.Column(db.String(64), nullable=True)
    supplier_certificates_ref = db.Column(db.String(64), nullable=True)
    additional_documents_ref = db.Column(db.String(64), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    payment_reference = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Optimistic locking: a concurrent transition on a stale row raises StaleDataError
    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store", backref=db.backref("applications", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def evidence_refs(self) -> dict:
        return {
            "business_license": self.business_license_ref,
            "floor_plan": self.floor_plan_ref,
            "supplier_certificates": self.supplier_certificates_ref,
            "additional_documents": self.additional_documents_ref,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "status": self.status,
            "products": list(self.products or []),
            "suppliers": list(self.suppliers or []),
            "employee_count": self.employee_count,
            "operating_hours": self.operating_hours,
            "evidence": self.evidence_refs,
            "notes": self.notes,
            "payment_reference": self.payment_reference,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
            "version_id": self.version_id,
        }
