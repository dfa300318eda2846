from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


INSPECTION_SCHEDULED = "scheduled"
INSPECTION_IN_PROGRESS = "in_progress"
INSPECTION_COMPLETED = "completed"
INSPECTION_CANCELLED = "cancelled"

INSPECTION_STATUSES = {
    INSPECTION_SCHEDULED,
    INSPECTION_IN_PROGRESS,
    INSPECTION_COMPLETED,
    INSPECTION_CANCELLED,
}
OPEN_INSPECTION_STATUSES = {INSPECTION_SCHEDULED, INSPECTION_IN_PROGRESS}

DECISION_APPROVED = "approved"
DECISION_REJECTED = "rejected"


class Inspection(db.Model):
    """
    A site visit for one Application.

    LIFECYCLE:
        scheduled -> in_progress -> completed
        scheduled | in_progress -> cancelled

    INVARIANTS:
    - decision is set if and only if status == completed
    - in_progress implies start_time is set
    - only the assigned inspector mutates the row
    - latitude/longitude are recorded metadata, never used for authorization

    An Application may have several inspections (re-inspection, follow-ups).
    """
    __tablename__ = "inspections"
    __table_args__ = (
        db.Index("ix_inspections_application_status", "application_id", "status"),
        db.Index("ix_inspections_inspector_created", "inspector_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    application_id = db.Column(db.Integer, db.ForeignKey("applications.id"), nullable=False, index=True)
    inspector_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=INSPECTION_SCHEDULED, index=True)
    visit_date = db.Column(db.DateTime(timezone=True), nullable=True)

    # Location snapshot taken when the inspection started
    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    location_accuracy = db.Column(db.Float, nullable=True)
    location_timestamp = db.Column(db.DateTime(timezone=True), nullable=True)

    start_time = db.Column(db.DateTime(timezone=True), nullable=True)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)

    notes = db.Column(db.Text, nullable=True)
    decision = db.Column(db.String(16), nullable=True)  # approved, rejected; only when completed

    # data:image/...;base64 payload captured on the inspector's device
    digital_signature = db.Column(db.Text, nullable=True)
    signed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancellation_reason = db.Column(db.Text, nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    application = db.relationship("Application", backref=db.backref("inspections", lazy=True, order_by="Inspection.id"))
    inspector = db.relationship("User", foreign_keys=[inspector_id])
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "application_id": self.application_id,
            "inspector_id": self.inspector_id,
            "status": self.status,
            "visit_date": to_utc_z(self.visit_date) if self.visit_date else None,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "location_accuracy": self.location_accuracy,
            "location_timestamp": to_utc_z(self.location_timestamp) if self.location_timestamp else None,
            "start_time": to_utc_z(self.start_time) if self.start_time else None,
            "end_time": to_utc_z(self.end_time) if self.end_time else None,
            "notes": self.notes,
            "decision": self.decision,
            "has_signature": self.digital_signature is not None,
            "signed_at": to_utc_z(self.signed_at) if self.signed_at else None,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "cancellation_reason": self.cancellation_reason,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at) if self.updated_at else None,
        }


class InspectionPhoto(db.Model):
    """
    Evidence photo linked to an Inspection.

    Append-only; may be added after completion (retroactive evidence).
    The image bytes live in the evidence store under evidence_ref.
    """
    __tablename__ = "inspection_photos"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inspection_id = db.Column(db.Integer, db.ForeignKey("inspections.id"), nullable=False, index=True)
    evidence_ref = db.Column(db.String(64), nullable=False)

    photo_type = db.Column(db.String(32), nullable=False, default="other")
    caption = db.Column(db.String(500), nullable=True)

    latitude = db.Column(db.Float, nullable=True)
    longitude = db.Column(db.Float, nullable=True)
    location_accuracy = db.Column(db.Float, nullable=True)

    uploaded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    inspection = db.relationship("Inspection", backref=db.backref("photos", lazy=True, order_by="InspectionPhoto.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inspection_id": self.inspection_id,
            "evidence_ref": self.evidence_ref,
            "photo_type": self.photo_type,
            "caption": self.caption,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "location_accuracy": self.location_accuracy,
            "uploaded_by_user_id": self.uploaded_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
