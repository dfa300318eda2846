from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z, utcnow


class AuditLogEntry(db.Model):
    """
    Append-only record of a state-changing action.

    IMMUTABLE: Never update or delete. actor_user_id is NULL for system
    actions (public submissions, the expiry sweep).
    """
    __tablename__ = "audit_log_entries"
    __table_args__ = (
        db.Index("ix_audit_entity", "entity_type", "entity_id"),
        db.Index("ix_audit_action_created", "action", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    action = db.Column(db.String(64), nullable=False)        # APPLICATION_SUBMITTED, INSPECTION_STARTED, ...
    entity_type = db.Column(db.String(32), nullable=False)   # application, inspection, certificate, ...
    entity_id = db.Column(db.Integer, nullable=True)
    details = db.Column(db.JSON, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "actor_user_id": self.actor_user_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "details": self.details or {},
            "ip_address": self.ip_address,
            "created_at": to_utc_z(self.created_at),
        }
