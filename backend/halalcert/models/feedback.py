from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


FEEDBACK_PENDING = "pending"
FEEDBACK_APPROVED = "approved"
FEEDBACK_REJECTED = "rejected"

FEEDBACK_TYPES = {"review", "complaint"}


class Feedback(db.Model):
    """
    Public review or complaint about a certified business.

    LIFECYCLE: pending -> approved (published) | rejected. Moderated by admins.
    """
    __tablename__ = "feedback"
    __table_args__ = (
        db.Index("ix_feedback_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    author_name = db.Column(db.String(100), nullable=True)
    author_email = db.Column(db.String(255), nullable=True)
    content = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(16), nullable=False)  # review, complaint

    status = db.Column(db.String(16), nullable=False, default=FEEDBACK_PENDING, index=True)
    moderator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    moderated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store", backref=db.backref("feedback", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "author_name": self.author_name,
            "content": self.content,
            "type": self.type,
            "status": self.status,
            "moderator_id": self.moderator_id,
            "moderated_at": to_utc_z(self.moderated_at) if self.moderated_at else None,
            "created_at": to_utc_z(self.created_at),
        }
