from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Document(db.Model):
    """
    Uploaded evidence file (licences, floor plans, inspection photos).

    Backing table for the database evidence store. Workflow code only ever
    sees the id, as an opaque reference.
    """
    __tablename__ = "documents"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    filename = db.Column(db.String(255), nullable=False)
    mime_type = db.Column(db.String(128), nullable=False, default="application/octet-stream")
    file_size = db.Column(db.Integer, nullable=False)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    description = db.Column(db.String(500), nullable=True)

    data = db.Column(db.LargeBinary, nullable=False)

    uploaded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "filename": self.filename,
            "mime_type": self.mime_type,
            "file_size": self.file_size,
            "document_type": self.document_type,
            "description": self.description,
            "uploaded_by_user_id": self.uploaded_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
