# Overview: Service-layer operations for the audit log; encapsulates business logic and database work.

"""
Audit Log Recorder

WHY: Every state change in the certification workflow must be reconstructable:
who did what to which entity, when, from where.

RULES:
- Append-only. Entries are never updated or deleted.
- Entries are written inside the caller's transaction, in a SAVEPOINT.
  A failed audit write is logged and dropped; it never aborts the state
  change it describes. If the state change itself rolls back, so does
  its audit entry.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import AuditLogEntry
from .actor import Actor


# Action tags
APPLICATION_SUBMITTED = "APPLICATION_SUBMITTED"
INSPECTION_CREATED = "INSPECTION_CREATED"
INSPECTION_STARTED = "INSPECTION_STARTED"
INSPECTION_COMPLETED = "INSPECTION_COMPLETED"
INSPECTION_CANCELLED = "INSPECTION_CANCELLED"
INSPECTION_PHOTO_UPLOADED = "INSPECTION_PHOTO_UPLOADED"
CERTIFICATE_ISSUED = "CERTIFICATE_ISSUED"
CERTIFICATE_REVOKED = "CERTIFICATE_REVOKED"
CERTIFICATE_EXPIRED = "CERTIFICATE_EXPIRED"
STORE_CREATED = "STORE_CREATED"
STORE_UPDATED = "STORE_UPDATED"
DOCUMENT_UPLOADED = "DOCUMENT_UPLOADED"
FEEDBACK_SUBMITTED = "FEEDBACK_SUBMITTED"
USER_CREATED = "USER_CREATED"
USER_UPDATED = "USER_UPDATED"
USER_DEACTIVATED = "USER_DEACTIVATED"
USER_REACTIVATED = "USER_REACTIVATED"
PASSWORD_RESET = "PASSWORD_RESET"

ENTITY_APPLICATION = "application"
ENTITY_INSPECTION = "inspection"
ENTITY_CERTIFICATE = "certificate"
ENTITY_STORE = "store"
ENTITY_FEEDBACK = "feedback"
ENTITY_DOCUMENT = "document"
ENTITY_USER = "user"


def application_status_action(status: str) -> str:
    """APPLICATION_UNDER_REVIEW, APPLICATION_APPROVED, ..."""
    return f"APPLICATION_{status.upper()}"


def record(
    action: str,
    entity_type: str,
    entity_id: int | None,
    *,
    actor: Actor | None = None,
    details: dict | None = None,
) -> AuditLogEntry | None:
    """
    Append an audit entry to the current transaction.

    Pending primary changes are flushed first, outside the savepoint, so
    their errors still reach the caller. Returns None if the audit write
    itself failed.
    """
    db.session.flush()

    entry = AuditLogEntry(
        actor_user_id=actor.user_id if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details or {},
        ip_address=actor.ip_address if actor else None,
    )
    try:
        with db.session.begin_nested():
            db.session.add(entry)
    except SQLAlchemyError:
        current_app.logger.exception(
            "Failed to write audit entry %s for %s %s", action, entity_type, entity_id
        )
        return None
    return entry


def history(entity_type: str, entity_id: int) -> list[AuditLogEntry]:
    """All entries for one entity, oldest first."""
    return (
        db.session.query(AuditLogEntry)
        .filter_by(entity_type=entity_type, entity_id=entity_id)
        .order_by(AuditLogEntry.created_at.asc(), AuditLogEntry.id.asc())
        .all()
    )


def entries_for_action(action: str, *, limit: int = 200) -> list[AuditLogEntry]:
    return (
        db.session.query(AuditLogEntry)
        .filter_by(action=action)
        .order_by(AuditLogEntry.id.desc())
        .limit(limit)
        .all()
    )
