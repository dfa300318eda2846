# Overview: Service-layer operations for public feedback; submission and admin moderation.

from __future__ import annotations

from flask import current_app

from ..errors import InvalidTransitionError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Feedback
from ..models.feedback import FEEDBACK_APPROVED, FEEDBACK_PENDING, FEEDBACK_REJECTED, FEEDBACK_TYPES
from ..time_utils import utcnow
from ..validation import EMAIL_RE, normalize_email, optional_text, require_text
from . import audit_service, notification_service, store_service
from .actor import Actor, SYSTEM
from .concurrency import lock_for_update, unit_of_work


MODERATION_OUTCOMES = {FEEDBACK_APPROVED, FEEDBACK_REJECTED}


def submit_feedback(store_id: int, data: dict, *, actor: Actor = SYSTEM) -> Feedback:
    store_service.get_store(store_id)

    feedback_type = data.get("type")
    if feedback_type not in FEEDBACK_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(sorted(FEEDBACK_TYPES))}")

    author_email = optional_text(data, "author_email", max_len=255, label="Email")
    if author_email is not None:
        if not EMAIL_RE.match(author_email):
            raise ValidationError("Email has an invalid format")
        author_email = normalize_email(author_email)

    with unit_of_work():
        feedback = Feedback(
            store_id=store_id,
            author_name=optional_text(data, "author_name", max_len=100, label="Name"),
            author_email=author_email,
            content=require_text(data, "content", min_len=10, max_len=2000, label="Feedback"),
            type=feedback_type,
            status=FEEDBACK_PENDING,
        )
        db.session.add(feedback)
        db.session.flush()
        audit_service.record(
            audit_service.FEEDBACK_SUBMITTED,
            audit_service.ENTITY_FEEDBACK,
            feedback.id,
            actor=actor,
            details={"store_id": store_id, "type": feedback_type},
        )
    return feedback


def moderate(feedback_id: int, outcome: str, *, actor: Actor) -> Feedback:
    """pending -> approved | rejected. The author is told when they left an email."""
    if outcome not in MODERATION_OUTCOMES:
        raise ValidationError("status must be 'approved' or 'rejected'")

    with unit_of_work():
        feedback = lock_for_update(db.session.query(Feedback).filter_by(id=feedback_id)).first()
        if feedback is None:
            raise NotFoundError(f"Feedback {feedback_id} not found")
        if feedback.status != FEEDBACK_PENDING:
            raise InvalidTransitionError(f"Feedback {feedback_id} has already been {feedback.status}")

        feedback.status = outcome
        feedback.moderator_id = actor.user_id
        feedback.moderated_at = utcnow()

        audit_service.record(
            f"FEEDBACK_{outcome.upper()}",
            audit_service.ENTITY_FEEDBACK,
            feedback.id,
            actor=actor,
            details={"store_id": feedback.store_id, "type": feedback.type},
        )

    current_app.logger.info("Feedback %s %s by user %s", feedback_id, outcome, actor.user_id)

    if feedback.author_email:
        subject, body = notification_service.feedback_moderated(feedback)
        notification_service.send_best_effort(feedback.author_email, subject, body)
    return feedback


def list_feedback(*, status: str | None = None, store_id: int | None = None) -> list[Feedback]:
    query = db.session.query(Feedback)
    if status:
        query = query.filter_by(status=status)
    if store_id is not None:
        query = query.filter_by(store_id=store_id)
    return query.order_by(Feedback.created_at.desc(), Feedback.id.desc()).all()


def published_for_store(store_id: int) -> list[Feedback]:
    store_service.get_store(store_id)
    return list_feedback(status=FEEDBACK_APPROVED, store_id=store_id)
