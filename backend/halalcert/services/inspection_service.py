# Overview: Service-layer operations for inspections; owns the site-visit state machine and drives application decisions.

"""
Inspection Lifecycle Manager

STATES:
    scheduled -> in_progress -> completed
    scheduled | in_progress -> cancelled

RULES:
- Only the assigned inspector starts, completes or adds photos to an
  inspection. Admins schedule and cancel.
- decision is set if and only if status == completed.
- complete() is one unit of work: inspection completion, application
  approval/rejection and certificate issuance commit together or not at
  all. A failed issuance leaves the inspection in_progress.
- Several open inspections per application are allowed (re-inspections).

CHECK ORDER: NotFound, Forbidden, ValidationError, InvalidTransition.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app

from ..errors import ForbiddenError, InvalidTransitionError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Application, Inspection, InspectionPhoto, User
from ..models.applications import APPLICATION_PENDING, APPLICATION_UNDER_REVIEW
from ..models.auth import ROLE_INSPECTOR
from ..models.inspections import (
    INSPECTION_CANCELLED,
    INSPECTION_COMPLETED,
    INSPECTION_IN_PROGRESS,
    INSPECTION_SCHEDULED,
    OPEN_INSPECTION_STATUSES,
)
from ..time_utils import utcnow
from ..validation import (
    GeoPoint,
    validate_decision,
    validate_notes,
    validate_photo_type,
    validate_signature,
)
from . import application_service, audit_service, evidence_service, notification_service
from .actor import Actor
from .application_service import StatusChange
from .concurrency import lock_for_update, unit_of_work


SCHEDULABLE_APPLICATION_STATUSES = {APPLICATION_PENDING, APPLICATION_UNDER_REVIEW}


@dataclass
class CompletionResult:
    inspection: Inspection
    status_change: StatusChange


def get_inspection(inspection_id: int) -> Inspection:
    inspection = db.session.get(Inspection, inspection_id)
    if inspection is None:
        raise NotFoundError(f"Inspection {inspection_id} not found")
    return inspection


def list_assigned(inspector_id: int, *, include_closed: bool = False) -> list[Inspection]:
    """An inspector's inspections, soonest visit first; open ones only unless include_closed."""
    query = db.session.query(Inspection).filter_by(inspector_id=inspector_id)
    if not include_closed:
        query = query.filter(Inspection.status.in_(OPEN_INSPECTION_STATUSES))
    return query.order_by(Inspection.visit_date.is_(None), Inspection.visit_date.asc(), Inspection.id.asc()).all()


def list_for_application(application_id: int) -> list[Inspection]:
    return (
        db.session.query(Inspection)
        .filter_by(application_id=application_id)
        .order_by(Inspection.id.asc())
        .all()
    )


def _load_for_update(inspection_id: int) -> Inspection:
    inspection = lock_for_update(db.session.query(Inspection).filter_by(id=inspection_id)).first()
    if inspection is None:
        raise NotFoundError(f"Inspection {inspection_id} not found")
    return inspection


def _require_assigned(inspection: Inspection, inspector_id: int | None) -> None:
    if inspector_id is None or inspection.inspector_id != inspector_id:
        raise ForbiddenError(f"Inspection {inspection.id} is assigned to another inspector")


def _require_status(inspection: Inspection, allowed: set[str], action: str) -> None:
    if inspection.status not in allowed:
        raise InvalidTransitionError(f"Cannot {action} an inspection that is {inspection.status}")


# =============================================================================
# SCHEDULE
# =============================================================================

def schedule(
    application_id: int,
    inspector_id: int,
    *,
    actor: Actor,
    visit_date: datetime | None = None,
    notes: str | None = None,
) -> Inspection:
    """
    Create a scheduled inspection and nudge a pending application to under_review.

    Inspectors may only schedule visits for themselves; admins assign anyone.
    """
    application = db.session.get(Application, application_id)
    if application is None:
        raise NotFoundError(f"Application {application_id} not found")

    inspector = db.session.get(User, inspector_id)
    if inspector is None or not inspector.is_active or inspector.role != ROLE_INSPECTOR:
        raise NotFoundError(f"Inspector {inspector_id} not found")

    if not actor.is_admin and actor.user_id != inspector_id:
        raise ForbiddenError("Inspectors can only schedule their own inspections")

    notes = validate_notes(notes)

    with unit_of_work():
        application = application_service.load_for_update(application_id)
        if application.status not in SCHEDULABLE_APPLICATION_STATUSES:
            raise InvalidTransitionError(
                f"Cannot schedule an inspection for an application that is {application.status}"
            )

        inspection = Inspection(
            application_id=application.id,
            inspector_id=inspector_id,
            status=INSPECTION_SCHEDULED,
            visit_date=visit_date,
            notes=notes,
            created_by_user_id=actor.user_id,
        )
        db.session.add(inspection)
        db.session.flush()

        status_change = None
        if application.status == APPLICATION_PENDING:
            status_change = application_service.apply_transition(
                application, APPLICATION_UNDER_REVIEW, actor=actor,
            )

        audit_service.record(
            audit_service.INSPECTION_CREATED,
            audit_service.ENTITY_INSPECTION,
            inspection.id,
            actor=actor,
            details={
                "application_id": application.id,
                "inspector_id": inspector_id,
                "visit_date": visit_date.isoformat() if visit_date else None,
            },
        )

    current_app.logger.info(
        "Inspection %s scheduled for application %s (inspector %s)",
        inspection.id, application_id, inspector_id,
    )

    if status_change is not None:
        application_service.notify(status_change)
    if visit_date is not None:
        store = application.store
        subject, body = notification_service.inspection_scheduled(store, inspection)
        notification_service.send_best_effort(store.owner_email, subject, body)
    return inspection


# =============================================================================
# START / PHOTOS
# =============================================================================

def start(inspection_id: int, inspector_id: int, *, actor: Actor, geolocation: GeoPoint | None = None) -> Inspection:
    with unit_of_work():
        inspection = _load_for_update(inspection_id)
        _require_assigned(inspection, inspector_id)
        _require_status(inspection, {INSPECTION_SCHEDULED}, "start")

        now = utcnow()
        inspection.status = INSPECTION_IN_PROGRESS
        inspection.start_time = now
        inspection.updated_at = now
        if geolocation is not None:
            inspection.latitude = geolocation.latitude
            inspection.longitude = geolocation.longitude
            inspection.location_accuracy = geolocation.accuracy
            inspection.location_timestamp = geolocation.captured_at

        audit_service.record(
            audit_service.INSPECTION_STARTED,
            audit_service.ENTITY_INSPECTION,
            inspection.id,
            actor=actor,
            details={
                "application_id": inspection.application_id,
                "location": (
                    {"latitude": geolocation.latitude, "longitude": geolocation.longitude, "accuracy": geolocation.accuracy}
                    if geolocation else None
                ),
            },
        )
    return inspection


def attach_photo(
    inspection_id: int,
    evidence_ref: str,
    *,
    actor: Actor,
    photo_type: str | None = None,
    caption: str | None = None,
    geolocation: GeoPoint | None = None,
) -> InspectionPhoto:
    """
    Link an uploaded photo to an inspection. No state change.

    Allowed before, during and after the visit; not on a cancelled inspection.
    """
    with unit_of_work():
        inspection = _load_for_update(inspection_id)
        _require_assigned(inspection, actor.user_id)

        photo_type = validate_photo_type(photo_type)
        if not evidence_ref:
            raise ValidationError("evidence_ref is required")
        if caption is not None and len(caption) > 500:
            raise ValidationError("Caption must be less than 500 characters")
        evidence_service.require_references([str(evidence_ref)])

        _require_status(
            inspection,
            {INSPECTION_SCHEDULED, INSPECTION_IN_PROGRESS, INSPECTION_COMPLETED},
            "add photos to",
        )

        photo = InspectionPhoto(
            inspection_id=inspection.id,
            evidence_ref=str(evidence_ref),
            photo_type=photo_type,
            caption=caption,
            latitude=geolocation.latitude if geolocation else None,
            longitude=geolocation.longitude if geolocation else None,
            location_accuracy=geolocation.accuracy if geolocation else None,
            uploaded_by_user_id=actor.user_id,
        )
        db.session.add(photo)
        db.session.flush()

        audit_service.record(
            audit_service.INSPECTION_PHOTO_UPLOADED,
            audit_service.ENTITY_INSPECTION,
            inspection.id,
            actor=actor,
            details={"photo_id": photo.id, "evidence_ref": photo.evidence_ref, "photo_type": photo_type},
        )
    return photo


def list_photos(inspection_id: int) -> list[InspectionPhoto]:
    get_inspection(inspection_id)
    return (
        db.session.query(InspectionPhoto)
        .filter_by(inspection_id=inspection_id)
        .order_by(InspectionPhoto.id.asc())
        .all()
    )


# =============================================================================
# COMPLETE / CANCEL
# =============================================================================

def complete(
    inspection_id: int,
    inspector_id: int,
    decision: str,
    notes: str,
    *,
    actor: Actor,
    signature: str | None = None,
) -> CompletionResult:
    """
    Record the inspection outcome and apply it to the application.

    approved -> application approved + certificate issued
    rejected -> application rejected with the same notes

    Raises:
        NotFoundError, ForbiddenError, ValidationError,
        InvalidTransitionError (inspection not in progress, or application
        already decided), ConflictError, CertificateIssuanceError
    """
    with unit_of_work():
        inspection = _load_for_update(inspection_id)
        _require_assigned(inspection, inspector_id)

        decision = validate_decision(decision)
        notes = validate_notes(notes, required=True)
        signature = validate_signature(signature)

        _require_status(inspection, {INSPECTION_IN_PROGRESS}, "complete")

        now = utcnow()
        inspection.status = INSPECTION_COMPLETED
        inspection.end_time = now
        inspection.decision = decision
        inspection.notes = notes
        inspection.updated_at = now
        if signature is not None:
            inspection.digital_signature = signature
            inspection.signed_at = now

        audit_service.record(
            audit_service.INSPECTION_COMPLETED,
            audit_service.ENTITY_INSPECTION,
            inspection.id,
            actor=actor,
            details={
                "application_id": inspection.application_id,
                "decision": decision,
                "has_signature": signature is not None,
            },
        )

        application = application_service.load_for_update(inspection.application_id)
        status_change = application_service.apply_transition(
            application,
            decision,
            actor=actor,
            notes=notes,
            decided_by_inspection=inspection,
        )

    current_app.logger.info(
        "Inspection %s completed with decision %s; application %s is now %s",
        inspection.id, decision, status_change.application.id, status_change.new_status,
    )
    application_service.notify(status_change)
    return CompletionResult(inspection=inspection, status_change=status_change)


def cancel(inspection_id: int, *, actor: Actor, reason: str | None = None) -> Inspection:
    """Admins cancel any open inspection; an inspector only their own."""
    with unit_of_work():
        inspection = _load_for_update(inspection_id)
        if not actor.is_admin:
            _require_assigned(inspection, actor.user_id)

        reason = validate_notes(reason)
        _require_status(inspection, OPEN_INSPECTION_STATUSES, "cancel")

        previous_status = inspection.status
        now = utcnow()
        inspection.status = INSPECTION_CANCELLED
        inspection.cancelled_at = now
        inspection.cancellation_reason = reason
        inspection.updated_at = now

        audit_service.record(
            audit_service.INSPECTION_CANCELLED,
            audit_service.ENTITY_INSPECTION,
            inspection.id,
            actor=actor,
            details={
                "application_id": inspection.application_id,
                "previous_status": previous_status,
                "reason": reason,
            },
        )
    return inspection
