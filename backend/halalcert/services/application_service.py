# Overview: Service-layer operations for applications; owns the application state machine and approval side effects.

"""
Application Lifecycle Manager

STATES:
    pending -> under_review -> approved | rejected
    pending -> approved | rejected     (override only)

approved and rejected are terminal. Reapplying is a new Application row.

TRANSACTION RULES:
- A transition runs in one transaction with the application row locked
  and version-checked. Losing a race gives ConflictError (409) or, once the
  winner has committed, InvalidTransitionError. Nothing is overwritten.
- Approval issues the certificate in the same transaction. If issuance
  fails the status change is rolled back with it.
- Audit entries ride along in a SAVEPOINT (see audit_service).
- Notifications go out after commit and never undo a transition. The one
  exception is submit(): the confirmation email is part of the submission,
  so a failed send aborts it.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import InvalidTransitionError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Application, Certificate, Inspection
from ..models.applications import (
    APPLICATION_APPROVED,
    APPLICATION_PENDING,
    APPLICATION_REJECTED,
    APPLICATION_STATUSES,
    APPLICATION_UNDER_REVIEW,
)
from ..models.inspections import DECISION_APPROVED, INSPECTION_COMPLETED
from ..time_utils import utcnow
from ..validation import (
    validate_application_fields,
    validate_evidence_refs,
    validate_notes,
    validate_payment_reference,
    validate_store_fields,
)
from . import audit_service, evidence_service, issuer_service, notification_service, payment_service, store_service
from .actor import Actor, SYSTEM
from .concurrency import lock_for_update, unit_of_work


TRANSITIONS = {
    APPLICATION_PENDING: {APPLICATION_UNDER_REVIEW, APPLICATION_APPROVED, APPLICATION_REJECTED},
    APPLICATION_UNDER_REVIEW: {APPLICATION_APPROVED, APPLICATION_REJECTED},
    APPLICATION_APPROVED: set(),
    APPLICATION_REJECTED: set(),
}

# Skipping review needs override authority (admin) or an inspection decision
OVERRIDE_ONLY = {
    (APPLICATION_PENDING, APPLICATION_APPROVED),
    (APPLICATION_PENDING, APPLICATION_REJECTED),
}

TARGET_STATUSES = APPLICATION_STATUSES - {APPLICATION_PENDING}


@dataclass
class StatusChange:
    """Outcome of one committed transition; used to send notifications after commit."""
    application: Application
    previous_status: str
    new_status: str
    notes: str | None = None
    certificate: Certificate | None = None


def get_application(application_id: int) -> Application:
    application = db.session.get(Application, application_id)
    if application is None:
        raise NotFoundError(f"Application {application_id} not found")
    return application


def list_applications(statuses: set[str] | None = None, *, limit: int = 100, offset: int = 0):
    """Returns (applications, total) newest first."""
    query = db.session.query(Application)
    if statuses:
        unknown = set(statuses) - APPLICATION_STATUSES
        if unknown:
            raise ValidationError(f"Invalid status filter: {', '.join(sorted(unknown))}")
        query = query.filter(Application.status.in_(statuses))
    total = query.count()
    rows = query.order_by(Application.created_at.desc(), Application.id.desc()).offset(offset).limit(limit).all()
    return rows, total


def has_approved_inspection(application_id: int) -> bool:
    return db.session.query(
        db.session.query(Inspection.id)
        .filter_by(application_id=application_id, status=INSPECTION_COMPLETED, decision=DECISION_APPROVED)
        .exists()
    ).scalar()


# =============================================================================
# SUBMISSION
# =============================================================================

def submit(
    store_data: dict,
    application_data: dict,
    evidence_refs: dict | None = None,
    payment_reference: str | None = None,
    *,
    actor: Actor = SYSTEM,
) -> Application:
    """
    Create a pending Application, reusing or creating the Store by owner email.

    All or nothing: validation, payment check, rows, audit entry and the
    confirmation email. Any failure leaves no rows behind.

    Raises:
        ValidationError, PaymentNotVerifiedError,
        DependencyFailureError (payment provider or mail failed), NotFoundError (unknown evidence reference)
    """
    store_fields = validate_store_fields(store_data)
    application_fields = validate_application_fields(application_data)
    evidence_columns = validate_evidence_refs(evidence_refs)
    payment_reference = validate_payment_reference(payment_reference)

    evidence_service.require_references(evidence_columns.values())
    if payment_reference:
        payment_service.require_succeeded(payment_reference)

    with unit_of_work():
        store, store_created = store_service.resolve_or_create(store_fields, actor=actor)

        application = Application(
            store_id=store.id,
            status=APPLICATION_PENDING,
            payment_reference=payment_reference,
            **application_fields,
            **evidence_columns,
        )
        db.session.add(application)
        db.session.flush()

        audit_service.record(
            audit_service.APPLICATION_SUBMITTED,
            audit_service.ENTITY_APPLICATION,
            application.id,
            actor=actor,
            details={
                "store_id": store.id,
                "store_name": store.name,
                "new_store": store_created,
                "products": application.products,
                "payment_reference": payment_reference,
            },
        )

        # Mail is the last step before commit. Every row is already flushed, so
        # only the commit itself can still fail after the owner is emailed.
        db.session.flush()
        subject, body = notification_service.application_received(store, application)
        notification_service.send_required(store.owner_email, subject, body)

    current_app.logger.info("Application %s submitted for store %s", application.id, store.id)
    return application


# =============================================================================
# TRANSITIONS
# =============================================================================

def load_for_update(application_id: int) -> Application:
    application = lock_for_update(db.session.query(Application).filter_by(id=application_id)).first()
    if application is None:
        raise NotFoundError(f"Application {application_id} not found")
    return application


def apply_transition(
    application: Application,
    new_status: str,
    *,
    actor: Actor,
    notes: str | None = None,
    decided_by_inspection: Inspection | None = None,
) -> StatusChange:
    """
    Move a locked application to new_status inside the caller's transaction.

    decided_by_inspection is set when an inspection decision drives the
    change; it stands in for the approved-inspection requirement and for
    override authority. The caller commits, then calls notify().
    """
    if new_status not in TARGET_STATUSES:
        raise ValidationError(
            f"Invalid status '{new_status}'. Must be one of: {', '.join(sorted(TARGET_STATUSES))}"
        )

    previous_status = application.status
    if new_status not in TRANSITIONS[previous_status]:
        raise InvalidTransitionError(
            f"Cannot change application {application.id} from {previous_status} to {new_status}"
        )

    override = False
    if decided_by_inspection is None:
        if (previous_status, new_status) in OVERRIDE_ONLY:
            if not actor.is_admin:
                raise InvalidTransitionError(
                    f"Moving a {previous_status} application straight to {new_status} requires admin override"
                )
            override = True
        if new_status == APPLICATION_APPROVED and not has_approved_inspection(application.id):
            if not actor.is_admin:
                raise InvalidTransitionError("Application has no approved inspection")
            override = True

    application.status = new_status
    if notes is not None:
        application.notes = notes
    application.updated_at = utcnow()
    db.session.flush()

    certificate = None
    if new_status == APPLICATION_APPROVED:
        certificate = issuer_service.issue(application.store, application, actor.user_id)
        audit_service.record(
            audit_service.CERTIFICATE_ISSUED,
            audit_service.ENTITY_CERTIFICATE,
            certificate.id,
            actor=actor,
            details={
                "certificate_number": certificate.certificate_number,
                "application_id": application.id,
                "store_id": application.store_id,
                "expires_at": certificate.expires_at.isoformat(),
            },
        )

    details = {
        "previous_status": previous_status,
        "new_status": new_status,
        "notes": notes,
        "override": override,
    }
    if decided_by_inspection is not None:
        details["inspection_id"] = decided_by_inspection.id
    if certificate is not None:
        details["certificate_number"] = certificate.certificate_number

    audit_service.record(
        audit_service.application_status_action(new_status),
        audit_service.ENTITY_APPLICATION,
        application.id,
        actor=actor,
        details=details,
    )

    return StatusChange(
        application=application,
        previous_status=previous_status,
        new_status=new_status,
        notes=notes,
        certificate=certificate,
    )


def notify(change: StatusChange) -> bool:
    """Status email to the store owner. Best effort: call after commit."""
    store = change.application.store
    if change.new_status == APPLICATION_APPROVED:
        subject, body = notification_service.application_approved(store, change.certificate)
    elif change.new_status == APPLICATION_REJECTED:
        subject, body = notification_service.application_rejected(store, change.notes)
    else:
        subject, body = notification_service.application_under_review(store)
    return notification_service.send_best_effort(store.owner_email, subject, body)


def transition_status(
    application_id: int,
    new_status: str,
    *,
    actor: Actor,
    notes: str | None = None,
) -> StatusChange:
    """
    Direct status change requested by staff.

    Raises:
        NotFoundError, ValidationError, InvalidTransitionError,
        ConflictError (lost a race), CertificateIssuanceError
    """
    notes = validate_notes(notes)

    with unit_of_work():
        application = load_for_update(application_id)
        change = apply_transition(application, new_status, actor=actor, notes=notes)

    current_app.logger.info(
        "Application %s: %s -> %s by user %s",
        application_id, change.previous_status, change.new_status, actor.user_id,
    )
    notify(change)
    return change
