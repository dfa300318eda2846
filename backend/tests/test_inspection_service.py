"""
Inspection lifecycle tests.

Verifies:
- Only the assigned inspector starts, completes or photographs an inspection
- Completing an inspection decides the application in the same transaction
- A failed certificate issuance leaves everything as it was
- Cancelled and completed inspections are closed
"""

from datetime import datetime

import pytest

from conftest import (
    ADMIN,
    INSPECTOR,
    INSPECTOR_ID,
    OTHER_INSPECTOR,
    OTHER_INSPECTOR_ID,
    application_payload,
    store_payload,
)
from halalcert.errors import (
    CertificateIssuanceError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from halalcert.extensions import db
from halalcert.models import Application, Certificate, Inspection
from halalcert.services import (
    application_service,
    audit_service,
    certificate_service,
    evidence_service,
    inspection_service,
    issuer_service,
)
from halalcert.services.concurrency import unit_of_work
from halalcert.validation import GeoPoint


VISIT = datetime(2026, 11, 2, 10, 0)
SIGNATURE = "data:image/png;base64,iVBORw0KGgo="


@pytest.fixture
def scheduled(submitted):
    return inspection_service.schedule(submitted.id, INSPECTOR_ID, actor=ADMIN, visit_date=VISIT)


@pytest.fixture
def started(scheduled):
    return inspection_service.start(
        scheduled.id,
        INSPECTOR_ID,
        actor=INSPECTOR,
        geolocation=GeoPoint(latitude=-37.8, longitude=144.96, accuracy=12.0),
    )


# =============================================================================
# SCHEDULE
# =============================================================================


class TestSchedule:

    def test_moves_pending_application_to_under_review(self, submitted, mailbox):
        inspection = inspection_service.schedule(submitted.id, INSPECTOR_ID, actor=ADMIN, visit_date=VISIT)

        assert inspection.status == "scheduled"
        assert inspection.inspector_id == INSPECTOR_ID
        assert inspection.created_by_user_id == ADMIN.user_id
        assert db.session.get(Application, submitted.id).status == "under_review"
        assert "Halal Certification Inspection Scheduled" in mailbox.subjects("amina@alnoor.example")

        actions = [e.action for e in audit_service.history("application", submitted.id)]
        assert actions == ["APPLICATION_SUBMITTED", "APPLICATION_UNDER_REVIEW"]
        assert audit_service.history("inspection", inspection.id)[0].action == "INSPECTION_CREATED"

    def test_inspector_schedules_own_visit(self, submitted):
        inspection = inspection_service.schedule(submitted.id, INSPECTOR_ID, actor=INSPECTOR)
        assert inspection.visit_date is None

    def test_inspector_cannot_schedule_for_colleague(self, submitted):
        with pytest.raises(ForbiddenError):
            inspection_service.schedule(submitted.id, INSPECTOR_ID, actor=OTHER_INSPECTOR)
        assert db.session.query(Inspection).count() == 0

    def test_admin_is_not_an_inspector(self, submitted):
        with pytest.raises(NotFoundError, match="Inspector"):
            inspection_service.schedule(submitted.id, ADMIN.user_id, actor=ADMIN)

    def test_unknown_application(self, staff):
        with pytest.raises(NotFoundError):
            inspection_service.schedule(999, INSPECTOR_ID, actor=ADMIN)

    def test_decided_application_cannot_be_inspected(self, submitted):
        application_service.transition_status(submitted.id, "rejected", actor=ADMIN)

        with pytest.raises(InvalidTransitionError):
            inspection_service.schedule(submitted.id, INSPECTOR_ID, actor=ADMIN)

    def test_reinspection_allowed_while_under_review(self, scheduled):
        second = inspection_service.schedule(scheduled.application_id, OTHER_INSPECTOR_ID, actor=ADMIN)
        assert len(inspection_service.list_for_application(scheduled.application_id)) == 2
        assert second.status == "scheduled"


# =============================================================================
# START / PHOTOS
# =============================================================================


class TestStart:

    def test_records_start_and_location(self, scheduled):
        inspection = inspection_service.start(
            scheduled.id,
            INSPECTOR_ID,
            actor=INSPECTOR,
            geolocation=GeoPoint(latitude=-37.8, longitude=144.96, accuracy=12.0),
        )

        assert inspection.status == "in_progress"
        assert inspection.start_time is not None
        assert inspection.latitude == -37.8
        assert inspection.location_accuracy == 12.0

    def test_other_inspector_forbidden(self, scheduled):
        with pytest.raises(ForbiddenError):
            inspection_service.start(scheduled.id, OTHER_INSPECTOR_ID, actor=OTHER_INSPECTOR)
        assert db.session.get(Inspection, scheduled.id).status == "scheduled"

    def test_cannot_start_twice(self, started):
        with pytest.raises(InvalidTransitionError):
            inspection_service.start(started.id, INSPECTOR_ID, actor=INSPECTOR)

    def test_unknown_inspection(self, staff):
        with pytest.raises(NotFoundError):
            inspection_service.start(31337, INSPECTOR_ID, actor=INSPECTOR)


class TestPhotos:

    def _upload(self):
        with unit_of_work():
            return evidence_service.upload(
                b"\x89PNG fake",
                filename="kitchen.png",
                mime_type="image/png",
                document_type="inspection_photo",
                actor=INSPECTOR,
            )

    def test_attach_photo(self, started):
        reference = self._upload()

        photo = inspection_service.attach_photo(
            started.id, reference, actor=INSPECTOR, photo_type="kitchen", caption="Prep area"
        )

        assert photo.evidence_ref == reference
        assert [p.id for p in inspection_service.list_photos(started.id)] == [photo.id]
        assert audit_service.history("inspection", started.id)[-1].action == "INSPECTION_PHOTO_UPLOADED"

    def test_photo_after_completion_allowed(self, started):
        inspection_service.complete(started.id, INSPECTOR_ID, "rejected", "Cross contamination", actor=INSPECTOR)
        photo = inspection_service.attach_photo(started.id, self._upload(), actor=INSPECTOR)
        assert photo.photo_type == "other"

    def test_other_inspector_forbidden(self, started):
        with pytest.raises(ForbiddenError):
            inspection_service.attach_photo(started.id, self._upload(), actor=OTHER_INSPECTOR)

    def test_unknown_photo_type(self, started):
        with pytest.raises(ValidationError):
            inspection_service.attach_photo(started.id, self._upload(), actor=INSPECTOR, photo_type="selfie")

    def test_unknown_evidence_reference(self, started):
        with pytest.raises(NotFoundError):
            inspection_service.attach_photo(started.id, "4040", actor=INSPECTOR)

    def test_cancelled_inspection_rejects_photos(self, scheduled):
        inspection_service.cancel(scheduled.id, actor=ADMIN, reason="Owner unavailable")
        with pytest.raises(InvalidTransitionError):
            inspection_service.attach_photo(scheduled.id, self._upload(), actor=INSPECTOR)


# =============================================================================
# COMPLETE
# =============================================================================


class TestComplete:

    def test_approval_issues_certificate(self, started, mailbox):
        result = inspection_service.complete(
            started.id,
            INSPECTOR_ID,
            "approved",
            "All suppliers certified, kitchen compliant",
            actor=INSPECTOR,
            signature=SIGNATURE,
        )

        inspection = result.inspection
        assert inspection.status == "completed"
        assert inspection.decision == "approved"
        assert inspection.end_time is not None
        assert inspection.signed_at is not None

        application = db.session.get(Application, inspection.application_id)
        assert application.status == "approved"

        certificate = result.status_change.certificate
        assert certificate.application_id == application.id
        assert certificate.issued_by_user_id == INSPECTOR_ID
        assert certificate_service.verify(certificate.certificate_number).valid is True
        assert "Halal Certification Approved" in mailbox.subjects("amina@alnoor.example")

        entry = audit_service.history("application", application.id)[-1]
        assert entry.action == "APPLICATION_APPROVED"
        assert entry.details["inspection_id"] == inspection.id
        assert entry.details["override"] is False

    def test_rejection_rejects_application_with_notes(self, started, mailbox):
        result = inspection_service.complete(
            started.id, INSPECTOR_ID, "rejected", "Uncertified gelatin supplier", actor=INSPECTOR
        )

        application = result.status_change.application
        assert application.status == "rejected"
        assert application.notes == "Uncertified gelatin supplier"
        assert result.status_change.certificate is None
        assert db.session.query(Certificate).count() == 0
        assert "Uncertified gelatin supplier" in mailbox.sent[-1]["body"]

    def test_other_inspector_forbidden(self, started):
        with pytest.raises(ForbiddenError):
            inspection_service.complete(started.id, OTHER_INSPECTOR_ID, "approved", "Looks fine", actor=OTHER_INSPECTOR)

        assert db.session.get(Inspection, started.id).status == "in_progress"
        assert db.session.get(Application, started.application_id).status == "under_review"

    def test_forbidden_checked_before_validation(self, started):
        with pytest.raises(ForbiddenError):
            inspection_service.complete(started.id, OTHER_INSPECTOR_ID, "maybe", "", actor=OTHER_INSPECTOR)

    def test_invalid_decision(self, started):
        with pytest.raises(ValidationError):
            inspection_service.complete(started.id, INSPECTOR_ID, "maybe", "Unsure", actor=INSPECTOR)

    def test_notes_required(self, started):
        with pytest.raises(ValidationError, match="notes"):
            inspection_service.complete(started.id, INSPECTOR_ID, "approved", "  ", actor=INSPECTOR)

    def test_bad_signature_format(self, started):
        with pytest.raises(ValidationError, match="signature"):
            inspection_service.complete(
                started.id, INSPECTOR_ID, "approved", "Fine", actor=INSPECTOR, signature="scribble"
            )

    def test_must_be_started_first(self, scheduled):
        with pytest.raises(InvalidTransitionError):
            inspection_service.complete(scheduled.id, INSPECTOR_ID, "approved", "Fine", actor=INSPECTOR)

    def test_cannot_complete_twice(self, started):
        inspection_service.complete(started.id, INSPECTOR_ID, "approved", "Fine", actor=INSPECTOR)
        with pytest.raises(InvalidTransitionError):
            inspection_service.complete(started.id, INSPECTOR_ID, "rejected", "Changed my mind", actor=INSPECTOR)
        assert db.session.query(Certificate).count() == 1

    def test_application_decided_elsewhere_blocks_completion(self, started):
        application_service.transition_status(started.application_id, "rejected", actor=ADMIN)

        with pytest.raises(InvalidTransitionError):
            inspection_service.complete(started.id, INSPECTOR_ID, "approved", "Fine", actor=INSPECTOR)

        inspection = db.session.get(Inspection, started.id)
        assert inspection.status == "in_progress"
        assert inspection.decision is None

    def test_open_reinspection_cannot_decide_again(self, started):
        second = inspection_service.schedule(started.application_id, OTHER_INSPECTOR_ID, actor=ADMIN)
        inspection_service.start(second.id, OTHER_INSPECTOR_ID, actor=OTHER_INSPECTOR)
        inspection_service.complete(started.id, INSPECTOR_ID, "approved", "Compliant kitchen", actor=INSPECTOR)

        with pytest.raises(InvalidTransitionError):
            inspection_service.complete(second.id, OTHER_INSPECTOR_ID, "rejected", "Found issues", actor=OTHER_INSPECTOR)

        assert db.session.get(Inspection, second.id).status == "in_progress"
        assert inspection_service.cancel(second.id, actor=ADMIN, reason="Already decided").status == "cancelled"
        assert db.session.get(Application, started.application_id).status == "approved"
        assert db.session.query(Certificate).count() == 1

    def test_issuance_failure_rolls_back_completion(self, started, monkeypatch):
        # Occupy a number, then make the issuer draw it every time
        other = application_service.submit(
            store_payload(owner_email="owner@other.example"), application_payload()
        )
        taken = application_service.transition_status(other.id, "approved", actor=ADMIN).certificate
        monkeypatch.setattr(issuer_service, "generate_certificate_number", lambda year: taken.certificate_number)

        with pytest.raises(CertificateIssuanceError):
            inspection_service.complete(started.id, INSPECTOR_ID, "approved", "Fine", actor=INSPECTOR)

        db.session.expire_all()
        inspection = db.session.get(Inspection, started.id)
        assert inspection.status == "in_progress"
        assert inspection.decision is None
        assert db.session.get(Application, started.application_id).status == "under_review"
        assert db.session.query(Certificate).count() == 1
        assert all(e.action != "INSPECTION_COMPLETED" for e in audit_service.history("inspection", started.id))


# =============================================================================
# CANCEL / LISTING
# =============================================================================


class TestCancel:

    def test_admin_cancels(self, scheduled):
        inspection = inspection_service.cancel(scheduled.id, actor=ADMIN, reason="Owner unavailable")

        assert inspection.status == "cancelled"
        assert inspection.cancellation_reason == "Owner unavailable"
        assert inspection.decision is None

    def test_assigned_inspector_cancels_own(self, started):
        assert inspection_service.cancel(started.id, actor=INSPECTOR).status == "cancelled"

    def test_other_inspector_forbidden(self, scheduled):
        with pytest.raises(ForbiddenError):
            inspection_service.cancel(scheduled.id, actor=OTHER_INSPECTOR)

    def test_completed_inspection_cannot_be_cancelled(self, started):
        inspection_service.complete(started.id, INSPECTOR_ID, "approved", "Fine", actor=INSPECTOR)
        with pytest.raises(InvalidTransitionError):
            inspection_service.cancel(started.id, actor=ADMIN)

    def test_cancelled_cannot_be_started(self, scheduled):
        inspection_service.cancel(scheduled.id, actor=ADMIN)
        with pytest.raises(InvalidTransitionError):
            inspection_service.start(scheduled.id, INSPECTOR_ID, actor=INSPECTOR)


class TestAssigned:

    def test_lists_open_inspections_only_by_default(self, scheduled, submitted):
        other = inspection_service.schedule(submitted.id, INSPECTOR_ID, actor=ADMIN)
        inspection_service.cancel(other.id, actor=ADMIN)

        assert [i.id for i in inspection_service.list_assigned(INSPECTOR_ID)] == [scheduled.id]
        assert len(inspection_service.list_assigned(INSPECTOR_ID, include_closed=True)) == 2
        assert inspection_service.list_assigned(OTHER_INSPECTOR_ID) == []

