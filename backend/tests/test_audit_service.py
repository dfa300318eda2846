"""
Audit log tests.

Verifies:
- Entries carry actor, entity and details
- A failed audit write never aborts the state change it describes
- A rolled back state change takes its audit entry with it
"""

import pytest

from conftest import ADMIN, INSPECTOR, application_payload, store_payload
from halalcert.extensions import db
from halalcert.models import AuditLogEntry, Feedback
from halalcert.services import application_service, audit_service, feedback_service
from halalcert.services.concurrency import unit_of_work


class TestRecord:

    def test_entry_fields(self, submitted):
        with unit_of_work():
            entry = audit_service.record(
                "APPLICATION_NOTE_ADDED",
                audit_service.ENTITY_APPLICATION,
                submitted.id,
                actor=INSPECTOR,
                details={"note": "Called owner"},
            )

        stored = db.session.get(AuditLogEntry, entry.id)
        assert stored.actor_user_id == INSPECTOR.user_id
        assert stored.details == {"note": "Called owner"}
        assert stored.to_dict()["created_at"].endswith("Z")

    def test_public_actions_have_no_actor(self, submitted):
        entry = audit_service.history("application", submitted.id)[0]
        assert entry.action == "APPLICATION_SUBMITTED"
        assert entry.actor_user_id is None
        assert entry.details["new_store"] is True

    def test_failed_audit_write_keeps_state_change(self, submitted, monkeypatch):
        real_entry = audit_service.AuditLogEntry

        def broken_entry(**kwargs):
            # NOT NULL violation inside the savepoint
            return real_entry(**{**kwargs, "action": None})

        monkeypatch.setattr(audit_service, "AuditLogEntry", broken_entry)
        before = db.session.query(AuditLogEntry).count()

        feedback = feedback_service.submit_feedback(
            submitted.store_id, {"type": "review", "content": "Great service and friendly staff."}
        )

        assert db.session.get(Feedback, feedback.id).status == "pending"
        assert db.session.query(AuditLogEntry).count() == before

    def test_rolled_back_change_leaves_no_entry(self, submitted):
        before = db.session.query(AuditLogEntry).count()

        with pytest.raises(RuntimeError):
            with unit_of_work():
                audit_service.record("APPLICATION_NOTE_ADDED", "application", submitted.id, actor=ADMIN)
                raise RuntimeError("boom")

        assert db.session.query(AuditLogEntry).count() == before


class TestHistory:

    def test_full_lifecycle_is_reconstructable(self, submitted):
        application_service.transition_status(submitted.id, "under_review", actor=INSPECTOR)
        application_service.transition_status(submitted.id, "rejected", actor=ADMIN, notes="Incomplete")

        entries = audit_service.history("application", submitted.id)
        assert [e.action for e in entries] == [
            "APPLICATION_SUBMITTED",
            "APPLICATION_UNDER_REVIEW",
            "APPLICATION_REJECTED",
        ]
        assert [e.actor_user_id for e in entries] == [None, INSPECTOR.user_id, ADMIN.user_id]
        assert entries[-1].details["previous_status"] == "under_review"
        assert entries[-1].details["notes"] == "Incomplete"

    def test_entries_for_action_newest_first(self, submitted):
        application_service.transition_status(submitted.id, "under_review", actor=ADMIN)
        other = application_service.submit(
            store_payload(owner_email="other@shop.example"), application_payload()
        )
        application_service.transition_status(other.id, "under_review", actor=ADMIN)

        entries = audit_service.entries_for_action("APPLICATION_UNDER_REVIEW")
        assert [e.entity_id for e in entries] == [other.id, submitted.id]

