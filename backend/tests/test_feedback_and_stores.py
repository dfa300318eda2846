"""
Store updates and public feedback moderation.
"""

import pytest

from conftest import ADMIN
from halalcert.errors import InvalidTransitionError, NotFoundError, ValidationError
from halalcert.extensions import db
from halalcert.models import Store
from halalcert.services import audit_service, feedback_service, store_service
from halalcert.services.concurrency import unit_of_work


class TestStoreUpdate:

    def test_update_is_audited_with_changes(self, submitted):
        with unit_of_work():
            store = store_service.update_store(
                submitted.store_id, {"owner_phone": "+61 3 9555 0000", "city": "Brunswick"}, actor=ADMIN
            )

        assert store.city == "Brunswick"
        entry = audit_service.history("store", store.id)[-1]
        assert entry.action == "STORE_UPDATED"
        assert entry.details["changes"]["city"] == {"from": "Melbourne", "to": "Brunswick"}

    def test_owner_email_is_not_mutable(self, submitted):
        with pytest.raises(ValidationError, match="owner_email"):
            store_service.update_store(submitted.store_id, {"owner_email": "new@owner.example"}, actor=ADMIN)

    def test_merged_record_is_validated(self, submitted):
        with pytest.raises(ValidationError, match="ABN"):
            with unit_of_work():
                store_service.update_store(submitted.store_id, {"abn": "12"}, actor=ADMIN)
        assert db.session.get(Store, submitted.store_id).abn == "12345678901"

    def test_no_op_update_writes_no_audit(self, submitted):
        with unit_of_work():
            store_service.update_store(submitted.store_id, {"city": "Melbourne"}, actor=ADMIN)
        assert [e.action for e in audit_service.history("store", submitted.store_id)] == ["STORE_CREATED"]

    def test_unknown_store(self, staff):
        with pytest.raises(NotFoundError):
            store_service.update_store(77, {"city": "Geelong"}, actor=ADMIN)


class TestFeedback:

    def _submit(self, store_id, **overrides):
        data = {
            "type": "review",
            "content": "Lovely food and clearly displayed certificate.",
            "author_name": "Bilal",
            "author_email": "bilal@example.com",
        }
        data.update(overrides)
        return feedback_service.submit_feedback(store_id, data)

    def test_submit_is_pending_and_unpublished(self, submitted):
        feedback = self._submit(submitted.store_id)

        assert feedback.status == "pending"
        assert feedback_service.published_for_store(submitted.store_id) == []
        assert audit_service.history("feedback", feedback.id)[0].action == "FEEDBACK_SUBMITTED"

    def test_approve_publishes_and_tells_author(self, submitted, mailbox):
        feedback = self._submit(submitted.store_id)

        feedback_service.moderate(feedback.id, "approved", actor=ADMIN)

        assert [f.id for f in feedback_service.published_for_store(submitted.store_id)] == [feedback.id]
        assert mailbox.sent[-1]["to"] == "bilal@example.com"
        assert mailbox.sent[-1]["subject"] == "Your Feedback has been Published"

    def test_moderation_is_final(self, submitted):
        feedback = self._submit(submitted.store_id, type="complaint")
        feedback_service.moderate(feedback.id, "rejected", actor=ADMIN)

        with pytest.raises(InvalidTransitionError):
            feedback_service.moderate(feedback.id, "approved", actor=ADMIN)

    def test_anonymous_feedback_sends_no_mail(self, submitted, mailbox):
        feedback = self._submit(submitted.store_id, author_email=None, author_name=None)
        sent_before = len(mailbox.sent)

        feedback_service.moderate(feedback.id, "approved", actor=ADMIN)
        assert len(mailbox.sent) == sent_before

    @pytest.mark.parametrize("overrides", [
        {"type": "praise"},
        {"content": "Too short"},
        {"author_email": "not-an-email"},
    ])
    def test_invalid_feedback(self, submitted, overrides):
        with pytest.raises(ValidationError):
            self._submit(submitted.store_id, **overrides)

    def test_unknown_store(self, staff):
        with pytest.raises(NotFoundError):
            self._submit(404)

    def test_invalid_moderation_outcome(self, submitted):
        feedback = self._submit(submitted.store_id)
        with pytest.raises(ValidationError):
            feedback_service.moderate(feedback.id, "published", actor=ADMIN)
