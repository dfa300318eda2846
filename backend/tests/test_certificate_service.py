"""
Certificate registry tests.

Verifies:
- Verification derives validity on read and never writes
- Revocation is one way and audited once
- The expiry sweep is the only thing that persists "expired"
- Certificate numbers stay unique under collisions
"""

import re
from datetime import timedelta

import pytest

from conftest import ADMIN, application_payload, store_payload
from halalcert.errors import (
    CertificateAlreadyRevokedError,
    CertificateIssuanceError,
    NotFoundError,
    ValidationError,
)
from halalcert.extensions import db
from halalcert.models import Application, AuditLogEntry, Certificate
from halalcert.services import application_service, audit_service, certificate_service, issuer_service


def _approve(**store_overrides):
    application = application_service.submit(store_payload(**store_overrides), application_payload())
    return application_service.transition_status(application.id, "approved", actor=ADMIN).certificate


@pytest.fixture
def certificate(staff):
    return _approve()


class TestNumbering:

    def test_number_format(self):
        for _ in range(50):
            assert re.fullmatch(r"HAL-2026-[1-9]\d{3}", issuer_service.generate_certificate_number(2026))

    def test_collision_on_insert_draws_a_new_number(self, certificate, monkeypatch):
        # The pre-check misses the clash, so the unique constraint has to catch it
        numbers = iter([certificate.certificate_number, "HAL-2026-7777"])
        monkeypatch.setattr(issuer_service, "_number_taken", lambda number: False)
        monkeypatch.setattr(issuer_service, "generate_certificate_number", lambda year: next(numbers))

        second = _approve(owner_email="second@store.example")

        assert second.certificate_number == "HAL-2026-7777"
        assert db.session.query(Certificate).count() == 2

    def test_issued_numbers_are_distinct(self, staff):
        certificates = [_approve(owner_email=f"shop{i}@store.example") for i in range(40)]

        numbers = {c.certificate_number for c in certificates}
        assert len(numbers) == 40
        assert db.session.query(Certificate.certificate_number).distinct().count() == 40

    def test_exhausted_attempts_fail_closed(self, certificate, monkeypatch):
        monkeypatch.setattr(issuer_service, "generate_certificate_number", lambda year: certificate.certificate_number)
        application = application_service.submit(
            store_payload(owner_email="third@store.example"), application_payload()
        )

        with pytest.raises(CertificateIssuanceError):
            application_service.transition_status(application.id, "approved", actor=ADMIN)

        db.session.expire_all()
        assert db.session.get(Application, application.id).status == "pending"
        assert db.session.query(Certificate).count() == 1
        assert audit_service.entries_for_action("APPLICATION_APPROVED")[0].entity_id != application.id


class TestVerify:

    def test_valid_certificate(self, certificate):
        verification = certificate_service.verify(certificate.certificate_number)
        payload = verification.to_dict()

        assert payload["valid"] is True
        assert payload["certificate"]["status"] == "active"
        assert payload["certificate"]["is_expired"] is False
        assert payload["certificate"]["days_until_expiry"] == 365
        assert payload["store"]["name"] == "Al-Noor Kitchen"
        assert "owner_email" not in payload["store"]

    def test_lookup_ignores_case_and_whitespace(self, certificate):
        verification = certificate_service.verify(f"  {certificate.certificate_number.lower()} ")
        assert verification.certificate.id == certificate.id

    def test_unknown_number(self, staff):
        with pytest.raises(NotFoundError):
            certificate_service.verify("HAL-1999-0000")

    def test_expiry_is_derived_without_writing(self, certificate):
        later = certificate.expires_at + timedelta(days=1)
        audit_count = db.session.query(AuditLogEntry).count()

        verification = certificate_service.verify(certificate.certificate_number, now=later)

        assert verification.valid is False
        assert verification.to_dict()["certificate"]["is_expired"] is True
        assert verification.to_dict()["certificate"]["days_until_expiry"] == 0
        db.session.expire_all()
        assert db.session.get(Certificate, certificate.id).status == "active"
        assert db.session.query(AuditLogEntry).count() == audit_count

    def test_valid_until_the_expiry_instant(self, certificate):
        assert certificate_service.verify(certificate.certificate_number, now=certificate.expires_at).valid is True


class TestRevoke:

    def test_revoke(self, certificate, mailbox):
        revoked = certificate_service.revoke(certificate.id, "Supplier fraud", actor=ADMIN)

        assert revoked.status == "revoked"
        assert revoked.revoked_by_user_id == ADMIN.user_id
        assert revoked.revocation_reason == "Supplier fraud"
        assert certificate_service.verify(certificate.certificate_number).valid is False
        assert mailbox.sent[-1]["subject"] == "Halal Certification Revoked"
        assert "Supplier fraud" in mailbox.sent[-1]["body"]

    def test_revoking_twice_is_rejected_and_audited_once(self, certificate):
        certificate_service.revoke(certificate.id, "Supplier fraud", actor=ADMIN)

        with pytest.raises(CertificateAlreadyRevokedError):
            certificate_service.revoke(certificate.id, "Again", actor=ADMIN)

        assert len(audit_service.entries_for_action("CERTIFICATE_REVOKED")) == 1
        assert db.session.get(Certificate, certificate.id).revocation_reason == "Supplier fraud"

    def test_expired_certificate_can_still_be_revoked(self, certificate):
        certificate_service.expire_overdue(now=certificate.expires_at + timedelta(days=1))
        assert certificate_service.revoke(certificate.id, None, actor=ADMIN).status == "revoked"

    def test_unknown_certificate(self, staff):
        with pytest.raises(NotFoundError):
            certificate_service.revoke(555, "Nope", actor=ADMIN)

    def test_mail_outage_does_not_block_revocation(self, certificate, mailbox):
        mailbox.fail = True
        assert certificate_service.revoke(certificate.id, "Closed down", actor=ADMIN).status == "revoked"


class TestExpirySweep:

    def test_marks_only_overdue_active_certificates(self, certificate):
        fresh = _approve(owner_email="fresh@store.example")
        fresh.expires_at = certificate.expires_at + timedelta(days=30)
        db.session.commit()

        expired = certificate_service.expire_overdue(now=certificate.expires_at + timedelta(days=1))

        assert [c.id for c in expired] == [certificate.id]
        assert db.session.get(Certificate, certificate.id).status == "expired"
        assert db.session.get(Certificate, fresh.id).status == "active"
        assert audit_service.history("certificate", certificate.id)[-1].action == "CERTIFICATE_EXPIRED"

    def test_revoked_certificates_stay_revoked(self, certificate):
        certificate_service.revoke(certificate.id, "Fraud", actor=ADMIN)
        assert certificate_service.expire_overdue(now=certificate.expires_at + timedelta(days=1)) == []
        assert db.session.get(Certificate, certificate.id).status == "revoked"


class TestSearch:

    def test_exact_number(self, certificate):
        assert certificate_service.search(certificate.certificate_number).id == certificate.id

    @pytest.mark.parametrize("query", ["al-noor", "Lygon", "melbourne"])
    def test_matches_store_name_address_or_city(self, certificate, query):
        assert certificate_service.search(query).id == certificate.id

    def test_most_recent_issue_wins(self, certificate):
        newer = _approve(owner_email="branch@alnoor.example", name="Al-Noor Express")
        newer.issued_at = certificate.issued_at + timedelta(hours=1)
        db.session.commit()

        assert certificate_service.search("Al-Noor").id == newer.id

    def test_no_match(self, certificate):
        assert certificate_service.search("Zanzibar") is None

    def test_query_too_short(self, staff):
        with pytest.raises(ValidationError):
            certificate_service.search("al")


class TestListing:

    def test_filter_by_status(self, certificate):
        other = _approve(owner_email="other@store.example", name="Barakah Grocer")
        certificate_service.revoke(other.id, "Fraud", actor=ADMIN)

        rows, total = certificate_service.list_certificates(status="active")
        assert total == 1
        assert rows[0].id == certificate.id

        rows, total = certificate_service.list_certificates(text="barakah")
        assert [r.id for r in rows] == [other.id]

    def test_invalid_status(self, staff):
        with pytest.raises(ValidationError):
            certificate_service.list_certificates(status="suspended")
