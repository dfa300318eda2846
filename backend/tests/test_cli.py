"""
Flask CLI commands: user bootstrap and certificate maintenance.
"""

from datetime import timedelta

from conftest import ADMIN, application_payload, store_payload
from halalcert.extensions import db
from halalcert.models import Certificate, User
from halalcert.services import application_service


def test_users_create_and_list(app, staff):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "users", "create",
        "--username", "khadija",
        "--email", "khadija@halalcert.local",
        "--password", "Str0ng!Pass",
        "--role", "inspector",
    ])
    assert "PASS Created user: khadija" in result.output
    assert db.session.query(User).filter_by(username="khadija").one().role == "inspector"

    listing = runner.invoke(args=["users", "list", "--role", "inspector"])
    assert "khadija" in listing.output
    assert "admin@halalcert.local" not in listing.output


def test_users_create_rejects_weak_password(app, staff):
    result = app.test_cli_runner().invoke(args=[
        "users", "create",
        "--username", "weak",
        "--email", "weak@halalcert.local",
        "--password", "password",
        "--role", "admin",
    ])
    assert "FAIL Password validation failed" in result.output
    assert db.session.query(User).filter_by(username="weak").first() is None


def test_certificates_expire(app, staff):
    application = application_service.submit(store_payload(), application_payload())
    certificate = application_service.transition_status(application.id, "approved", actor=ADMIN).certificate
    certificate.expires_at = certificate.issued_at - timedelta(days=1)
    db.session.commit()

    result = app.test_cli_runner().invoke(args=["certificates", "expire"])

    assert f"EXPIRED {certificate.certificate_number}" in result.output
    assert "PASS 1 certificate(s) marked expired" in result.output
    assert db.session.get(Certificate, certificate.id).status == "expired"

    listing = app.test_cli_runner().invoke(args=["certificates", "list", "--status", "expired"])
    assert certificate.certificate_number in listing.output
