# backend/halalcert/routes/system.py
"""
System health endpoint.

Reports database reachability plus a few workflow counters that help spot a
stuck pipeline (applications waiting for review, certificates overdue for
the expiry sweep).
"""

import time

from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Application, Certificate, User
from ..models.applications import APPLICATION_PENDING, APPLICATION_UNDER_REVIEW
from ..models.certificates import CERTIFICATE_ACTIVE
from ..time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        open_applications = db.session.query(Application).filter(
            Application.status.in_((APPLICATION_PENDING, APPLICATION_UNDER_REVIEW))
        ).count()
        overdue_certificates = db.session.query(Certificate).filter(
            Certificate.status == CERTIFICATE_ACTIVE,
            Certificate.expires_at < utcnow(),
        ).count()

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "open_applications": open_applications,
                "certificates_pending_expiry_sweep": overdue_certificates,
            }
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/api/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: database reachable
    - 503: database unhealthy
    """
    start_time = time.time()
    database_health = check_database_health()
    http_status = 503 if database_health["status"] == "unhealthy" else 200

    response = {
        "status": database_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
        },
        "collaborators": {
            "notification_backend": current_app.config.get("NOTIFICATION_BACKEND"),
            "payment_verifier": current_app.config.get("PAYMENT_VERIFIER"),
        },
    }

    return response, http_status
