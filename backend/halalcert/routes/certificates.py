# Overview: Flask API routes for certificate verification and administration; parses input and returns JSON responses.

"""
Certificate routes

Public (no auth):
- GET /api/verify/<number>            verification answer for QR scans
- GET /api/certificates/search?q=     best single match
- GET /api/certificates/<number>      certificate + store + QR image

Admin:
- GET  /api/certificates              listing with status/text filter and pagination
- POST /api/certificates/<id>/revoke
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import WorkflowError
from ..models.auth import ROLE_ADMIN
from ..services import certificate_service, qr_service


certificates_bp = Blueprint("certificates", __name__, url_prefix="/api")


@certificates_bp.get("/verify/<certificate_number>")
def verify_certificate_route(certificate_number: str):
    try:
        verification = certificate_service.verify(certificate_number)
        return jsonify(verification.to_dict())

    except WorkflowError as e:
        return jsonify({"valid": False, "error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to verify certificate")
        return jsonify({"error": "Internal server error"}), 500


@certificates_bp.get("/certificates/search")
def search_certificates_route():
    try:
        certificate = certificate_service.search(request.args.get("q", ""))
        if certificate is None:
            return jsonify({"found": False, "error": "No certificate found"}), 404

        verification = certificate_service.verify(certificate.certificate_number)
        return jsonify({"found": True, **verification.to_dict()})

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to search certificates")
        return jsonify({"error": "Internal server error"}), 500


@certificates_bp.get("/certificates")
@require_auth
@require_role(ROLE_ADMIN)
def list_certificates_route():
    try:
        limit = request.args.get("limit", 50, type=int)
        offset = request.args.get("offset", 0, type=int)
        rows, total = certificate_service.list_certificates(
            status=request.args.get("status") or None,
            text=request.args.get("q") or None,
            limit=limit,
            offset=offset,
        )
        items = [{**row.to_dict(), "store": row.store.to_summary()} for row in rows]
        return jsonify({"items": items, "count": total, "limit": limit, "offset": offset})

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list certificates")
        return jsonify({"error": "Internal server error"}), 500


@certificates_bp.get("/certificates/<certificate_number>")
def get_certificate_route(certificate_number: str):
    """Certificate detail with the verification URL rendered as a QR data URI."""
    try:
        verification = certificate_service.verify(certificate_number)
        certificate = verification.certificate
        return jsonify({
            **verification.to_dict(),
            "qr_code": qr_service.render_or_none(certificate.verification_url),
        })

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load certificate")
        return jsonify({"error": "Internal server error"}), 500


@certificates_bp.post("/certificates/<int:certificate_id>/revoke")
@require_auth
@require_role(ROLE_ADMIN)
def revoke_certificate_route(certificate_id: int):
    """
    Revoke a certificate.

    Request body: {"reason"?: str}
    """
    try:
        data = request.get_json(silent=True) or {}
        certificate = certificate_service.revoke(certificate_id, data.get("reason"), actor=g.actor)
        return jsonify({"certificate": certificate.to_dict()}), 200

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to revoke certificate")
        return jsonify({"error": "Internal server error"}), 500
