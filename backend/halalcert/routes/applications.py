# Overview: Flask API routes for certification applications; parses input and returns JSON responses.

"""
Application routes

POST /api/applications is public: business owners are not staff users.
Everything else requires an admin or inspector session.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import public_actor, require_auth, require_role
from ..errors import DependencyFailureError, WorkflowError
from ..models.applications import APPLICATION_PENDING, APPLICATION_UNDER_REVIEW
from ..models.auth import ROLE_ADMIN, ROLE_INSPECTOR
from ..services import application_service, audit_service, inspection_service


applications_bp = Blueprint("applications", __name__, url_prefix="/api/applications")

INSPECTOR_VISIBLE_STATUSES = {APPLICATION_PENDING, APPLICATION_UNDER_REVIEW}


@applications_bp.post("")
def submit_application_route():
    """
    Submit a certification application.

    Request body:
    {
        "store": {"name", "address", "city", "state", "postcode", "business_type",
                  "abn", "established"?, "owner_name", "owner_email", "owner_phone"},
        "application": {"products": [...], "suppliers": [{"name", "material", "certified"}],
                        "employee_count", "operating_hours", "notes"?},
        "evidence": {"business_license"?: ref, "floor_plan"?: ref, ...},
        "payment_reference": "pi_..."?
    }
    """
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "JSON body required"}), 400

        application = application_service.submit(
            data.get("store"),
            data.get("application"),
            data.get("evidence"),
            data.get("payment_reference"),
            actor=public_actor(),
        )

        return jsonify({
            "message": "Application submitted successfully",
            "application": application.to_dict(),
            "store": application.store.to_dict(),
        }), 201

    except DependencyFailureError as e:
        return jsonify({"error": str(e), "dependency": e.dependency}), e.status_code
    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to submit application")
        return jsonify({"error": "Internal server error"}), 500


@applications_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_INSPECTOR)
def list_applications_route():
    """
    List applications, newest first.

    Query params: status (comma separated), limit, offset.
    Inspectors only see applications that still need a visit.
    """
    try:
        status_param = request.args.get("status")
        statuses = {s.strip() for s in status_param.split(",") if s.strip()} if status_param else None
        limit = min(request.args.get("limit", 50, type=int), 200)
        offset = request.args.get("offset", 0, type=int)

        if g.current_user.role == ROLE_INSPECTOR:
            statuses = (statuses or INSPECTOR_VISIBLE_STATUSES) & INSPECTOR_VISIBLE_STATUSES
            if not statuses:
                return jsonify({"items": [], "count": 0, "limit": limit, "offset": offset})

        rows, total = application_service.list_applications(statuses, limit=limit, offset=offset)
        items = [{**row.to_dict(), "store": row.store.to_dict()} for row in rows]
        return jsonify({"items": items, "count": total, "limit": limit, "offset": offset})

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list applications")
        return jsonify({"error": "Internal server error"}), 500


@applications_bp.get("/<int:application_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_INSPECTOR)
def get_application_route(application_id: int):
    try:
        application = application_service.get_application(application_id)
        return jsonify({
            "application": application.to_dict(),
            "store": application.store.to_dict(),
            "inspections": [i.to_dict() for i in inspection_service.list_for_application(application_id)],
            "certificates": [c.to_dict() for c in application.certificates],
            "history": [
                e.to_dict()
                for e in audit_service.history(audit_service.ENTITY_APPLICATION, application_id)
            ],
        })

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load application")
        return jsonify({"error": "Internal server error"}), 500


@applications_bp.post("/<int:application_id>/status")
@require_auth
@require_role(ROLE_ADMIN, ROLE_INSPECTOR)
def transition_status_route(application_id: int):
    """
    Change application status.

    Request body: {"status": "under_review" | "approved" | "rejected", "notes"?: str}

    Approving without an approved inspection is an admin override.
    """
    try:
        data = request.get_json(silent=True) or {}
        new_status = data.get("status")
        if not new_status:
            return jsonify({"error": "status is required"}), 400

        change = application_service.transition_status(
            application_id,
            new_status,
            actor=g.actor,
            notes=data.get("notes"),
        )

        return jsonify({
            "application": change.application.to_dict(),
            "previous_status": change.previous_status,
            "certificate": change.certificate.to_dict() if change.certificate else None,
        }), 200

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to change application status")
        return jsonify({"error": "Internal server error"}), 500
