# Overview: Flask API routes for inspections; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import WorkflowError
from ..models.auth import ROLE_ADMIN, ROLE_INSPECTOR
from ..services import evidence_service, inspection_service
from ..validation import parse_optional_datetime, validate_geolocation


inspections_bp = Blueprint("inspections", __name__, url_prefix="/api/inspections")


def _inspection_payload(inspection) -> dict:
    application = inspection.application
    return {
        **inspection.to_dict(),
        "application": application.to_dict(),
        "store": application.store.to_dict(),
        "photo_count": len(inspection.photos),
    }


@inspections_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_INSPECTOR)
def schedule_inspection_route():
    """
    Schedule an inspection.

    Request body: {"application_id": int, "inspector_id"?: int, "visit_date"?: ISO-8601, "notes"?: str}
    inspector_id defaults to the calling inspector.
    """
    try:
        data = request.get_json(silent=True) or {}
        application_id = data.get("application_id")
        inspector_id = data.get("inspector_id") or (
            g.current_user.id if g.current_user.role == ROLE_INSPECTOR else None
        )
        if not isinstance(application_id, int) or not isinstance(inspector_id, int):
            return jsonify({"error": "application_id and inspector_id are required integers"}), 400

        inspection = inspection_service.schedule(
            application_id,
            inspector_id,
            actor=g.actor,
            visit_date=parse_optional_datetime(data.get("visit_date"), "visit_date"),
            notes=data.get("notes"),
        )
        return jsonify({"inspection": inspection.to_dict()}), 201

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to schedule inspection")
        return jsonify({"error": "Internal server error"}), 500


@inspections_bp.get("/assigned")
@require_auth
@require_role(ROLE_INSPECTOR)
def assigned_inspections_route():
    include_closed = request.args.get("include_closed", "").lower() in ("1", "true", "yes")
    inspections = inspection_service.list_assigned(g.current_user.id, include_closed=include_closed)
    return jsonify({"items": [_inspection_payload(i) for i in inspections], "count": len(inspections)})


@inspections_bp.get("/<int:inspection_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_INSPECTOR)
def get_inspection_route(inspection_id: int):
    try:
        inspection = inspection_service.get_inspection(inspection_id)
        if g.current_user.role == ROLE_INSPECTOR and inspection.inspector_id != g.current_user.id:
            return jsonify({"error": "Inspection is assigned to another inspector"}), 403
        return jsonify({"inspection": _inspection_payload(inspection)})

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load inspection")
        return jsonify({"error": "Internal server error"}), 500


@inspections_bp.post("/<int:inspection_id>/start")
@require_auth
@require_role(ROLE_ADMIN, ROLE_INSPECTOR)
def start_inspection_route(inspection_id: int):
    """
    Start an inspection on site.

    Request body (optional): {"latitude", "longitude", "accuracy"?, "timestamp"?}
    """
    try:
        data = request.get_json(silent=True) or {}
        inspection = inspection_service.start(
            inspection_id,
            g.current_user.id,
            actor=g.actor,
            geolocation=validate_geolocation(data),
        )
        return jsonify({"inspection": inspection.to_dict()}), 200

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to start inspection")
        return jsonify({"error": "Internal server error"}), 500


@inspections_bp.post("/<int:inspection_id>/complete")
@require_auth
@require_role(ROLE_ADMIN, ROLE_INSPECTOR)
def complete_inspection_route(inspection_id: int):
    """
    Complete an inspection with a decision.

    Request body: {"decision": "approved" | "rejected", "notes": str, "signature"?: "data:image/...;base64,..."}
    """
    try:
        data = request.get_json(silent=True) or {}
        result = inspection_service.complete(
            inspection_id,
            g.current_user.id,
            data.get("decision"),
            data.get("notes"),
            actor=g.actor,
            signature=data.get("signature"),
        )
        certificate = result.status_change.certificate
        return jsonify({
            "inspection": result.inspection.to_dict(),
            "application": result.status_change.application.to_dict(),
            "certificate": certificate.to_dict() if certificate else None,
        }), 200

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to complete inspection")
        return jsonify({"error": "Internal server error"}), 500


@inspections_bp.post("/<int:inspection_id>/cancel")
@require_auth
@require_role(ROLE_ADMIN, ROLE_INSPECTOR)
def cancel_inspection_route(inspection_id: int):
    try:
        data = request.get_json(silent=True) or {}
        inspection = inspection_service.cancel(inspection_id, actor=g.actor, reason=data.get("reason"))
        return jsonify({"inspection": inspection.to_dict()}), 200

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel inspection")
        return jsonify({"error": "Internal server error"}), 500


@inspections_bp.post("/<int:inspection_id>/photos")
@require_auth
@require_role(ROLE_INSPECTOR)
def attach_photo_route(inspection_id: int):
    """
    Attach an evidence photo.

    Either multipart/form-data with a "photo" file (stored in the evidence
    store first) plus photo_type/caption/latitude/longitude/accuracy fields,
    or JSON {"evidence_ref", "photo_type"?, "caption"?, "latitude"?, ...}
    referencing an already uploaded document.
    """
    try:
        upload = request.files.get("photo")
        fields = request.form.to_dict() if upload is not None else (request.get_json(silent=True) or {})
        geolocation = validate_geolocation(fields)

        if upload is not None:
            evidence_ref = evidence_service.upload(
                upload.read(),
                filename=upload.filename or "photo",
                mime_type=upload.mimetype,
                document_type="inspection_photo",
                description=fields.get("caption"),
                actor=g.actor,
            )
        else:
            evidence_ref = fields.get("evidence_ref")

        photo = inspection_service.attach_photo(
            inspection_id,
            evidence_ref,
            actor=g.actor,
            photo_type=fields.get("photo_type"),
            caption=fields.get("caption"),
            geolocation=geolocation,
        )
        return jsonify({"photo": photo.to_dict()}), 201

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to attach inspection photo")
        return jsonify({"error": "Internal server error"}), 500


@inspections_bp.get("/<int:inspection_id>/photos")
@require_auth
@require_role(ROLE_ADMIN, ROLE_INSPECTOR)
def list_photos_route(inspection_id: int):
    try:
        photos = inspection_service.list_photos(inspection_id)
        return jsonify({"items": [p.to_dict() for p in photos], "count": len(photos)})

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list inspection photos")
        return jsonify({"error": "Internal server error"}), 500
