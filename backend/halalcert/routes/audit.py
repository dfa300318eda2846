# Overview: Flask API routes for audit history; read-only.

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN
from ..services import audit_service


audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit")

ENTITY_TYPES = {
    audit_service.ENTITY_APPLICATION,
    audit_service.ENTITY_INSPECTION,
    audit_service.ENTITY_CERTIFICATE,
    audit_service.ENTITY_STORE,
    audit_service.ENTITY_FEEDBACK,
    audit_service.ENTITY_DOCUMENT,
    audit_service.ENTITY_USER,
}


@audit_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def entries_by_action_route():
    """GET /api/audit?action=CERTIFICATE_REVOKED&limit=50, newest first."""
    action = request.args.get("action")
    if not action:
        return jsonify({"error": "action is required"}), 400
    limit = min(request.args.get("limit", 200, type=int), 500)
    entries = audit_service.entries_for_action(action.upper(), limit=limit)
    return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)})


@audit_bp.get("/<entity_type>/<int:entity_id>")
@require_auth
@require_role(ROLE_ADMIN)
def entity_history_route(entity_type: str, entity_id: int):
    """Full history of one entity, oldest first."""
    if entity_type not in ENTITY_TYPES:
        return jsonify({"error": f"Unknown entity type. Must be one of: {', '.join(sorted(ENTITY_TYPES))}"}), 400
    entries = audit_service.history(entity_type, entity_id)
    return jsonify({"items": [e.to_dict() for e in entries], "count": len(entries)})
