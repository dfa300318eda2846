# Overview: Flask API routes for stores and public feedback; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import public_actor, require_auth, require_role
from ..errors import WorkflowError
from ..models.auth import ROLE_ADMIN, ROLE_INSPECTOR
from ..models.feedback import FEEDBACK_PENDING
from ..services import feedback_service, store_service
from ..services.concurrency import unit_of_work


stores_bp = Blueprint("stores", __name__, url_prefix="/api/stores")
feedback_bp = Blueprint("feedback", __name__, url_prefix="/api/feedback")


@stores_bp.get("/<int:store_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_INSPECTOR)
def get_store_route(store_id: int):
    try:
        store = store_service.get_store(store_id)
        return jsonify({
            "store": store.to_dict(),
            "applications": [a.to_dict() for a in store.applications],
            "certificates": [c.to_dict() for c in store.certificates],
        })

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load store")
        return jsonify({"error": "Internal server error"}), 500


@stores_bp.patch("/<int:store_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_store_route(store_id: int):
    try:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            return jsonify({"error": "JSON body required"}), 400

        with unit_of_work():
            store = store_service.update_store(store_id, data, actor=g.actor)
        return jsonify({"store": store.to_dict()}), 200

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update store")
        return jsonify({"error": "Internal server error"}), 500


@stores_bp.post("/<int:store_id>/feedback")
def submit_feedback_route(store_id: int):
    """
    Public review or complaint.

    Request body: {"type": "review" | "complaint", "content": str, "author_name"?, "author_email"?}
    """
    try:
        data = request.get_json(silent=True) or {}
        feedback = feedback_service.submit_feedback(store_id, data, actor=public_actor())
        return jsonify({
            "message": "Feedback submitted for moderation",
            "feedback": feedback.to_dict(),
        }), 201

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to submit feedback")
        return jsonify({"error": "Internal server error"}), 500


@stores_bp.get("/<int:store_id>/feedback")
def published_feedback_route(store_id: int):
    try:
        items = feedback_service.published_for_store(store_id)
        return jsonify({"items": [f.to_dict() for f in items], "count": len(items)})

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to list published feedback")
        return jsonify({"error": "Internal server error"}), 500


@feedback_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_feedback_route():
    status = request.args.get("status", FEEDBACK_PENDING)
    items = feedback_service.list_feedback(status=status if status != "all" else None)
    return jsonify({"items": [f.to_dict() for f in items], "count": len(items)})


@feedback_bp.post("/<int:feedback_id>/moderate")
@require_auth
@require_role(ROLE_ADMIN)
def moderate_feedback_route(feedback_id: int):
    """Request body: {"status": "approved" | "rejected"}"""
    try:
        data = request.get_json(silent=True) or {}
        feedback = feedback_service.moderate(feedback_id, data.get("status"), actor=g.actor)
        return jsonify({"feedback": feedback.to_dict()}), 200

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to moderate feedback")
        return jsonify({"error": "Internal server error"}), 500
