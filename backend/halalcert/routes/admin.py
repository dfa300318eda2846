# Overview: Flask API routes for admin user management; parses input and returns JSON responses.

# backend/halalcert/routes/admin.py
"""
Admin routes for staff account management.

Provides endpoints for:
- User management (list, create, update, deactivate, reactivate, reset password)
- Inspector directory for scheduling inspections

All endpoints require an admin session.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN, ROLE_INSPECTOR
from ..services import auth_service
from ..services.auth_service import PasswordValidationError


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@admin_bp.get("/users")
@require_auth
@require_role(ROLE_ADMIN)
def list_users_route():
    """
    List staff accounts.

    Query params:
    - role: admin | inspector
    - include_inactive: bool (default false) - include deactivated users
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"
    users = auth_service.list_users(request.args.get("role"), active_only=not include_inactive)
    return jsonify({"users": [u.to_dict() for u in users], "count": len(users)})


@admin_bp.get("/inspectors")
@require_auth
@require_role(ROLE_ADMIN)
def list_inspectors_route():
    """Active inspectors, for assigning inspections."""
    inspectors = auth_service.list_users(ROLE_INSPECTOR, active_only=True)
    return jsonify({"inspectors": [u.to_dict() for u in inspectors], "count": len(inspectors)})


@admin_bp.get("/users/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def get_user_route(user_id: int):
    user = auth_service.get_user(user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404
    return jsonify({"user": user.to_dict()})


@admin_bp.post("/users")
@require_auth
@require_role(ROLE_ADMIN)
def create_user_route():
    """
    Create a staff account.

    Request body:
    - username: str (required)
    - email: str (required)
    - password: str (required)
    - role: admin | inspector (default inspector)
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        email = data.get("email")
        password = data.get("password")
        role = data.get("role", ROLE_INSPECTOR)

        if not all(isinstance(v, str) and v for v in (username, email, password)):
            return jsonify({"error": "username, email, and password required"}), 400
        if not isinstance(role, str):
            return jsonify({"error": "role must be a string"}), 400

        user = auth_service.create_user(username, email, password, role, actor=g.actor)
        return jsonify({"user": user.to_dict(), "message": "User created successfully"}), 201

    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.patch("/users/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_user_route(user_id: int):
    """
    Update user details.

    Request body (all optional):
    - email: str
    - role: admin | inspector
    """
    try:
        user = auth_service.get_user(user_id)
        if not user:
            return jsonify({"error": "User not found"}), 404

        data = request.get_json(silent=True) or {}
        email = data.get("email")
        role = data.get("role")
        if any(v is not None and not isinstance(v, str) for v in (email, role)):
            return jsonify({"error": "email and role must be strings"}), 400

        user = auth_service.update_user(user, email=email, role=role, actor=g.actor)
        return jsonify({"user": user.to_dict(), "message": "User updated successfully"})

    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/users/<int:user_id>/deactivate")
@require_auth
@require_role(ROLE_ADMIN)
def deactivate_user_route(user_id: int):
    """
    Deactivate a user account.

    The user is logged out everywhere and can no longer log in.
    """
    try:
        user = auth_service.get_user(user_id)
        if not user:
            return jsonify({"error": "User not found"}), 404

        revoked = auth_service.set_user_active(user, False, actor=g.actor)
        return jsonify({"message": f"User {user.username} deactivated", "sessions_revoked": revoked})

    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to deactivate user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/users/<int:user_id>/reactivate")
@require_auth
@require_role(ROLE_ADMIN)
def reactivate_user_route(user_id: int):
    try:
        user = auth_service.get_user(user_id)
        if not user:
            return jsonify({"error": "User not found"}), 404

        auth_service.set_user_active(user, True, actor=g.actor)
        return jsonify({"message": f"User {user.username} reactivated", "user": user.to_dict()})

    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to reactivate user")
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.post("/users/<int:user_id>/reset-password")
@require_auth
@require_role(ROLE_ADMIN)
def reset_password_route(user_id: int):
    """
    Reset a user's password.

    Request body:
    - new_password: str (required)

    This will also revoke all existing sessions for the user.
    """
    try:
        user = auth_service.get_user(user_id)
        if not user:
            return jsonify({"error": "User not found"}), 404

        data = request.get_json(silent=True) or {}
        new_password = data.get("new_password")
        if not isinstance(new_password, str) or not new_password:
            return jsonify({"error": "new_password required"}), 400

        revoked = auth_service.reset_password(user, new_password, actor=g.actor)
        return jsonify({"message": f"Password reset for {user.username}", "sessions_revoked": revoked})

    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to reset password")
        return jsonify({"error": "Internal server error"}), 500
