# Overview: Flask API routes for evidence documents; parses input and returns JSON responses.

"""
Evidence document routes

Uploads are public so applicants can attach licences and floor plans before
submitting; the returned reference goes into the application's "evidence"
object. Reading documents back is staff only.
"""

import io

from flask import Blueprint, current_app, jsonify, request, send_file

from ..decorators import public_actor, require_auth, require_role
from ..errors import WorkflowError
from ..models.auth import ROLE_ADMIN, ROLE_INSPECTOR
from ..services import evidence_service
from ..services.concurrency import unit_of_work


documents_bp = Blueprint("documents", __name__, url_prefix="/api/documents")


@documents_bp.post("")
def upload_document_route():
    """
    multipart/form-data: file, document_type, description?
    """
    try:
        upload = request.files.get("file")
        if upload is None:
            return jsonify({"error": "file is required"}), 400

        with unit_of_work():
            reference = evidence_service.upload(
                upload.read(),
                filename=upload.filename or "",
                mime_type=upload.mimetype,
                document_type=request.form.get("document_type", ""),
                description=request.form.get("description") or None,
                actor=public_actor(),
            )
        return jsonify({"reference": reference}), 201

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to upload document")
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.get("/<reference>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_INSPECTOR)
def get_document_route(reference: str):
    try:
        _, metadata = evidence_service.retrieve(reference)
        return jsonify({"document": metadata})

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to load document metadata")
        return jsonify({"error": "Internal server error"}), 500


@documents_bp.get("/<reference>/content")
@require_auth
@require_role(ROLE_ADMIN, ROLE_INSPECTOR)
def download_document_route(reference: str):
    try:
        data, metadata = evidence_service.retrieve(reference)
        return send_file(
            io.BytesIO(data),
            mimetype=metadata["mime_type"],
            download_name=metadata["filename"],
        )

    except WorkflowError as e:
        return jsonify({"error": str(e)}), e.status_code
    except Exception:
        current_app.logger.exception("Failed to download document")
        return jsonify({"error": "Internal server error"}), 500
