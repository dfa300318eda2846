# Overview: Service-layer operations for evidence documents; stores uploaded bytes behind opaque references.

"""
Document/Evidence Store

Applications and inspections only hold opaque references to uploaded files.
This module owns the bytes. The default backend keeps them in the documents
table; another backend can be installed in app.extensions as long as it
offers store() / retrieve() / exists().
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Document
from . import audit_service
from .actor import Actor


EXTENSION_KEY = "halalcert.evidence_store"

DOCUMENT_TYPES = {
    "business_license",
    "floor_plan",
    "supplier_certificate",
    "additional_document",
    "inspection_photo",
}

ALLOWED_MIME_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/heic",
}


@dataclass(frozen=True)
class DocumentMetadata:
    filename: str
    mime_type: str
    document_type: str
    description: str | None = None
    uploaded_by_user_id: int | None = None


class EvidenceStore(Protocol):
    def store(self, data: bytes, metadata: DocumentMetadata) -> str:
        ...

    def retrieve(self, reference: str) -> tuple[bytes, dict]:
        ...

    def exists(self, reference: str) -> bool:
        ...


class DatabaseEvidenceStore:
    """Keeps uploads in the documents table; the reference is the row id as a string."""

    def store(self, data: bytes, metadata: DocumentMetadata) -> str:
        document = Document(
            filename=metadata.filename,
            mime_type=metadata.mime_type,
            file_size=len(data),
            document_type=metadata.document_type,
            description=metadata.description,
            data=data,
            uploaded_by_user_id=metadata.uploaded_by_user_id,
        )
        db.session.add(document)
        db.session.flush()
        return str(document.id)

    def _load(self, reference: str) -> Document | None:
        try:
            document_id = int(reference)
        except (TypeError, ValueError):
            return None
        return db.session.get(Document, document_id)

    def retrieve(self, reference: str) -> tuple[bytes, dict]:
        document = self._load(reference)
        if document is None:
            raise NotFoundError(f"Document {reference} not found")
        return document.data, document.to_dict()

    def exists(self, reference: str) -> bool:
        return self._load(reference) is not None


def get_store() -> EvidenceStore:
    store = current_app.extensions.get(EXTENSION_KEY)
    if store is None:
        store = DatabaseEvidenceStore()
        current_app.extensions[EXTENSION_KEY] = store
    return store


def upload(
    data: bytes,
    *,
    filename: str,
    mime_type: str,
    document_type: str,
    description: str | None = None,
    actor: Actor | None = None,
) -> str:
    """
    Validate and persist one uploaded file. Caller commits.

    Returns the opaque reference to put on an Application or InspectionPhoto.
    """
    if not data:
        raise ValidationError("File is empty")
    if document_type not in DOCUMENT_TYPES:
        raise ValidationError(f"Invalid document type. Must be one of: {', '.join(sorted(DOCUMENT_TYPES))}")
    if mime_type not in ALLOWED_MIME_TYPES:
        raise ValidationError(f"Unsupported file type '{mime_type}'")
    if not filename or len(filename) > 255:
        raise ValidationError("A filename of at most 255 characters is required")

    reference = get_store().store(
        data,
        DocumentMetadata(
            filename=filename,
            mime_type=mime_type,
            document_type=document_type,
            description=description,
            uploaded_by_user_id=actor.user_id if actor else None,
        ),
    )
    audit_service.record(
        audit_service.DOCUMENT_UPLOADED,
        audit_service.ENTITY_DOCUMENT,
        int(reference) if reference.isdigit() else None,
        actor=actor,
        details={"reference": reference, "document_type": document_type, "file_size": len(data)},
    )
    return reference


def retrieve(reference: str) -> tuple[bytes, dict]:
    return get_store().retrieve(reference)


def require_references(references) -> None:
    """Raise NotFoundError for the first reference the store does not know."""
    store = get_store()
    for reference in references:
        if reference and not store.exists(reference):
            raise NotFoundError(f"Evidence document {reference} not found")
