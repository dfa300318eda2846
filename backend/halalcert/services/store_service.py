# Overview: Service-layer operations for stores; owner-email identity and explicit updates.

"""
Store Management Service

IDENTITY: A Store is keyed by its owner email (normalized lower-case). The
first application from an email creates the Store; later applications from
the same email reuse it. The form data of a later application does not
overwrite the stored details; that only happens through update_store().
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Store
from ..time_utils import utcnow
from ..validation import validate_store_fields, normalize_email
from . import audit_service
from .actor import Actor
from .concurrency import lock_for_update


# Fields an admin may change after creation. owner_email is the identity key.
MUTABLE_FIELDS = (
    "name", "address", "city", "state", "postcode", "business_type",
    "abn", "established", "owner_name", "owner_phone",
)


def get_store(store_id: int) -> Store:
    store = db.session.get(Store, store_id)
    if store is None:
        raise NotFoundError(f"Store {store_id} not found")
    return store


def find_by_owner_email(email: str) -> Store | None:
    return db.session.query(Store).filter_by(owner_email=normalize_email(email)).first()


def resolve_or_create(fields: dict, *, actor: Actor | None = None) -> tuple[Store, bool]:
    """
    Return (store, created) for already-validated store fields.

    Runs inside the caller's transaction. A concurrent request that created
    the same owner's store first wins; its store is reused.
    """
    store = find_by_owner_email(fields["owner_email"])
    if store is not None:
        return store, False

    store = Store(**fields)
    try:
        with db.session.begin_nested():
            db.session.add(store)
    except IntegrityError:
        existing = find_by_owner_email(fields["owner_email"])
        if existing is None:
            raise ConflictError("Store could not be created; reload and try again")
        return existing, False

    audit_service.record(
        audit_service.STORE_CREATED,
        audit_service.ENTITY_STORE,
        store.id,
        actor=actor,
        details={"name": store.name, "abn": store.abn},
    )
    return store, True


def update_store(store_id: int, changes: dict, *, actor: Actor) -> Store:
    """
    Apply an explicit update to a store's details. Caller commits.

    Only MUTABLE_FIELDS may be changed; the merged record is validated as a
    whole so partial updates cannot leave an invalid store behind.
    """
    if not changes:
        raise ValidationError("No changes supplied")
    unknown = set(changes) - set(MUTABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

    store = lock_for_update(db.session.query(Store).filter_by(id=store_id)).first()
    if store is None:
        raise NotFoundError(f"Store {store_id} not found")

    current = {key: getattr(store, key) for key in MUTABLE_FIELDS}
    current["owner_email"] = store.owner_email
    merged = validate_store_fields({**current, **changes})

    changed = {}
    for key in MUTABLE_FIELDS:
        if getattr(store, key) != merged[key]:
            changed[key] = {"from": getattr(store, key), "to": merged[key]}
            setattr(store, key, merged[key])

    if not changed:
        return store

    store.updated_at = utcnow()
    audit_service.record(
        audit_service.STORE_UPDATED,
        audit_service.ENTITY_STORE,
        store.id,
        actor=actor,
        details={"changes": changed},
    )
    return store
