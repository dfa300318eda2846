# Overview: Transaction boundaries and locking helpers shared by the lifecycle services.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Rows also carry version_id, so a stale write still fails on SQLite.
    """
    return query.with_for_update()


@contextmanager
def unit_of_work():
    """
    One transaction for one workflow operation.

    Commits on success. Any exception rolls everything back, so no partial
    state survives. A lost optimistic-lock race or a unique-constraint
    collision with a concurrent insert surfaces as ConflictError.
    Transitions are never retried here; the caller re-validates from the
    current state if it wants to try again.
    """
    try:
        yield db.session
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        raise ConflictError("The record was changed by another request; reload and try again") from exc
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("The record conflicts with a concurrent change; reload and try again") from exc
    except BaseException:
        db.session.rollback()
        raise


def insert_with_retry(build, *, attempts: int):
    """
    Insert the row produced by build(attempt) inside a SAVEPOINT, retrying
    with a fresh row when a unique constraint rejects it.

    Returns the persisted row, or None once attempts are exhausted. The
    enclosing transaction stays usable either way.
    """
    for attempt in range(attempts):
        row = build(attempt)
        if row is None:
            continue
        try:
            with db.session.begin_nested():
                db.session.add(row)
            return row
        except IntegrityError:
            # SAVEPOINT rolled back; outer transaction untouched
            continue
    return None
