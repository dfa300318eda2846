# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

WHY: Every staff action must be attributable. Uses bcrypt for password
hashing and validates password strength.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor from BCRYPT_ROUNDS, default 12)
- Minimum 8 characters required
- Must contain uppercase, lowercase, digit, and special char
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..models.auth import VALID_ROLES
from ..time_utils import utcnow
from ..validation import EMAIL_RE, normalize_email
from . import audit_service, session_service
from .actor import Actor


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    """
    Validate password meets strength requirements.

    Raises PasswordValidationError if requirements not met.
    """
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r'[A-Z]', password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r'[a-z]', password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r'\d', password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_ROUNDS", 12))
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')  # Store as string in database


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    WHY timing-safe: bcrypt.checkpw() prevents timing attacks automatically.
    A malformed stored hash counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def create_user(username: str, email: str, password: str, role: str, *, actor: Actor | None = None) -> User:
    """
    Create a staff account.

    Raises:
        ValueError: invalid role/email, or username/email already taken
        PasswordValidationError: password doesn't meet requirements
    """
    if role not in VALID_ROLES:
        raise ValueError(f"Invalid role '{role}'. Must be one of: {', '.join(sorted(VALID_ROLES))}")
    if not username or not username.strip():
        raise ValueError("Username is required")
    if not email or not EMAIL_RE.match(email.strip()):
        raise ValueError("A valid email is required")

    username = username.strip()
    email = normalize_email(email)

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ValueError("Username or email already exists")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    db.session.flush()
    audit_service.record(
        audit_service.USER_CREATED,
        audit_service.ENTITY_USER,
        user.id,
        actor=actor,
        details={"username": user.username, "role": user.role},
    )
    db.session.commit()
    return user


def authenticate(identifier: str, password: str) -> User | None:
    """
    Authenticate by username or email.

    Returns User if credentials valid, None otherwise.
    Updates last_login_at timestamp on successful authentication.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == identifier, User.email == normalize_email(identifier)),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def list_users(role: str | None = None, *, active_only: bool = False) -> list[User]:
    query = db.session.query(User)
    if active_only:
        query = query.filter(User.is_active.is_(True))
    if role:
        query = query.filter_by(role=role)
    return query.order_by(User.id.asc()).all()


def get_user(user_id: int) -> User | None:
    return db.session.get(User, user_id)


def update_user(user: User, *, email: str | None = None, role: str | None = None, actor: Actor) -> User:
    """
    Change a staff account's email and/or role.

    Raises:
        ValueError: invalid role/email, email already in use, or an admin
            changing their own role
    """
    changes = {}

    if email is not None:
        if not EMAIL_RE.match(email.strip()):
            raise ValueError("A valid email is required")
        email = normalize_email(email)
        if email != user.email:
            taken = db.session.query(User).filter(User.email == email, User.id != user.id).first()
            if taken:
                raise ValueError("Email already in use")
            changes["email"] = {"from": user.email, "to": email}

    if role is not None:
        if role not in VALID_ROLES:
            raise ValueError(f"Invalid role '{role}'. Must be one of: {', '.join(sorted(VALID_ROLES))}")
        if role != user.role:
            if user.id == actor.user_id:
                raise ValueError("Cannot change your own role")
            changes["role"] = {"from": user.role, "to": role}

    # Nothing is applied until every field has passed
    for field, change in changes.items():
        setattr(user, field, change["to"])

    if changes:
        audit_service.record(
            audit_service.USER_UPDATED,
            audit_service.ENTITY_USER,
            user.id,
            actor=actor,
            details={"changes": changes},
        )
    db.session.commit()
    return user


def set_user_active(user: User, active: bool, *, actor: Actor) -> int:
    """
    Deactivate or reactivate a staff account.

    Deactivation revokes every session, so the user is logged out at once.
    Returns the number of sessions revoked.
    """
    if user.is_active == active:
        raise ValueError(f"User is already {'active' if active else 'deactivated'}")
    if not active and user.id == actor.user_id:
        raise ValueError("Cannot deactivate your own account")

    user.is_active = active
    revoked = 0 if active else session_service.revoke_all_user_sessions(user.id)

    audit_service.record(
        audit_service.USER_REACTIVATED if active else audit_service.USER_DEACTIVATED,
        audit_service.ENTITY_USER,
        user.id,
        actor=actor,
        details={"username": user.username, "sessions_revoked": revoked},
    )
    db.session.commit()
    return revoked


def reset_password(user: User, new_password: str, *, actor: Actor) -> int:
    """
    Set a new password (strength-checked) and revoke all sessions.

    Returns the number of sessions revoked.
    """
    user.password_hash = hash_password(new_password)
    revoked = session_service.revoke_all_user_sessions(user.id)

    audit_service.record(
        audit_service.PASSWORD_RESET,
        audit_service.ENTITY_USER,
        user.id,
        actor=actor,
        details={"username": user.username, "sessions_revoked": revoked},
    )
    db.session.commit()
    return revoked
