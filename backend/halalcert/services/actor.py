# Overview: Authenticated caller identity passed into workflow operations.

from __future__ import annotations

from dataclasses import dataclass

from ..models.auth import ROLE_ADMIN, ROLE_INSPECTOR


@dataclass(frozen=True)
class Actor:
    """
    Who is performing a workflow operation.

    The workflow only trusts what is here; how the identity was established
    (session token, CLI, background job) is the caller's business.
    user_id is None for the system and for anonymous public submissions.
    """
    user_id: int | None
    role: str | None = None
    ip_address: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_inspector(self) -> bool:
        return self.role == ROLE_INSPECTOR

    @classmethod
    def from_user(cls, user, ip_address: str | None = None) -> "Actor":
        return cls(user_id=user.id, role=user.role, ip_address=ip_address)


SYSTEM = Actor(user_id=None, role=None)
