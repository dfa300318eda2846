# Overview: Domain error taxonomy shared by services and routes.

"""
Workflow errors

Every error a lifecycle operation raises on purpose is a WorkflowError.
status_code is the HTTP status the routes answer with; the message is safe
to show to the caller. Anything that is not a WorkflowError is an internal
failure: logged in full, returned as a generic 500.
"""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for errors that are surfaced to the caller as-is."""
    status_code = 400


class ValidationError(WorkflowError, ValueError):
    """400-level input problem."""
    status_code = 400


class NotFoundError(WorkflowError, LookupError):
    """Referenced store/application/inspection/certificate does not exist."""
    status_code = 404


class ForbiddenError(WorkflowError):
    """Actor has no authority over this particular entity."""
    status_code = 403


class InvalidTransitionError(WorkflowError):
    """Requested state change is not reachable from the current state."""
    status_code = 400


class CertificateAlreadyRevokedError(InvalidTransitionError):
    """Certificate is already revoked; revocation is one-way."""


class PaymentNotVerifiedError(WorkflowError):
    """Payment reference was supplied but the payment has not succeeded."""
    status_code = 400


class DependencyFailureError(WorkflowError):
    """
    A collaborator (mail, payment provider, QR renderer) failed or timed out.

    fail_open=True means the primary state change was kept and only the
    dependency call was dropped; fail_open=False means the operation aborted.
    """
    status_code = 503

    def __init__(self, dependency: str, message: str, *, fail_open: bool = False):
        super().__init__(message)
        self.dependency = dependency
        self.fail_open = fail_open


class ConflictError(WorkflowError):
    """409-level conflict: a concurrent change won the race."""
    status_code = 409


class CertificateIssuanceError(ConflictError):
    """No free certificate number could be allocated."""
