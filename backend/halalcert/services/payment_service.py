# Overview: Service-layer operations for payment verification at application submission.

"""
Payment Verifier

Submission only asks one question: has this payment reference succeeded?
Collecting the payment happens elsewhere.

FAILURE POLICY (fail closed):
- unknown / unpaid reference -> PaymentNotVerifiedError
- provider timeout or transport error -> DependencyFailureError
Either way the submission is aborted.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import httpx
from flask import current_app

from ..errors import DependencyFailureError, PaymentNotVerifiedError


EXTENSION_KEY = "halalcert.payment_verifier"


@dataclass(frozen=True)
class PaymentVerification:
    succeeded: bool
    status: str | None = None
    amount: int | None = None
    currency: str | None = None


class PaymentVerifier(Protocol):
    def verify(self, reference: str) -> PaymentVerification:
        ...


class DemoPaymentVerifier:
    """Accepts demo_pi_* references; anything else is unpaid. For local use only."""

    def verify(self, reference: str) -> PaymentVerification:
        if reference.startswith("demo_pi_"):
            return PaymentVerification(succeeded=True, status="succeeded")
        return PaymentVerification(succeeded=False, status="unknown")


class StripePaymentVerifier:
    """Looks the PaymentIntent up through the Stripe REST API."""

    def __init__(self, secret_key: str, api_base: str, timeout: float):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    def verify(self, reference: str) -> PaymentVerification:
        response = httpx.get(
            f"{self.api_base}/payment_intents/{reference}",
            headers={"Authorization": f"Bearer {self.secret_key}"},
            timeout=self.timeout,
        )
        if response.status_code == 404:
            return PaymentVerification(succeeded=False, status="not_found")
        response.raise_for_status()

        intent = response.json()
        return PaymentVerification(
            succeeded=intent.get("status") == "succeeded",
            status=intent.get("status"),
            amount=intent.get("amount"),
            currency=intent.get("currency"),
        )


def build_verifier(config) -> PaymentVerifier:
    name = config.get("PAYMENT_VERIFIER", "demo")
    if name == "stripe":
        if not config.get("STRIPE_SECRET_KEY"):
            raise ValueError("STRIPE_SECRET_KEY is required when PAYMENT_VERIFIER=stripe")
        return StripePaymentVerifier(
            config["STRIPE_SECRET_KEY"],
            config.get("STRIPE_API_BASE", "https://api.stripe.com/v1"),
            config.get("PAYMENT_VERIFY_TIMEOUT_SECONDS", 10.0),
        )
    if name == "demo":
        return DemoPaymentVerifier()
    raise ValueError(f"Unknown PAYMENT_VERIFIER '{name}'")


def get_verifier() -> PaymentVerifier:
    verifier = current_app.extensions.get(EXTENSION_KEY)
    if verifier is None:
        verifier = build_verifier(current_app.config)
        current_app.extensions[EXTENSION_KEY] = verifier
    return verifier


def require_succeeded(reference: str) -> PaymentVerification:
    try:
        result = get_verifier().verify(reference)
    except httpx.TimeoutException as exc:
        current_app.logger.warning("Payment verification timed out for %s", reference)
        raise DependencyFailureError("payment", "Payment verification timed out", fail_open=False) from exc
    except httpx.HTTPError as exc:
        current_app.logger.warning("Payment verification failed for %s: %s", reference, exc)
        raise DependencyFailureError("payment", "Payment verification is unavailable", fail_open=False) from exc

    if not result.succeeded:
        raise PaymentNotVerifiedError("Payment has not been completed")
    return result
