"""Shared billing utilities for Stripe-related operations."""

import logging
import os
import time
from typing import Optional

import stripe

from subrelay.constants import SECRETS_CACHE_TTL
from subrelay.errors import BillingProviderError
from subrelay.logging_utils import log_external_call
from subrelay.secret_utils import read_secret

logger = logging.getLogger(__name__)

# Cached Stripe secrets with TTL
_stripe_secrets_cache: tuple[Optional[str], Optional[str]] = (None, None)
_stripe_secrets_cache_time = 0.0

# Stripe failures worth retrying (network, throttling, provider-side errors)
TRANSIENT_STRIPE_ERRORS = (
    stripe.APIConnectionError,
    stripe.RateLimitError,
    stripe.APIError,
)


def get_stripe_secrets() -> tuple[Optional[str], Optional[str]]:
    """Retrieve Stripe API key and webhook secret from Secrets Manager (cached with TTL).

    A secret whose ARN is unset comes back as None. Fetch failures raise
    ClientError and nothing is cached, so the next call retries.
    """
    global _stripe_secrets_cache, _stripe_secrets_cache_time

    if _stripe_secrets_cache_time and (time.time() - _stripe_secrets_cache_time) < SECRETS_CACHE_TTL:
        return _stripe_secrets_cache

    api_key_arn = os.environ.get("STRIPE_SECRET_ARN")
    webhook_secret_arn = os.environ.get("STRIPE_WEBHOOK_SECRET_ARN")
    api_key = read_secret(api_key_arn, "key")
    webhook_secret = read_secret(webhook_secret_arn, "secret")

    # Only cache once every configured secret resolved
    if (api_key or not api_key_arn) and (webhook_secret or not webhook_secret_arn):
        _stripe_secrets_cache = (api_key, webhook_secret)
        _stripe_secrets_cache_time = time.time()
    return api_key, webhook_secret


def reset_stripe_secrets_cache() -> None:
    """Forget cached secrets. Used in tests."""
    global _stripe_secrets_cache, _stripe_secrets_cache_time
    _stripe_secrets_cache = (None, None)
    _stripe_secrets_cache_time = 0.0


def translate_stripe_error(error: stripe.StripeError, operation: str) -> BillingProviderError:
    """Wrap a Stripe exception without leaking the provider's message."""
    transient = isinstance(error, TRANSIENT_STRIPE_ERRORS)
    if transient:
        message = f"Billing provider unavailable during {operation}, please retry"
    else:
        message = f"Billing provider rejected {operation}"
    return BillingProviderError(message, transient=transient)


class StripeBilling:
    """Billing provider client bound to one API key.

    The key is passed per call instead of being set on the stripe module, so
    several clients (or a fake in tests) can coexist in one process.
    """

    def __init__(self, api_key: str):
        self.api_key = api_key

    def _call(self, operation: str, func, **params):
        start = time.time()
        try:
            result = func(api_key=self.api_key, **params)
        except stripe.StripeError as e:
            latency_ms = (time.time() - start) * 1000
            log_external_call(logger, "stripe", operation, False, latency_ms, error=type(e).__name__)
            raise translate_stripe_error(e, operation) from e
        latency_ms = (time.time() - start) * 1000
        log_external_call(logger, "stripe", operation, True, latency_ms)
        return result

    def create_customer(self, user_id: str, email: Optional[str] = None) -> str:
        params = {"metadata": {"userId": user_id}}
        if email:
            params["email"] = email
        customer = self._call("customer.create", stripe.Customer.create, **params)
        return customer.id

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        trial_period_days: int,
        client_reference_id: str,
    ):
        return self._call(
            "checkout.session.create",
            stripe.checkout.Session.create,
            customer=customer_id,
            mode="subscription",
            payment_method_types=["card"],
            line_items=[{"price": price_id, "quantity": 1}],
            subscription_data={"trial_period_days": trial_period_days},
            success_url=success_url,
            cancel_url=cancel_url,
            client_reference_id=client_reference_id,
            metadata={"userId": client_reference_id},
        )

    def create_portal_session(self, customer_id: str, return_url: str):
        return self._call(
            "billing_portal.session.create",
            stripe.billing_portal.Session.create,
            customer=customer_id,
            return_url=return_url,
        )
