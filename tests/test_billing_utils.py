"""
Tests for Stripe secrets and the Stripe client wrapper.
"""

import json
import os
from unittest.mock import MagicMock, patch

import boto3
import pytest
import stripe
from botocore.exceptions import ClientError

from conftest import STRIPE_API_KEY, WEBHOOK_SECRET
from subrelay.billing_utils import StripeBilling, get_stripe_secrets, translate_stripe_error
from subrelay.errors import BillingProviderError


class TestGetStripeSecrets:
    def test_reads_both_secrets(self, stripe_secrets):
        assert get_stripe_secrets() == (STRIPE_API_KEY, WEBHOOK_SECRET)

    def test_unconfigured_returns_none(self, mock_dynamodb):
        os.environ.pop("STRIPE_SECRET_ARN", None)
        os.environ.pop("STRIPE_WEBHOOK_SECRET_ARN", None)

        assert get_stripe_secrets() == (None, None)

    def test_fetch_failure_raises_and_is_not_cached(self, stripe_secrets):
        os.environ["STRIPE_WEBHOOK_SECRET_ARN"] = "arn:aws:secretsmanager:us-east-1:123456789012:secret:missing"
        with pytest.raises(ClientError):
            get_stripe_secrets()

        sm = boto3.client("secretsmanager", region_name="us-east-1")
        os.environ["STRIPE_WEBHOOK_SECRET_ARN"] = sm.describe_secret(SecretId="subrelay/stripe-webhook-secret")["ARN"]

        assert get_stripe_secrets() == (STRIPE_API_KEY, WEBHOOK_SECRET)

    def test_partial_result_is_not_cached(self, stripe_secrets):
        sm = boto3.client("secretsmanager", region_name="us-east-1")
        sm.put_secret_value(SecretId=os.environ["STRIPE_WEBHOOK_SECRET_ARN"], SecretString=json.dumps({"secret": ""}))

        assert get_stripe_secrets() == (STRIPE_API_KEY, None)

        sm.put_secret_value(SecretId=os.environ["STRIPE_WEBHOOK_SECRET_ARN"], SecretString=WEBHOOK_SECRET)

        assert get_stripe_secrets() == (STRIPE_API_KEY, WEBHOOK_SECRET)

    def test_raw_string_secret(self, mock_dynamodb):
        sm = boto3.client("secretsmanager", region_name="us-east-1")
        arn = sm.create_secret(Name="raw-key", SecretString="sk_test_raw")["ARN"]
        os.environ["STRIPE_SECRET_ARN"] = arn
        try:
            assert get_stripe_secrets()[0] == "sk_test_raw"
        finally:
            os.environ.pop("STRIPE_SECRET_ARN", None)

    def test_secrets_are_cached(self, stripe_secrets):
        get_stripe_secrets()
        sm = boto3.client("secretsmanager", region_name="us-east-1")
        sm.put_secret_value(SecretId=os.environ["STRIPE_SECRET_ARN"], SecretString=json.dumps({"key": "sk_rotated"}))

        assert get_stripe_secrets()[0] == STRIPE_API_KEY


class TestTranslateStripeError:
    @pytest.mark.parametrize(
        "error",
        [
            stripe.APIConnectionError("network down"),
            stripe.RateLimitError("slow down"),
            stripe.APIError("stripe is down"),
        ],
    )
    def test_transient_errors(self, error):
        translated = translate_stripe_error(error, "customer.create")

        assert translated.transient is True
        assert translated.status_code == 502
        assert translated.code == "billing_provider_unavailable"

    @pytest.mark.parametrize(
        "error",
        [
            stripe.InvalidRequestError("No such price: p1", "price"),
            stripe.AuthenticationError("bad key"),
            stripe.CardError("declined", "card", "card_declined"),
        ],
    )
    def test_rejections(self, error):
        translated = translate_stripe_error(error, "checkout.session.create")

        assert translated.transient is False
        assert translated.status_code == 400
        assert translated.code == "billing_provider_error"

    def test_provider_message_is_not_leaked(self):
        translated = translate_stripe_error(stripe.InvalidRequestError("No such price: secret_p", "price"), "x")

        assert "secret_p" not in translated.message


class TestStripeBilling:
    def test_create_customer_passes_api_key_and_metadata(self):
        with patch("stripe.Customer.create", return_value=MagicMock(id="cus_123")) as create:
            customer_id = StripeBilling("sk_test_abc").create_customer("u1", email="u1@example.com")

        assert customer_id == "cus_123"
        create.assert_called_once_with(
            api_key="sk_test_abc",
            metadata={"userId": "u1"},
            email="u1@example.com",
        )

    def test_create_customer_without_email(self):
        with patch("stripe.Customer.create", return_value=MagicMock(id="cus_123")) as create:
            StripeBilling("sk_test_abc").create_customer("u1")

        assert "email" not in create.call_args.kwargs

    def test_create_checkout_session_params(self):
        with patch("stripe.checkout.Session.create", return_value=MagicMock(id="cs_1")) as create:
            session = StripeBilling("sk_test_abc").create_checkout_session(
                customer_id="c1",
                price_id="p1",
                success_url="https://app.example.com/billing?success=true",
                cancel_url="https://app.example.com/billing?canceled=true",
                trial_period_days=3,
                client_reference_id="u1",
            )

        assert session.id == "cs_1"
        params = create.call_args.kwargs
        assert params["api_key"] == "sk_test_abc"
        assert params["customer"] == "c1"
        assert params["mode"] == "subscription"
        assert params["payment_method_types"] == ["card"]
        assert params["line_items"] == [{"price": "p1", "quantity": 1}]
        assert params["subscription_data"] == {"trial_period_days": 3}
        assert params["client_reference_id"] == "u1"

    def test_create_portal_session_params(self):
        with patch("stripe.billing_portal.Session.create", return_value=MagicMock(url="https://billing")) as create:
            session = StripeBilling("sk_test_abc").create_portal_session("c1", "https://app.example.com")

        assert session.url == "https://billing"
        create.assert_called_once_with(api_key="sk_test_abc", customer="c1", return_url="https://app.example.com")

    def test_stripe_errors_are_translated(self):
        with patch("stripe.Customer.create", side_effect=stripe.APIConnectionError("down")):
            with pytest.raises(BillingProviderError) as exc:
                StripeBilling("sk_test_abc").create_customer("u1")

        assert exc.value.transient is True
        assert isinstance(exc.value.__cause__, stripe.APIConnectionError)
