"""
Create Checkout Session Endpoint - POST /api/stripe/create-checkout-session

Creates a Stripe Checkout session for a subscription with a trial period.
Requires a bearer identity matching the requested user.
"""

import logging
import time

from botocore.exceptions import BotoCoreError, ClientError

from subrelay.auth import authenticate
from subrelay.aws_clients import get_dynamodb
from subrelay.billing_utils import StripeBilling, get_stripe_secrets
from subrelay.errors import APIError, ConfigurationError, ForbiddenError
from subrelay.logging_utils import configure_structured_logging, log_api_request, log_error, set_request_id
from subrelay.metrics import emit_error_metric, emit_session_metric
from subrelay.rate_limit_utils import API_RATE_LIMIT, enforce_rate_limit
from subrelay.request_utils import get_client_ip, get_origin, parse_json_body
from subrelay.response_utils import api_error_response, error_response, preflight_response, success_response
from subrelay.sessions import SessionFactory
from subrelay.users import USERS_TABLE, UserStore
from subrelay.validation import CheckoutSessionRequest

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

METHOD = "POST"
PATH = "/api/stripe/create-checkout-session"
HANDLER_NAME = "create_checkout"


def build_session_factory() -> SessionFactory:
    """Wire the session factory to the users table and Stripe."""
    stripe_api_key, _ = get_stripe_secrets()
    if not stripe_api_key:
        raise ConfigurationError("Payment system not configured", code="stripe_not_configured")
    users = UserStore(get_dynamodb().Table(USERS_TABLE))
    return SessionFactory(users, StripeBilling(stripe_api_key))


def handler(event, context):
    """
    Lambda handler for POST /api/stripe/create-checkout-session.

    Request body:
    {
        "priceId": "price_...",
        "userId": "user_...",
        "returnUrl": "https://app.example.com/billing"
    }

    Returns:
    {
        "sessionId": "cs_..."
    }
    """
    configure_structured_logging()
    set_request_id(event)
    start_time = time.time()
    origin = get_origin(event)

    if event.get("httpMethod") == "OPTIONS":
        return preflight_response(origin)

    user_id = None
    try:
        request = CheckoutSessionRequest.from_body(parse_json_body(event))
        user_id = request.user_id
        enforce_rate_limit("checkout", get_client_ip(event), API_RATE_LIMIT)
        identity = authenticate(event)

        if identity.uid != request.user_id:
            raise ForbiddenError("Cannot create a checkout session for another user")

        result = build_session_factory().create_checkout_session(request)
        emit_session_metric("checkout")
        response = success_response(result, origin=origin)

    except APIError as e:
        log_error(logger, e, METHOD, PATH, e.status_code, user_id=user_id)
        emit_error_metric(e.code, handler=HANDLER_NAME)
        response = api_error_response(e, origin=origin)
    except (ClientError, BotoCoreError) as e:
        log_error(logger, e, METHOD, PATH, 500, user_id=user_id)
        emit_error_metric("temporary_error", handler=HANDLER_NAME)
        response = error_response(500, "temporary_error", "Temporary error, please retry", origin=origin)
    except Exception as e:
        log_error(logger, e, METHOD, PATH, 500, exc_info=True, user_id=user_id)
        emit_error_metric("internal_error", handler=HANDLER_NAME)
        response = error_response(500, "internal_error", "An error occurred", origin=origin)

    log_api_request(logger, METHOD, PATH, response["statusCode"], (time.time() - start_time) * 1000, user_id)
    return response
