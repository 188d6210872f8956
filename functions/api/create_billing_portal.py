"""
Create Billing Portal Session Endpoint - POST /api/stripe/create-portal-session

Creates a Stripe Billing Portal session for subscription management.
Requires a bearer identity whose user record owns the billing customer.
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
from subrelay.validation import PortalSessionRequest

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

METHOD = "POST"
PATH = "/api/stripe/create-portal-session"
HANDLER_NAME = "create_billing_portal"


def handler(event, context):
    """
    Lambda handler for POST /api/stripe/create-portal-session.

    Request body:
    {
        "customerId": "cus_...",
        "returnUrl": "https://app.example.com/billing"
    }

    Returns:
    {
        "url": "https://billing.stripe.com/..."
    }
    """
    configure_structured_logging()
    set_request_id(event)
    start_time = time.time()
    origin = get_origin(event)

    if event.get("httpMethod") == "OPTIONS":
        return preflight_response(origin)

    user_id = None
    customer_id = None
    try:
        request = PortalSessionRequest.from_body(parse_json_body(event))
        customer_id = request.customer_id
        enforce_rate_limit("portal", get_client_ip(event), API_RATE_LIMIT)
        identity = authenticate(event)
        user_id = identity.uid

        users = UserStore(get_dynamodb().Table(USERS_TABLE))
        user = users.get(identity.uid)
        if not user or user.get("billing_customer_id") != request.customer_id:
            raise ForbiddenError("Billing customer does not belong to this user")

        stripe_api_key, _ = get_stripe_secrets()
        if not stripe_api_key:
            raise ConfigurationError("Payment system not configured", code="stripe_not_configured")

        result = SessionFactory(users, StripeBilling(stripe_api_key)).create_portal_session(request)
        emit_session_metric("portal")
        response = success_response(result, origin=origin)

    except APIError as e:
        log_error(logger, e, METHOD, PATH, e.status_code, user_id=user_id, customer_id=customer_id)
        emit_error_metric(e.code, handler=HANDLER_NAME)
        response = api_error_response(e, origin=origin)
    except (ClientError, BotoCoreError) as e:
        log_error(logger, e, METHOD, PATH, 500, user_id=user_id, customer_id=customer_id)
        emit_error_metric("temporary_error", handler=HANDLER_NAME)
        response = error_response(500, "temporary_error", "Temporary error, please retry", origin=origin)
    except Exception as e:
        log_error(logger, e, METHOD, PATH, 500, exc_info=True, user_id=user_id, customer_id=customer_id)
        emit_error_metric("internal_error", handler=HANDLER_NAME)
        response = error_response(500, "internal_error", "An error occurred", origin=origin)

    log_api_request(logger, METHOD, PATH, response["statusCode"], (time.time() - start_time) * 1000, user_id)
    return response
