"""
Stripe Webhook Endpoint - POST /webhooks/stripe

Reconciles user subscription state from Stripe subscription events.
Uses Stripe signature verification instead of bearer auth.
"""

import logging
import time

from botocore.exceptions import BotoCoreError, ClientError

from subrelay.aws_clients import get_dynamodb
from subrelay.billing_utils import get_stripe_secrets
from subrelay.dispatcher import EventDispatcher
from subrelay.errors import APIError, InvalidEventError
from subrelay.logging_utils import configure_structured_logging, log_api_request, log_error, set_request_id
from subrelay.metrics import emit_error_metric, emit_webhook_metric
from subrelay.rate_limit_utils import WEBHOOK_RATE_LIMIT, enforce_rate_limit
from subrelay.reconciler import SubscriptionReconciler
from subrelay.request_utils import get_client_ip, get_header, get_raw_body
from subrelay.response_utils import api_error_response, error_response, success_response
from subrelay.users import USERS_TABLE, UserStore
from subrelay.webhook_signature import verify_webhook

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

METHOD = "POST"
PATH = "/webhooks/stripe"
HANDLER_NAME = "stripe_webhook"


def build_dispatcher() -> EventDispatcher:
    """Wire the dispatcher to the live users table."""
    users = UserStore(get_dynamodb().Table(USERS_TABLE))
    return EventDispatcher(SubscriptionReconciler(users))


def handler(event, context):
    """
    Lambda handler for Stripe webhooks.

    Handles:
    - customer.subscription.created / updated: store snapshot, derive plan
    - customer.subscription.deleted: clear subscription, downgrade to free
    Anything else is acknowledged and ignored.
    """
    configure_structured_logging()
    set_request_id(event)
    start_time = time.time()

    try:
        enforce_rate_limit("webhook", get_client_ip(event), WEBHOOK_RATE_LIMIT)
        _, webhook_secret = get_stripe_secrets()
        dispatcher = build_dispatcher()
    except APIError as e:
        log_error(logger, e, METHOD, PATH, e.status_code)
        emit_error_metric(e.code, handler=HANDLER_NAME)
        response = api_error_response(e)
    except (ClientError, BotoCoreError) as e:
        # Rate-limit table or Secrets Manager unavailable - let Stripe retry
        log_error(logger, e, METHOD, PATH, 500)
        emit_error_metric("temporary_error", handler=HANDLER_NAME)
        response = error_response(500, "temporary_error", "Temporary error, please retry")
    except Exception as e:
        log_error(logger, e, METHOD, PATH, 500, exc_info=True)
        emit_error_metric("processing_failed", handler=HANDLER_NAME)
        response = error_response(500, "processing_failed", "Processing failed")
    else:
        response = process_webhook(event, webhook_secret, dispatcher)

    log_api_request(logger, METHOD, PATH, response["statusCode"], (time.time() - start_time) * 1000)
    return response


def process_webhook(event: dict, webhook_secret: str | None, dispatcher: EventDispatcher) -> dict:
    """Verify, dispatch and acknowledge one webhook delivery.

    Status policy:
    - 200 once the event is applied, ignored, or is permanently unusable
      (bad subscription data), so Stripe stops redelivering it
    - 400 for missing or forged signatures, which a retry cannot fix
    - 404 when no user is linked to the customer yet; Stripe retries later
    - 500 for store or unexpected failures, so Stripe retries
    """
    raw_body = get_raw_body(event)
    signature = get_header(event, "stripe-signature")

    try:
        verified = verify_webhook(raw_body, signature, webhook_secret)
    except APIError as e:
        log_error(logger, e, METHOD, PATH, e.status_code)
        emit_error_metric(e.code, handler=HANDLER_NAME)
        return api_error_response(e)

    log_context = {"event_id": verified.id, "event_type": verified.type}
    logger.info(f"Processing Stripe event: {verified.type} (id={verified.id})", extra=log_context)

    try:
        outcome = dispatcher.dispatch(verified)
    except InvalidEventError as e:
        # Permanent - the same payload will never succeed, so acknowledge it
        log_error(logger, e, METHOD, PATH, 200, **log_context)
        emit_webhook_metric(verified.type, "invalid")
        return success_response(
            {
                "error": {"code": e.code, "message": e.message},
                "received": True,
                "processed": False,
            }
        )
    except APIError as e:
        log_error(
            logger,
            e,
            METHOD,
            PATH,
            e.status_code,
            customer_id=getattr(e, "customer_id", None),
            **log_context,
        )
        emit_webhook_metric(verified.type, "failed")
        emit_error_metric(e.code, handler=HANDLER_NAME)
        return api_error_response(e)
    except (ClientError, BotoCoreError) as e:
        # DynamoDB errors are transient - let Stripe retry
        log_error(logger, e, METHOD, PATH, 500, **log_context)
        emit_webhook_metric(verified.type, "failed")
        emit_error_metric("temporary_error", handler=HANDLER_NAME)
        return error_response(500, "temporary_error", "Temporary error, please retry")
    except Exception as e:
        log_error(logger, e, METHOD, PATH, 500, exc_info=True, **log_context)
        emit_webhook_metric(verified.type, "failed")
        emit_error_metric("processing_failed", handler=HANDLER_NAME)
        return error_response(500, "processing_failed", "Processing failed")

    logger.info(
        f"Stripe event {verified.id} {outcome.action}",
        extra={**log_context, "action": outcome.action, "customer_id": outcome.customer_id, "user_id": outcome.user_id},
    )
    emit_webhook_metric(verified.type, outcome.action)

    return success_response({"received": True})
