# Shared subscription relay package
from .dispatcher import DispatchOutcome, EventDispatcher
from .errors import APIError
from .models import SubscriptionSnapshot, VerifiedEvent
from .reconciler import SubscriptionReconciler
from .response_utils import error_response, success_response
from .sessions import SessionFactory
from .users import UserStore
from .webhook_signature import verify_webhook

__all__ = [
    "APIError",
    "DispatchOutcome",
    "EventDispatcher",
    "SessionFactory",
    "SubscriptionReconciler",
    "SubscriptionSnapshot",
    "UserStore",
    "VerifiedEvent",
    "error_response",
    "success_response",
    "verify_webhook",
]
