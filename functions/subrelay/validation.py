"""
Request body validation for the session endpoints.

Bodies are parsed into frozen dataclasses before they reach business logic.
"""

import os
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlparse

from subrelay.errors import ValidationError

MAX_ID_LENGTH = 255
MAX_URL_LENGTH = 2048


def _non_empty_string(body: dict, field: str, errors: dict) -> Optional[str]:
    value = body.get(field)
    if not isinstance(value, str) or not value.strip():
        errors[field] = "must be a non-empty string"
        return None
    value = value.strip()
    if len(value) > MAX_ID_LENGTH:
        errors[field] = f"must be at most {MAX_ID_LENGTH} characters"
        return None
    return value


def is_valid_url(value: Any) -> bool:
    """Absolute http(s) URL with a host."""
    if not isinstance(value, str) or not value or len(value) > MAX_URL_LENGTH:
        return False
    if any(ch.isspace() for ch in value):
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc) and bool(parsed.hostname)


def _url(body: dict, field: str, errors: dict) -> Optional[str]:
    value = body.get(field)
    if not is_valid_url(value):
        errors[field] = "must be a valid http(s) URL"
        return None
    return value


def _raise_if_errors(errors: dict) -> None:
    if errors:
        fields = ", ".join(sorted(errors))
        raise ValidationError(f"Invalid request: {fields}", details={"fields": errors})


@dataclass(frozen=True)
class CheckoutSessionRequest:
    price_id: str
    user_id: str
    return_url: str

    @classmethod
    def from_body(cls, body: dict) -> "CheckoutSessionRequest":
        """Validate a checkout body.

        priceId falls back to STRIPE_PRO_PLAN_PRICE_ID when the body omits it.
        """
        errors: dict[str, str] = {}
        if body.get("priceId") is None and os.environ.get("STRIPE_PRO_PLAN_PRICE_ID"):
            body = {**body, "priceId": os.environ["STRIPE_PRO_PLAN_PRICE_ID"]}

        price_id = _non_empty_string(body, "priceId", errors)
        user_id = _non_empty_string(body, "userId", errors)
        return_url = _url(body, "returnUrl", errors)
        _raise_if_errors(errors)
        return cls(price_id=price_id, user_id=user_id, return_url=return_url)


@dataclass(frozen=True)
class PortalSessionRequest:
    customer_id: str
    return_url: str

    @classmethod
    def from_body(cls, body: dict) -> "PortalSessionRequest":
        errors: dict[str, str] = {}
        customer_id = _non_empty_string(body, "customerId", errors)
        return_url = _url(body, "returnUrl", errors)
        _raise_if_errors(errors)
        return cls(customer_id=customer_id, return_url=return_url)
