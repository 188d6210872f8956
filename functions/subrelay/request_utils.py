"""Shared request utilities for API handlers."""

import base64
import binascii
import json
import logging
from typing import Optional

from subrelay.errors import InvalidJSONError

logger = logging.getLogger(__name__)


def get_client_ip(event: dict) -> str:
    """Extract client IP from API Gateway's verified source.

    SECURITY: Always use requestContext.identity.sourceIp which is set by
    API Gateway and cannot be spoofed by clients. Never trust X-Forwarded-For
    header for rate limiting as it can be forged.
    """
    source_ip = ((event.get("requestContext") or {}).get("identity") or {}).get("sourceIp")
    if source_ip:
        return source_ip

    logger.warning("Missing sourceIp in requestContext - possible misconfiguration")
    return "unknown"


def get_header(event: dict, name: str) -> Optional[str]:
    """Case-insensitive header lookup (API Gateway preserves client casing)."""
    headers = event.get("headers") or {}
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def get_origin(event: dict) -> Optional[str]:
    """Extract Origin header from request."""
    return get_header(event, "origin")


def get_raw_body(event: dict) -> bytes:
    """Return the request body exactly as the client sent it.

    Webhook signatures are computed over these bytes, so the body must never
    be parsed and re-serialized before verification.
    """
    body = event.get("body")
    if body is None:
        return b""
    if event.get("isBase64Encoded"):
        try:
            return base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError):
            logger.warning("Request body flagged as base64 but failed to decode")
            return b""
    if isinstance(body, bytes):
        return body
    return body.encode("utf-8")


def parse_json_body(event: dict) -> dict:
    """Parse a JSON object body, raising InvalidJSONError otherwise."""
    raw = get_raw_body(event)
    if not raw.strip():
        return {}
    try:
        body = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidJSONError()
    if not isinstance(body, dict):
        raise InvalidJSONError("Request body must be a JSON object")
    return body
