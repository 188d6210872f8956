"""
Bearer identity verification.

Tokens are issued by the identity service as `<base64url(json)>.<hex sig>`,
where sig is HMAC-SHA256 of the payload part with the shared identity secret.
The payload carries `uid`, optional `email`, and an `exp` unix timestamp.
"""

import base64
import hashlib
import hmac
import json
import logging
import os
import time
from datetime import datetime, timezone
from typing import Optional

from subrelay.constants import SECRETS_CACHE_TTL
from subrelay.errors import AuthenticationError, ConfigurationError
from subrelay.models import Identity
from subrelay.request_utils import get_header
from subrelay.secret_utils import read_secret

logger = logging.getLogger(__name__)

# Cached identity secret (loaded from Secrets Manager) with TTL
_identity_secret_cache = None
_identity_secret_cache_time = 0.0


def _get_identity_secret() -> Optional[str]:
    """Retrieve the token signing secret from Secrets Manager (cached with TTL)."""
    global _identity_secret_cache, _identity_secret_cache_time

    if _identity_secret_cache and (time.time() - _identity_secret_cache_time) < SECRETS_CACHE_TTL:
        return _identity_secret_cache

    # Read at runtime to allow tests to set this env var
    secret_arn = os.environ.get("IDENTITY_SECRET_ARN")
    if not secret_arn:
        logger.error("IDENTITY_SECRET_ARN not configured")
        return None

    secret = read_secret(secret_arn, "secret")
    if secret:
        _identity_secret_cache = secret
        _identity_secret_cache_time = time.time()
    return secret


def reset_identity_secret_cache() -> None:
    global _identity_secret_cache, _identity_secret_cache_time
    _identity_secret_cache = None
    _identity_secret_cache_time = 0.0


def _sign(payload: str, secret: str) -> str:
    return hmac.new(secret.encode(), payload.encode(), hashlib.sha256).hexdigest()


def create_identity_token(data: dict, secret: str) -> str:
    """Create a signed identity token."""
    payload = base64.urlsafe_b64encode(json.dumps(data).encode()).decode()
    return f"{payload}.{_sign(payload, secret)}"


def verify_identity_token(token: str, secret: str) -> Optional[Identity]:
    """Verify a token and return the identity if valid."""
    if not token or "." not in token:
        return None

    payload, signature = token.rsplit(".", 1)
    if not hmac.compare_digest(signature, _sign(payload, secret)):
        return None

    try:
        data = json.loads(base64.urlsafe_b64decode(payload.encode()))
    except (ValueError, TypeError):
        return None
    if not isinstance(data, dict):
        return None

    exp = data.get("exp")
    if not isinstance(exp, (int, float)) or isinstance(exp, bool):
        return None
    if exp < datetime.now(timezone.utc).timestamp():
        return None

    uid = data.get("uid")
    if not uid or not isinstance(uid, str):
        return None
    return Identity(uid=uid, email=data.get("email"))


def authenticate(event: dict) -> Identity:
    """Resolve the caller's identity from the Authorization header.

    Raises:
        AuthenticationError: missing, malformed, expired or forged token
        ConfigurationError: identity secret not configured
        ClientError: identity secret could not be fetched
    """
    auth_header = get_header(event, "authorization") or ""
    if not auth_header.startswith("Bearer "):
        raise AuthenticationError()

    token = auth_header[len("Bearer "):].strip()
    secret = _get_identity_secret()
    if not secret:
        raise ConfigurationError("Authentication not configured", code="auth_not_configured")

    identity = verify_identity_token(token, secret)
    if identity is None:
        raise AuthenticationError("Invalid or expired token")
    return identity
