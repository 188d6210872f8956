"""Secrets Manager helpers."""

import json
import logging
from typing import Optional

from botocore.exceptions import ClientError

from subrelay.aws_clients import get_secretsmanager

logger = logging.getLogger(__name__)


def read_secret(secret_arn: Optional[str], json_key: str) -> Optional[str]:
    """Read a secret stored either raw or as a JSON object holding json_key.

    Returns None when the ARN is unset or the secret is empty.

    Raises:
        ClientError: the secret could not be fetched. Callers treat this as
            transient, never as "not configured".
    """
    if not secret_arn:
        return None
    try:
        response = get_secretsmanager().get_secret_value(SecretId=secret_arn)
    except ClientError as e:
        logger.error(f"Failed to retrieve secret '{json_key}': {e}")
        raise

    secret_value = response.get("SecretString", "")
    try:
        secret_json = json.loads(secret_value)
    except json.JSONDecodeError:
        return secret_value or None
    if isinstance(secret_json, dict):
        return secret_json.get(json_key) or None
    return secret_value or None
