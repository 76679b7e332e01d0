"""
Static API key authentication

The dashboard sends a shared secret in the ``X-API-Key`` header; nothing
else about the caller is known.
"""

from typing import Optional
import secrets

API_KEY_HEADER = "X-API-Key"


def is_authorized(header_value: Optional[str], secret: Optional[str]) -> bool:
    """
    Check a header value against the configured secret

    Args:
        header_value: Value of the X-API-Key header, if any
        secret: Configured API key

    Returns:
        bool: True only when both are set and match exactly
    """
    if not header_value or not secret:
        return False
    return secrets.compare_digest(header_value.encode("utf-8"), secret.encode("utf-8"))
