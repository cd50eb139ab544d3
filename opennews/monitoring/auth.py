"""
Shared request authentication dependencies.

``verify_api_key`` guards operator endpoints with a bearer token;
``verify_webhook_secret`` guards the push webhook with a shared header.
Either check is disabled when its secret is not configured.
"""

from __future__ import annotations

import hmac

from fastapi import Header, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from opennews.utils.config import get_settings

_http_bearer = HTTPBearer(auto_error=False)


async def verify_api_key(
    credentials: HTTPAuthorizationCredentials | None = Security(_http_bearer),
) -> None:
    """Validate the ``Authorization: Bearer <API_SECRET_KEY>`` header.

    Args:
        credentials: Bearer token extracted by HTTPBearer.

    Raises:
        HTTPException: 401 when the token is missing or wrong.
    """
    secret_key = get_settings().api_secret_key
    if not secret_key:
        return
    if credentials is None or not hmac.compare_digest(credentials.credentials, secret_key):
        raise HTTPException(
            status_code=401,
            detail="Invalid API key. Check the Authorization: Bearer <API_SECRET_KEY> header.",
        )


async def verify_webhook_secret(
    x_webhook_secret: str | None = Header(default=None),
) -> None:
    """Validate the ``X-Webhook-Secret`` header."""
    secret = get_settings().webhook_secret
    if not secret:
        return
    if x_webhook_secret is None or not hmac.compare_digest(x_webhook_secret, secret):
        raise HTTPException(status_code=401, detail="Invalid webhook secret.")
