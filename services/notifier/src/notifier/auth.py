"""
Trigger authentication for the PoolPilot notifier.

The trigger carries an opaque shared secret, either as the ``token``
query parameter or as ``Authorization: Bearer <token>``.
"""

from __future__ import annotations

import hmac

from pp_common.errors import AuthError


def extract_token(query_token: str | None, authorization: str | None) -> str | None:
    """Return the presented token, preferring the query parameter."""
    if query_token:
        return query_token
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip() or None
    return None


def verify_token(presented: str | None, expected: str) -> None:
    """Compare *presented* against *expected* in constant time.

    Raises:
        AuthError: The token is missing, wrong, or no token is configured.
    """
    if not expected or not presented:
        raise AuthError("unauthorized")
    if not hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8")):
        raise AuthError("unauthorized")
