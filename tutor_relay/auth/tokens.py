"""Access token verification.

Callers send the access token issued by the auth provider (an HS256 JWT,
``sub`` = user id) as ``Authorization: Bearer <token>``. The ``sub`` claim
is the stable identity the rate limiter keys on.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from tutor_relay.utils.exceptions import AuthenticationError, ConfigurationError


def create_access_token(
    subject: str,
    secret: str,
    algorithm: str = "HS256",
    audience: str | None = "authenticated",
    expires_delta: timedelta = timedelta(hours=1),
) -> str:
    """Issue a signed token for ``subject`` (local tooling and tests)."""
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": subject,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
    }
    if audience:
        payload["aud"] = audience
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_access_token(
    token: str,
    secret: str,
    algorithm: str = "HS256",
    audience: str | None = "authenticated",
) -> dict[str, Any]:
    """Verify signature, expiry, and (optionally) audience.

    Raises:
        AuthenticationError: The token is invalid or expired.
    """
    try:
        return jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            audience=audience or None,
            options={"verify_aud": bool(audience)},
        )
    except JWTError as e:
        raise AuthenticationError("Invalid or expired token") from e


def resolve_identity(
    authorization: str | None,
    secret: str,
    algorithm: str = "HS256",
    audience: str | None = "authenticated",
) -> str:
    """Turn an ``Authorization`` header value into a caller identity.

    Raises:
        ConfigurationError: No verification secret is configured.
        AuthenticationError: Header missing, not a bearer token, or invalid.
    """
    if not authorization:
        raise AuthenticationError("Missing authentication token")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Missing authentication token")

    if not secret:
        raise ConfigurationError("AUTH_JWT_SECRET")

    claims = decode_access_token(token.strip(), secret, algorithm, audience)
    subject = claims.get("sub")
    if not isinstance(subject, str) or not subject:
        raise AuthenticationError("Invalid token subject")
    return subject
