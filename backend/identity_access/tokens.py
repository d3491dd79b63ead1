"""
Access-token verification for bearer API callers.

Why: Non-browser clients (scripts, the mobile shell) call the JSON API with the
Supabase access token they already hold instead of a session cookie. The web
layer must verify that token locally before trusting its `sub` claim.

Security: Supabase signs access tokens with the project JWT secret (HS256).
Signature, audience and expiry are checked; a small clock skew is tolerated.
The token itself is never logged.
"""
from __future__ import annotations

from typing import Dict
import os
import time

from jose import jwt
from jose.exceptions import JOSEError


class AccessTokenError(Exception):
    """Raised when an access token fails verification."""

    def __init__(self, code: str):
        super().__init__(code)
        self.code = code


MAX_CLOCK_SKEW_SECONDS = 5
DEFAULT_AUDIENCE = "authenticated"


def verify_access_token(
    token: str,
    *,
    secret: str | None = None,
    audience: str = DEFAULT_AUDIENCE,
) -> Dict[str, object]:
    """Validate a Supabase access token and return its claims.

    Parameters
    ----------
    token:
        Raw JWT from the `Authorization: Bearer` header.
    secret:
        HS256 secret; defaults to `SUPABASE_JWT_SECRET`.
    audience:
        Expected `aud` claim (Supabase uses "authenticated").

    Raises
    ------
    AccessTokenError:
        `not_configured` without a secret, `invalid_access_token` on any
        signature/audience/claim problem, `expired` past `exp`.
    """
    secret = secret if secret is not None else (os.getenv("SUPABASE_JWT_SECRET") or "").strip()
    if not secret:
        raise AccessTokenError("not_configured")
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=["HS256"],
            audience=audience,
            options={"verify_exp": False},
        )
    except JOSEError as exc:
        raise AccessTokenError("invalid_access_token") from exc

    sub = claims.get("sub")
    if not isinstance(sub, str) or not sub:
        raise AccessTokenError("invalid_access_token")
    _validate_expiry(claims)
    return claims


def _validate_expiry(claims: Dict[str, object]) -> None:
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        raise AccessTokenError("invalid_access_token")
    if exp + MAX_CLOCK_SKEW_SECONDS < time.time():
        raise AccessTokenError("expired")


__all__ = ["AccessTokenError", "verify_access_token", "MAX_CLOCK_SKEW_SECONDS"]
